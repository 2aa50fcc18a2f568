"""
Dataset 02 - Matrice di base 2019

Single workbook holding both the sample header and the abundance matrix:

    row 1   sample ids (MC 1314, ...)
    row 3   sampling dates (Excel serials or dates)
    row 9   filtered volume (m3)
    row 11+ one row per taxon x stage (column A taxon, column B stage)

Sample columns are joined to the header rows on the cleaned sample id.
"""

import sys
from pathlib import Path

# Add parent to path for zoogon imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from zoogon.excel_utils import read_base_matrix
from zoogon.pipeline import process_dataset
from zoogon.samples import build_sample_index

# ============================================================
# DATASET CONFIGURATION
# ============================================================

DATASET_CODE = 'd02_matrice_2019'
DATASET_NAME = 'Matrice di base 2019'

MATRIX_FILE = 'Matrice di base_2019.xlsx'

# Sample columns C..AP
FIRST_SAMPLE_COL = 3
LAST_SAMPLE_COL = 42

# ============================================================


def make_loader(data_dir: Path):
    def load():
        wide, index_df = read_base_matrix(
            data_dir / MATRIX_FILE,
            first_sample_col=FIRST_SAMPLE_COL,
            last_sample_col=LAST_SAMPLE_COL,
        )
        sample_index = build_sample_index(
            index_df, id_col='id', date_col='date', volume_col='filtered_volume_m3',
        )
        return wide, sample_index
    return load


def run(config):
    """Convert the 2019 base matrix to Darwin Core."""
    return process_dataset(
        DATASET_CODE,
        make_loader(Path(config.data_dir)),
        config,
        header_kind='sample_id',
        join_on='sample_id',
    )


if __name__ == '__main__':
    import logging
    from zoogon.config import load_config

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    run(load_config())
