"""
Dataset 01 - LTER-MC zooplankton 1984-2013

Wide matrix with one column per sampling date (Excel serial headers) and a
separate sample id / date lookup. Samples are joined to the lookup on the
sampling date.

Source files:
- lter_zoo_84_13.xlsx: columns 1-7 station metadata, TAXA, stage, one
  column per sampling date, NOTES
- ids.xlsx: sample_id, date
"""

import sys
from pathlib import Path

# Add parent to path for zoogon imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from zoogon.excel_utils import read_abundance_matrix, read_sample_index_sheet
from zoogon.pipeline import process_dataset
from zoogon.samples import build_sample_index

# ============================================================
# DATASET CONFIGURATION
# ============================================================

DATASET_CODE = 'd01_lter_mc_1984_2013'
DATASET_NAME = 'LTER-MC zooplankton 1984-2013'

MATRIX_FILE = 'lter_zoo_84_13.xlsx'
SAMPLE_INDEX_FILE = 'ids.xlsx'

# Station metadata columns in front of the taxa, and the trailing notes
DROP_COLUMNS = [0, 1, 2, 3, 4, 5, 6, 'NOTES']

# ============================================================


def make_loader(data_dir: Path):
    def load():
        wide = read_abundance_matrix(
            data_dir / MATRIX_FILE,
            taxon_col='TAXA',
            stage_col='stage',
            drop_columns=DROP_COLUMNS,
        )
        index_df = read_sample_index_sheet(data_dir / SAMPLE_INDEX_FILE)
        sample_index = build_sample_index(index_df, id_col='sample_id', date_col='date')
        return wide, sample_index
    return load


def run(config):
    """Convert the 1984-2013 matrix to Darwin Core."""
    return process_dataset(
        DATASET_CODE,
        make_loader(Path(config.data_dir)),
        config,
        header_kind='date',
        join_on='date',
    )


if __name__ == '__main__':
    import logging
    from zoogon.config import load_config

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    run(load_config())
