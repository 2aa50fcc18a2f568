"""
Dataset Template - Copy this file to create a new dataset script.

Usage:
    1. Copy this file to datasets/dXX_dataset_name.py
    2. Update DATASET_CODE, DATASET_NAME and the source file names
    3. Adjust load() to the layout of the workbook
    4. Run with: python run_pipeline.py XX
"""

import sys
from pathlib import Path

# Add parent to path for zoogon imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from zoogon.excel_utils import read_abundance_matrix, read_sample_index_sheet
from zoogon.pipeline import process_dataset
from zoogon.samples import build_sample_index

# ============================================================
# DATASET CONFIGURATION - Update these for each dataset
# ============================================================

DATASET_CODE = 'dXX_dataset_code'
DATASET_NAME = 'Dataset Name'

MATRIX_FILE = 'matrix.xlsx'            # <-- UPDATE THIS
SAMPLE_INDEX_FILE = 'sample_index.xlsx'  # <-- UPDATE THIS

# 'sample_id' if matrix columns are headed by sample ids, 'date' if by dates
HEADER_KIND = 'sample_id'
JOIN_ON = 'sample_id'

# ============================================================


def make_loader(data_dir: Path):
    """Return a callable reading (wide matrix, sample index) from data_dir."""
    def load():
        wide = read_abundance_matrix(data_dir / MATRIX_FILE)
        index_df = read_sample_index_sheet(data_dir / SAMPLE_INDEX_FILE)
        sample_index = build_sample_index(index_df, id_col='sample_id', date_col='date')
        return wide, sample_index
    return load


def run(config):
    """Main processing function."""
    return process_dataset(
        DATASET_CODE,
        make_loader(Path(config.data_dir)),
        config,
        header_kind=HEADER_KIND,
        join_on=JOIN_ON,
    )
