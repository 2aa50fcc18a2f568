"""
Reshaping utilities for abundance matrices.

The raw matrices are wide: one row per taxon x stage and one column per
sample (headed by a sample identifier or by the sampling date). The
pipeline works on long records, one per taxon x stage x sample.
"""

import logging
import math
import numbers
from datetime import date, datetime
from typing import Optional, Sequence

import pandas as pd

from zoogon.conversions import parse_abundance_value, parse_sample_date

logger = logging.getLogger(__name__)

HEADER_KINDS = ('sample_id', 'date')


def _header_to_str(header) -> str:
    # Excel hands numeric headers back as 43105.0
    if (isinstance(header, numbers.Real) and not isinstance(header, bool)
            and math.isfinite(header) and header == int(header)):
        return str(int(header))
    if isinstance(header, datetime):
        return header.date().isoformat()
    if isinstance(header, date):
        return header.isoformat()
    return str(header).strip()


def pivot_abundance_long(wide_df: pd.DataFrame,
                         id_columns: Sequence[str] = ('taxa', 'stage'),
                         value_name: str = 'ind_m3',
                         header_kind: str = 'sample_id') -> pd.DataFrame:
    """
    Pivot a wide abundance matrix to long format.

    Every column not listed in id_columns is treated as a sample column.

    Args:
        wide_df: Matrix with identifying columns followed by sample columns
        id_columns: Identifying columns kept on every long row
        value_name: Name of the abundance column in the output
        header_kind: 'sample_id' if sample columns are headed by sample
            identifiers, 'date' if they are headed by sampling dates
            (Excel serials or date strings)

    Returns:
        DataFrame with id_columns, sample_column_id, [date,] value_name and
        row_order. Empty cells are NaN, never 0. Rows are ordered by source
        row, then source column.
    """
    if header_kind not in HEADER_KINDS:
        raise ValueError(f"header_kind must be one of {HEADER_KINDS}, got {header_kind!r}")

    id_columns = list(id_columns)
    missing = [c for c in id_columns if c not in wide_df.columns]
    if missing:
        raise ValueError(f"Identifying columns not found in matrix: {missing}")

    sample_cols = [c for c in wide_df.columns if c not in id_columns]
    if not sample_cols:
        raise ValueError("Matrix has no sample columns to pivot")

    df = wide_df.reset_index(drop=True).copy()
    df['_source_row'] = range(len(df))

    long_df = df.melt(
        id_vars=id_columns + ['_source_row'],
        value_vars=sample_cols,
        var_name='_header',
        value_name=value_name,
    )

    col_position = {col: i for i, col in enumerate(sample_cols)}
    long_df['_source_col'] = long_df['_header'].map(col_position)
    long_df = long_df.sort_values(['_source_row', '_source_col'], kind='mergesort')

    header_str = {col: _header_to_str(col) for col in sample_cols}
    long_df['sample_column_id'] = long_df['_header'].map(header_str)

    out_cols = id_columns + ['sample_column_id']
    if header_kind == 'date':
        header_dates = {col: parse_sample_date(col) for col in sample_cols}
        unparsed = [header_str[c] for c, d in header_dates.items() if d is None]
        if unparsed:
            logger.warning("%d sample column headers are not dates: %s", len(unparsed), unparsed[:10])
        long_df['date'] = long_df['_header'].map(header_dates)
        out_cols.append('date')

    long_df[value_name] = pd.to_numeric(
        long_df[value_name].map(parse_abundance_value), errors='coerce'
    ).astype(float)
    long_df['row_order'] = range(len(long_df))

    n_empty = int(long_df[value_name].isna().sum())
    logger.info(
        "Pivoted %d taxa rows x %d sample columns -> %d records (%d empty cells)",
        len(df), len(sample_cols), len(long_df), n_empty,
    )

    return long_df[out_cols + [value_name, 'row_order']].reset_index(drop=True)


def drop_duplicate_records(long_df: pd.DataFrame, subset: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Drop exact duplicate records, keeping the first occurrence.

    row_order is ignored when comparing rows unless it is part of subset.
    """
    if subset is None:
        subset = [c for c in long_df.columns if c != 'row_order']
    deduped = long_df.drop_duplicates(subset=list(subset), keep='first')
    n_dropped = len(long_df) - len(deduped)
    if n_dropped:
        logger.info("Dropped %d duplicate records", n_dropped)
    return deduped.reset_index(drop=True)
