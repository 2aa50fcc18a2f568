"""
Sample index utilities: identifier cleaning and the join between long
abundance records and the sample id / date / filtered volume lookup.
"""

import logging
import math
import re
from typing import Optional

import pandas as pd

from zoogon.conversions import parse_sample_date
from zoogon.schema import SAMPLE_INDEX_COLUMNS, DataQualityError

logger = logging.getLogger(__name__)

JOIN_KEYS = ('sample_id', 'date')

MERGE_STATUS = {
    'both': 'both',
    'left_only': 'abundance_only',
    'right_only': 'index_only',
}


def clean_sample_id(raw) -> Optional[str]:
    """
    Normalize a sample identifier to its join key.

    Lowercases and drops every non-alphanumeric character, so that
    'MC 131', 'mc_131' and 'Mc131' all become 'mc131'.
    """
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return None
    if isinstance(raw, float) and math.isfinite(raw) and raw == int(raw):
        raw = int(raw)
    clean = re.sub(r'[^a-z0-9]', '', str(raw).lower())
    return clean or None


def build_sample_index(df: pd.DataFrame,
                       id_col: str = 'id',
                       date_col: str = 'date',
                       volume_col: Optional[str] = None) -> pd.DataFrame:
    """
    Build the sample index from a sample id / date (/ volume) table.

    Args:
        df: Lookup table as read from the spreadsheet
        id_col: Column with raw sample identifiers
        date_col: Column with sampling dates (Excel serials or dates)
        volume_col: Optional column with filtered volume in m3

    Returns:
        DataFrame with SAMPLE_INDEX_COLUMNS

    Raises:
        DataQualityError: If two rows share a sample_id but differ in date
    """
    for col in [id_col, date_col] + ([volume_col] if volume_col else []):
        if col not in df.columns:
            raise ValueError(f"Column '{col}' not found in sample index. Columns: {list(df.columns)}")

    index = pd.DataFrame({
        'raw_id': df[id_col].values,
        'sample_id': [clean_sample_id(v) for v in df[id_col]],
        'date': [parse_sample_date(v) for v in df[date_col]],
    })
    if volume_col:
        index['filtered_volume_m3'] = pd.to_numeric(df[volume_col], errors='coerce').values
    else:
        index['filtered_volume_m3'] = float('nan')

    no_id = index['sample_id'].isna()
    if no_id.any():
        logger.warning("Dropped %d sample index rows without a sample id", int(no_id.sum()))
        index = index[~no_id]

    index = index.drop_duplicates(subset=['sample_id', 'date', 'filtered_volume_m3'])

    conflicts = index.groupby('sample_id')['date'].nunique(dropna=False)
    conflicts = conflicts[conflicts > 1]
    if len(conflicts) > 0:
        raise DataQualityError(
            f"Sample ids with more than one date in the sample index: {sorted(conflicts.index)[:10]}"
        )

    duplicated = index['sample_id'].duplicated(keep=False)
    if duplicated.any():
        raise DataQualityError(
            "Sample ids with conflicting filtered volumes in the sample index: "
            f"{sorted(index.loc[duplicated, 'sample_id'].unique())[:10]}"
        )

    return index[SAMPLE_INDEX_COLUMNS].reset_index(drop=True)


def join_sample_index(long_df: pd.DataFrame,
                      sample_index: pd.DataFrame,
                      on: str = 'sample_id') -> pd.DataFrame:
    """
    Full outer join of long abundance records with the sample index.

    Records without a sample index entry and sample index entries without
    abundance records are both kept; _merge_status tells them apart
    ('both', 'abundance_only', 'index_only').

    Args:
        long_df: Output of pivot_abundance_long
        sample_index: Output of build_sample_index
        on: 'sample_id' to join on the cleaned column header, 'date' to
            join on the sampling date parsed from the column header

    Raises:
        DataQualityError: If the join key is not unique in the sample index
    """
    if on not in JOIN_KEYS:
        raise ValueError(f"on must be one of {JOIN_KEYS}, got {on!r}")

    left = long_df.copy()
    right = sample_index[SAMPLE_INDEX_COLUMNS].copy()

    if on == 'sample_id':
        if 'date' in left.columns:
            raise ValueError("Records already carry a date column; join on='date' instead")
        left['sample_id'] = left['sample_column_id'].map(clean_sample_id)
    else:
        if 'date' not in left.columns:
            raise ValueError("Records have no date column; pivot with header_kind='date'")
        right = right.rename(columns={'sample_id': '_index_sample_id'})

    right_key = on if on == 'sample_id' else 'date'
    keyed = right[right[right_key].notna()]
    repeated = keyed[right_key][keyed[right_key].duplicated()]
    if len(repeated) > 0:
        raise DataQualityError(
            f"Join key '{on}' is not unique in the sample index: {sorted(map(str, repeated.unique()))[:10]}"
        )

    # NaN keys never match each other
    left_null = left[left[on].isna()]
    right_null = right[right[right_key].isna()]
    joined = left[left[on].notna()].merge(
        keyed, on=on, how='outer', indicator=True,
    )
    left_null = left_null.assign(_merge='left_only')
    right_null = right_null.assign(_merge='right_only')
    joined = pd.concat([joined, left_null, right_null], ignore_index=True)

    if on == 'date':
        joined = joined.rename(columns={'_index_sample_id': 'sample_id'})

    joined['_merge_status'] = joined['_merge'].astype(str).map(MERGE_STATUS)
    joined = joined.drop(columns=['_merge'])

    counts = joined['_merge_status'].value_counts().to_dict()
    logger.info(
        "Joined on %s: %d matched, %d abundance-only, %d index-only rows",
        on, counts.get('both', 0), counts.get('abundance_only', 0), counts.get('index_only', 0),
    )
    if counts.get('abundance_only', 0):
        logger.warning("%d abundance records have no sample index entry", counts['abundance_only'])

    return joined.reset_index(drop=True)


def unmatched_samples(joined: pd.DataFrame) -> dict:
    """
    Summarize the gaps surfaced by join_sample_index.

    Returns:
        Dict with keys abundance_only (sample column headers without index
        entry) and index_only (sample ids never sampled for abundance)
    """
    abundance_only = joined[joined['_merge_status'] == 'abundance_only']
    index_only = joined[joined['_merge_status'] == 'index_only']
    return {
        'abundance_only': sorted(abundance_only['sample_column_id'].dropna().astype(str).unique()),
        'index_only': sorted(index_only['sample_id'].dropna().astype(str).unique()),
    }
