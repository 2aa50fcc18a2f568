"""
Flattening of nested survey submissions into table rows.

    {'group_taxa': [{'group_taxa/count': 3}, {'group_taxa/count': 1}]}
    -> {'group_taxa.0.group_taxa/count': 3, 'group_taxa.1.group_taxa/count': 1}

Empty lists produce no columns at all. Submissions with different
repeat-group lengths produce different column sets; flatten_submissions
takes the union.
"""

import logging
import re
from typing import Iterable, Optional

import pandas as pd

from zoogon.dataframes import clean_names

logger = logging.getLogger(__name__)

SURVEY_GROUP_PREFIXES = [
    'group_cruise/',
    'group_environment/',
    'group_abundance/',
    'group_sample/',
]

TAXA_GROUP = 'group_taxa'
TAXA_HELPER_COLUMNS = ['is_copepod', 'order_group', 'class_group']
VALID_NAME_COLUMNS = ['valid_name_cope', 'valid_name_choice', 'valid_name_noncope']


def flatten_field(value, prefix: str) -> Optional[dict]:
    """
    Flatten one field of a submission.

    Returns:
        Dict of flat column -> value, or None if the field is an empty list
        or map (the field is then left out of the row)
    """
    if isinstance(value, dict):
        if not value:
            return None
        flat = {}
        for key, child in value.items():
            flat.update(flatten_field(child, f"{prefix}.{key}") or {})
        return flat or None

    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return None
        flat = {}
        for i, element in enumerate(value):
            flat.update(flatten_field(element, f"{prefix}.{i}") or {})
        return flat or None

    return {prefix: value}


def flatten_row(submission: dict) -> dict:
    """Flatten every top-level field of a submission into one flat dict."""
    row = {}
    for field, value in submission.items():
        flat = flatten_field(value, field)
        if flat:
            row.update(flat)
    return row


def flatten_submissions(submissions: Iterable[dict]) -> pd.DataFrame:
    """One row per submission; columns are the union over all submissions."""
    rows = [flatten_row(s) for s in submissions]
    df = pd.DataFrame(rows)
    logger.info("Flattened %d submissions into %d columns", len(df), len(df.columns))
    return df


def reshape_repeat_group(df: pd.DataFrame, group_name: str, id_col: str = 'submission_id') -> pd.DataFrame:
    """
    Reshape a flattened repeat group to long format.

    Columns named '<group>.<n>.<group>/<variable>' become one row per
    (id_col, n_sample) with one column per variable. Empty cells are dropped
    before pivoting, so elements that are entirely empty produce no row.

    Returns:
        DataFrame with id_col, n_sample and the group variables, sorted by
        id_col then n_sample
    """
    pattern = re.compile(rf'^{re.escape(group_name)}\.(\d+)\.{re.escape(group_name)}/(.+)$')
    group_cols = [c for c in df.columns if pattern.match(str(c))]
    if not group_cols:
        return pd.DataFrame(columns=[id_col, 'n_sample'])

    long_df = df[[id_col] + group_cols].melt(
        id_vars=[id_col], var_name='_column', value_name='value',
    ).dropna(subset=['value'])

    parts = long_df['_column'].str.extract(pattern)
    long_df['n_sample'] = parts[0].astype(int)
    long_df['variable'] = parts[1]

    variables = list(dict.fromkeys(pattern.match(c).group(2) for c in group_cols))
    wide = long_df.pivot(index=[id_col, 'n_sample'], columns='variable', values='value')
    wide = wide.reindex(columns=[v for v in variables if v in wide.columns])
    wide.columns.name = None

    return wide.reset_index().sort_values([id_col, 'n_sample'], kind='mergesort').reset_index(drop=True)


def _strip_group_prefixes(column: str) -> str:
    for prefix in SURVEY_GROUP_PREFIXES:
        column = column.replace(prefix, '', 1)
    return column


def preprocess_surveys(raw: pd.DataFrame, id_col: str = 'submission_id') -> pd.DataFrame:
    """
    Turn flattened survey submissions into one row per taxon record.

    Cruise, environment, abundance and sample fields lose their group
    prefixes. The taxa repeat group is reshaped long; the first non-empty
    of valid_name_cope, valid_name_choice and valid_name_noncope becomes
    'aphiaid'. Cruise and taxa rows are full-joined on id_col and column
    names are cleaned to snake_case.
    """
    if id_col not in raw.columns:
        raise ValueError(f"Column '{id_col}' not found in survey data")

    cruise_cols = [c for c in raw.columns if c != id_col and not str(c).startswith(TAXA_GROUP)]
    cruise_info = raw[[id_col] + cruise_cols].rename(columns=_strip_group_prefixes)

    taxa_cols = [c for c in raw.columns if str(c).startswith(TAXA_GROUP)]
    taxa_info = reshape_repeat_group(raw[[id_col] + taxa_cols], TAXA_GROUP, id_col=id_col)
    taxa_info = taxa_info.drop(columns=TAXA_HELPER_COLUMNS, errors='ignore')

    aphiaid = pd.Series(None, index=taxa_info.index, dtype=object)
    for col in VALID_NAME_COLUMNS:
        if col in taxa_info.columns:
            aphiaid = aphiaid.where(aphiaid.notna(), taxa_info[col])
    taxa_info['aphiaid'] = aphiaid
    taxa_info = taxa_info.drop(columns=[c for c in taxa_info.columns if str(c).startswith('valid_name')])

    tidy = cruise_info.merge(taxa_info, on=id_col, how='outer')
    tidy.columns = clean_names(tidy.columns)

    logger.info("Preprocessed %d submissions into %d taxon records",
                raw[id_col].nunique(), len(tidy))
    return tidy
