"""
QA utility functions for data validation.

Functions for checking controlled values, finding duplicates and orphaned
records, and listing taxa that could not be matched to WoRMS.
"""

from typing import Optional

import pandas as pd

from zoogon.schema import LIFE_STAGES, MEASUREMENT_VOCABULARY, OCCURRENCE_STATUS


def _is_empty(val) -> bool:
    return val is None or (not isinstance(val, str) and pd.isna(val)) or val == ''


def find_schema_violations(events_df: pd.DataFrame, occurrences_df: pd.DataFrame,
                           emof_df: pd.DataFrame) -> list[dict]:
    """
    Check data against schema constraints and return list of violations.

    Unknown life stages and measurement types are reported once per value.

    Returns:
        List of dicts with keys: table, record_id, field, value, valid_values
    """
    violations = []

    # Events without a date cannot be published
    if len(events_df) > 0 and 'eventDate' in events_df.columns:
        for _, row in events_df.iterrows():
            if _is_empty(row.get('eventDate')):
                violations.append({
                    'table': 'event',
                    'record_id': row.get('eventID', '?'),
                    'field': 'eventDate',
                    'value': '',
                    'valid_values': 'ISO date (YYYY-MM-DD)',
                })

    if len(occurrences_df) > 0 and 'occurrenceStatus' in occurrences_df.columns:
        for _, row in occurrences_df.iterrows():
            val = row.get('occurrenceStatus')
            if val not in OCCURRENCE_STATUS:
                violations.append({
                    'table': 'occurrence',
                    'record_id': row.get('occurrenceID', '?'),
                    'field': 'occurrenceStatus',
                    'value': val,
                    'valid_values': ', '.join(sorted(OCCURRENCE_STATUS)),
                })

    if len(occurrences_df) > 0 and 'lifeStage' in occurrences_df.columns:
        seen_stages = set()
        for _, row in occurrences_df.iterrows():
            val = row.get('lifeStage')
            if _is_empty(val) or val in seen_stages:
                continue
            if str(val).strip().lower() not in LIFE_STAGES:
                seen_stages.add(val)
                violations.append({
                    'table': 'occurrence',
                    'record_id': '(multiple)',
                    'field': 'lifeStage',
                    'value': val,
                    'valid_values': ', '.join(sorted(LIFE_STAGES)),
                })

    if len(emof_df) > 0 and 'measurementType' in emof_df.columns:
        for val in emof_df['measurementType'].dropna().unique():
            if val not in MEASUREMENT_VOCABULARY:
                violations.append({
                    'table': 'emof',
                    'record_id': '(multiple)',
                    'field': 'measurementType',
                    'value': val,
                    'valid_values': ', '.join(sorted(MEASUREMENT_VOCABULARY)),
                })

    return violations


def find_duplicate_occurrences(occurrences_df: pd.DataFrame) -> list[dict]:
    """
    Check for taxa recorded more than once in the same event with the same stage.

    Returns:
        List of dicts with keys: eventID, verbatimIdentification, lifeStage,
        count, occurrenceIDs
    """
    duplicates = []

    if len(occurrences_df) == 0:
        return duplicates

    key_cols = ['eventID', 'verbatimIdentification', 'lifeStage']
    keyed = occurrences_df.assign(lifeStage=occurrences_df['lifeStage'].fillna(''))
    dup_df = keyed[keyed.duplicated(subset=key_cols, keep=False)]

    for (event_id, name, stage), group in dup_df.groupby(key_cols, sort=True):
        duplicates.append({
            'eventID': event_id,
            'verbatimIdentification': name,
            'lifeStage': stage,
            'count': len(group),
            'occurrenceIDs': ', '.join(group['occurrenceID']),
        })

    return duplicates


def find_orphan_occurrences(events_df: pd.DataFrame, occurrences_df: pd.DataFrame,
                            emof_df: Optional[pd.DataFrame] = None) -> list[dict]:
    """
    Find records whose foreign key has no parent row.

    Returns:
        List of dicts with keys: table, record_id, field, value
    """
    orphans = []

    event_ids = set(events_df['eventID'])
    for _, row in occurrences_df.iterrows():
        if row['eventID'] not in event_ids:
            orphans.append({
                'table': 'occurrence',
                'record_id': row['occurrenceID'],
                'field': 'eventID',
                'value': row['eventID'],
            })

    if emof_df is not None and len(emof_df) > 0:
        occurrence_ids = set(occurrences_df['occurrenceID'])
        missing = emof_df[~emof_df['occurrenceID'].isin(occurrence_ids)]
        for occurrence_id in missing['occurrenceID'].unique():
            orphans.append({
                'table': 'emof',
                'record_id': '(multiple)',
                'field': 'occurrenceID',
                'value': occurrence_id,
            })

    return orphans


def find_unmatched_taxa(matches: Optional[dict]) -> list[str]:
    """Names that were looked up in WoRMS without a match, sorted."""
    if not matches:
        return []
    return sorted(name for name, record in matches.items() if not record)
