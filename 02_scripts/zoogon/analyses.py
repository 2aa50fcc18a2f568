"""
Summaries of occurrence records for exploratory analysis.
"""

import logging
from typing import Iterable, Optional

import pandas as pd

logger = logging.getLogger(__name__)


def _with_year(records: pd.DataFrame) -> pd.DataFrame:
    df = records.copy()
    df['eventDate'] = pd.to_datetime(df['eventDate'])
    df['year'] = df['eventDate'].dt.year
    return df


def abundance_summary(records: pd.DataFrame) -> pd.DataFrame:
    """
    Mean and standard deviation of individualCount per year and taxon.

    Returns:
        DataFrame with year, scientificName, mean_abundance, sd, n_samples,
        sorted by mean_abundance descending
    """
    df = _with_year(records)
    summary = (
        df.groupby(['year', 'scientificName'])['individualCount']
        .agg(mean_abundance='mean', sd='std', n_samples='count')
        .reset_index()
        .sort_values(['mean_abundance', 'year', 'scientificName'],
                     ascending=[False, True, True], kind='mergesort')
        .reset_index(drop=True)
    )
    return summary


def abundance_wide(records: pd.DataFrame) -> pd.DataFrame:
    """
    Event x taxon abundance matrix.

    Life stages of the same taxon are summed. Taxa not recorded in an
    event are NaN.
    """
    wide = records.pivot_table(
        index=['eventID', 'eventDate'],
        columns='scientificName',
        values='individualCount',
        aggfunc='sum',
    ).reset_index()
    wide.columns.name = None
    return wide.sort_values(['eventDate', 'eventID'], kind='mergesort').reset_index(drop=True)


def taxa_totals(records: pd.DataFrame, taxa: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Summed abundance per sampling date and taxon, for time series plots.

    Args:
        records: Occurrence records
        taxa: Restrict to these scientific names (default: all)
    """
    df = records.copy()
    if taxa is not None:
        taxa = list(taxa)
        missing = sorted(set(taxa) - set(df['scientificName']))
        if missing:
            logger.warning("Taxa not found in records: %s", missing)
        df = df[df['scientificName'].isin(taxa)]

    df['eventDate'] = pd.to_datetime(df['eventDate'])
    totals = (
        df.groupby(['eventDate', 'scientificName'])['individualCount']
        .sum()
        .reset_index()
        .sort_values(['eventDate', 'scientificName'], kind='mergesort')
        .reset_index(drop=True)
    )
    return totals


def records_from_tables(events: pd.DataFrame, occurrences: pd.DataFrame,
                        emof: pd.DataFrame) -> pd.DataFrame:
    """
    Rebuild occurrence records (eventDate, individualCount) from written tables.

    Used by the analysis scripts, which read the published files rather
    than rerunning the pipeline.
    """
    counts = emof[emof['measurementType'] == 'individualCount'][['occurrenceID', 'measurementValue']]
    counts = counts.rename(columns={'measurementValue': 'individualCount'})
    counts['individualCount'] = pd.to_numeric(counts['individualCount'], errors='coerce')

    records = (
        occurrences
        .merge(events[['eventID', 'eventDate']], on='eventID', how='left')
        .merge(counts, on='occurrenceID', how='left')
    )
    return records
