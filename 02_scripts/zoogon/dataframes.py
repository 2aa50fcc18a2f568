"""
DataFrame creation utilities for the Darwin Core tables.

Functions for deriving the event, occurrence and extended
measurement-or-fact (eMoF) tables from the joined long abundance records.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from zoogon.config import StationMetadata
from zoogon.schema import (
    EVENT_COLUMNS,
    OCCURRENCE_COLUMNS,
    EMOF_COLUMNS,
    MEASUREMENT_EXCLUDED_COLUMNS,
    DataQualityError,
    conform_columns,
    measurement_vocabulary,
    validate_occurrences,
)
from zoogon.taxonomy import add_genus_species
from zoogon.worms import format_match

logger = logging.getLogger(__name__)

BASIS_OF_RECORD = 'HumanObservation'


@dataclass
class DarwinCoreTables:
    """The three linked output tables plus the occurrence records they derive from."""
    events: pd.DataFrame
    occurrences: pd.DataFrame
    emof: pd.DataFrame
    records: pd.DataFrame
    matches: Optional[dict] = None


# ============================================================
# HELPERS
# ============================================================

def _iso_date(value) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return pd.Timestamp(value).date().isoformat()


def _clean_stage(value) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def format_measurement_value(value) -> Optional[str]:
    """Format a measurement as a string; integral floats lose the '.0'."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float):
        if value == int(value):
            return str(int(value))
        return str(float(value))
    text = str(value).strip()
    return text or None


def clean_names(columns) -> list[str]:
    """
    Convert column names to unique snake_case names.

    'group_cruise/Station Name' -> 'group_cruise_station_name'
    """
    seen = {}
    cleaned = []
    for col in columns:
        name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', str(col))
        name = re.sub(r'[^0-9a-zA-Z]+', '_', name).strip('_').lower()
        if not name:
            name = 'x'
        if name[0].isdigit():
            name = f"x{name}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        cleaned.append(name)
    return cleaned


# ============================================================
# OCCURRENCE RECORDS
# ============================================================

def prepare_occurrence_records(joined: pd.DataFrame,
                               taxon_col: str = 'taxa',
                               stage_col: str = 'stage',
                               value_col: str = 'ind_m3') -> pd.DataFrame:
    """
    Turn joined long records into occurrence records with Darwin Core terms.

    Rules:
        - records without a sample index entry have no eventID and cannot
          be published
        - records without an abundance value are omitted, never fabricated
        - value > 0 -> 'present', value <= 0 -> 'absent'
        - rows are ordered by eventID, then by position in the source matrix,
          and occurrenceID = eventID + '-occ' + running number over that order
    """
    df = joined.copy()
    df = df.rename(columns={'sample_id': 'eventID', 'date': 'eventDate'})
    if '_merge_status' in df.columns:
        df.loc[df['_merge_status'] == 'abundance_only', 'eventID'] = None

    no_event = df['eventID'].isna() & df[taxon_col].notna()
    if no_event.any():
        logger.warning("%d abundance records without eventID left out of the occurrence table",
                       int(no_event.sum()))

    has_taxon = df[taxon_col].notna() & df['eventID'].notna()
    no_value = has_taxon & df[value_col].isna()
    if no_value.any():
        logger.info("%d records without abundance value omitted", int(no_value.sum()))

    df = df[has_taxon & df[value_col].notna()]

    df = add_genus_species(df, taxon_col=taxon_col, out_col='scientificName')
    df['verbatimIdentification'] = df[taxon_col]
    df['lifeStage'] = df[stage_col].map(_clean_stage) if stage_col in df.columns else None
    df['individualCount'] = df[value_col].astype(float)

    records = df[['eventID', 'eventDate', 'scientificName', 'verbatimIdentification',
                  'lifeStage', 'individualCount', 'row_order']]
    records = records.drop_duplicates(
        subset=['eventID', 'eventDate', 'verbatimIdentification', 'lifeStage', 'individualCount'],
        keep='first',
    )
    records = records.sort_values(['eventID', 'row_order'], kind='mergesort').reset_index(drop=True)

    records['occurrenceStatus'] = records['individualCount'].map(
        lambda v: 'present' if v > 0 else 'absent'
    )
    records['occurrenceID'] = [
        f"{event_id}-occ{i}" for i, event_id in enumerate(records['eventID'], start=1)
    ]
    records['basisOfRecord'] = BASIS_OF_RECORD
    records['scientificNameID'] = None
    records['taxonomicMatch'] = None

    return records


def attach_taxonomic_matches(records: pd.DataFrame, matches: dict) -> pd.DataFrame:
    """
    Add scientificNameID and taxonomicMatch from WoRMS matches keyed by scientificName.

    Names missing from matches, or matched to None, stay unmatched.
    """
    records = records.copy()
    records['scientificNameID'] = records['scientificName'].map(
        lambda name: (matches.get(name) or {}).get('lsid')
    )
    records['taxonomicMatch'] = records['scientificName'].map(
        lambda name: format_match(matches.get(name))
    )
    return records


# ============================================================
# DARWIN CORE TABLES
# ============================================================

def create_event_df(joined: pd.DataFrame,
                    station: StationMetadata,
                    sample_index: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Create the event table: one row per eventID with station metadata.

    Sample index entries without abundance records are kept as events;
    abundance records without a sample index entry are not. If
    sample_index is given, its entries are added even when the joined
    table does not carry them.

    Raises:
        DataQualityError: If an eventID maps to more than one eventDate
    """
    df = joined
    if '_merge_status' in df.columns:
        df = df[df['_merge_status'] != 'abundance_only']
    if sample_index is not None:
        df = pd.concat([df, sample_index], ignore_index=True)
    df = df.rename(columns={'sample_id': 'eventID', 'date': 'eventDate'})
    df = df[df['eventID'].notna()]

    if len(df) == 0:
        return pd.DataFrame(columns=EVENT_COLUMNS)

    n_dates = df.groupby('eventID')['eventDate'].nunique(dropna=False)
    conflicting = n_dates[n_dates > 1]
    if len(conflicting) > 0:
        details = {
            event_id: sorted(str(d) for d in df.loc[df['eventID'] == event_id, 'eventDate'].unique())
            for event_id in sorted(conflicting.index)[:10]
        }
        raise DataQualityError(
            f"{len(conflicting)} eventIDs map to more than one eventDate: {details}"
        )

    if 'filtered_volume_m3' not in df.columns:
        df = df.assign(filtered_volume_m3=float('nan'))
    # first() skips nulls, so a volume on any row of the event is kept
    events = (
        df.groupby('eventID', sort=True)
        .agg(eventDate=('eventDate', 'first'), sampleSizeValue=('filtered_volume_m3', 'first'))
        .reset_index()
    )

    events['eventDate'] = events['eventDate'].map(_iso_date)
    events['decimalLatitude'] = station.decimal_latitude
    events['decimalLongitude'] = station.decimal_longitude
    events['geodeticDatum'] = station.geodetic_datum
    events['locality'] = station.locality
    events['country'] = station.country
    events['countryCode'] = station.country_code
    events['stateProvince'] = station.state_province
    events['waterBody'] = station.water_body
    events['minimumDepthInMeters'] = station.minimum_depth_m
    events['maximumDepthInMeters'] = station.maximum_depth_m
    events['samplingProtocol'] = station.sampling_protocol
    events['sampleSizeUnit'] = events['sampleSizeValue'].map(
        lambda v: station.sample_size_unit if v is not None and pd.notna(v) else None
    )

    return conform_columns(events, EVENT_COLUMNS)


def create_occurrence_df(records: pd.DataFrame) -> pd.DataFrame:
    """Create the occurrence table from occurrence records."""
    occurrences = conform_columns(records, OCCURRENCE_COLUMNS)
    if len(occurrences) > 0:
        validate_occurrences(occurrences)
    return occurrences


def create_emof_df(records: pd.DataFrame) -> pd.DataFrame:
    """
    Create the eMoF table: one row per measurable attribute per occurrence.

    Every record column except identifiers, names, status and taxonomic
    match columns becomes a measurementType. Null and empty values are
    dropped. Unit and remarks come from MEASUREMENT_VOCABULARY.
    """
    measured = [c for c in records.columns if c not in MEASUREMENT_EXCLUDED_COLUMNS]
    if len(records) == 0 or not measured:
        return pd.DataFrame(columns=EMOF_COLUMNS)

    base = records[['eventID', 'eventDate', 'occurrenceID'] + measured].copy()
    base['_occ_position'] = range(len(base))
    long_df = base.melt(
        id_vars=['eventID', 'eventDate', 'occurrenceID', '_occ_position'],
        value_vars=measured,
        var_name='measurementType',
        value_name='_value',
    )
    type_position = {col: i for i, col in enumerate(measured)}
    long_df['_type_position'] = long_df['measurementType'].map(type_position)
    long_df = long_df.sort_values(['_occ_position', '_type_position'], kind='mergesort')

    long_df['measurementValue'] = long_df['_value'].map(format_measurement_value)
    long_df = long_df[long_df['measurementValue'].notna()]

    vocabulary = long_df['measurementType'].map(measurement_vocabulary)
    long_df['measurementUnit'] = vocabulary.map(lambda v: v[0])
    long_df['measurementRemarks'] = vocabulary.map(lambda v: v[1])
    long_df['eventDate'] = long_df['eventDate'].map(_iso_date)

    return conform_columns(long_df, EMOF_COLUMNS).reset_index(drop=True)


def assemble_darwin_core(joined: pd.DataFrame,
                         station: StationMetadata,
                         matches: Optional[dict] = None,
                         sample_index: Optional[pd.DataFrame] = None,
                         records: Optional[pd.DataFrame] = None) -> DarwinCoreTables:
    """
    Derive the event, occurrence and eMoF tables from joined records.

    Args:
        joined: Output of join_sample_index
        station: Fixed station metadata for the event table
        matches: Optional WoRMS matches keyed by scientificName
        sample_index: Optional sample index whose entries all become events
        records: Output of prepare_occurrence_records, if already computed

    Returns:
        DarwinCoreTables
    """
    events = create_event_df(joined, station, sample_index=sample_index)
    if records is None:
        records = prepare_occurrence_records(joined)
    if matches is not None:
        records = attach_taxonomic_matches(records, matches)

    occurrences = create_occurrence_df(records)
    emof = create_emof_df(records)

    orphans = set(occurrences['eventID']) - set(events['eventID'])
    if orphans:
        raise DataQualityError(f"Occurrences reference unknown eventIDs: {sorted(orphans)[:10]}")

    logger.info("Assembled %d events, %d occurrences, %d measurements",
                len(events), len(occurrences), len(emof))
    return DarwinCoreTables(events=events, occurrences=occurrences, emof=emof,
                            records=records, matches=matches)
