"""
Standard schemas for the zooplankton Darwin Core tables.

All datasets should use these schemas so that the event, occurrence and
eMoF tables from different years can be concatenated and published together.
"""

import pandas as pd


class DataQualityError(ValueError):
    """Raised when joined data violates referential or temporal integrity."""


# ============================================================
# VALID VALUES (use these constants to ensure consistency)
# ============================================================

OCCURRENCE_STATUS = {
    'present',         # Abundance > 0
    'absent',          # Abundance recorded as 0
}

LIFE_STAGES = {
    'adult',
    'adults',
    'juvenile',
    'juveniles',
    'larva',
    'larvae',
    'nauplii',
    'copepodites',
    'eggs',
    'ephyrae',
    'zoea',
    'megalopa',
    'polyps',
    'medusae',
}

# ============================================================
# SAMPLE INDEX SCHEMA
# ============================================================

SAMPLE_INDEX_COLUMNS = [
    'raw_id',              # Sample identifier as written: 'MC 1314'
    'sample_id',           # Cleaned join key: 'mc1314'
    'date',                # Sampling date
    'filtered_volume_m3',  # Volume of water filtered by the net
]

# ============================================================
# EVENT SCHEMA
# ============================================================

EVENT_COLUMNS = [
    'eventID',             # = sample_id
    'eventDate',           # ISO date (YYYY-MM-DD)
    'decimalLatitude',
    'decimalLongitude',
    'geodeticDatum',
    'locality',
    'country',
    'countryCode',
    'stateProvince',
    'waterBody',
    'minimumDepthInMeters',
    'maximumDepthInMeters',
    'samplingProtocol',
    'sampleSizeValue',     # Filtered volume
    'sampleSizeUnit',
]

# ============================================================
# OCCURRENCE SCHEMA
# ============================================================

OCCURRENCE_COLUMNS = [
    'eventID',             # Foreign key to event
    'occurrenceID',        # eventID + '-occ' + running number
    'scientificName',      # Standardized genus/species label
    'verbatimIdentification',  # Taxon label as written in the matrix
    'scientificNameID',    # WoRMS LSID (if matched)
    'taxonomicMatch',      # WoRMS best-match record as JSON (if matched)
    'lifeStage',
    'occurrenceStatus',    # present / absent
    'basisOfRecord',
]

# ============================================================
# EXTENDED MEASUREMENT OR FACT SCHEMA
# ============================================================

EMOF_COLUMNS = [
    'eventID',
    'eventDate',
    'occurrenceID',        # Foreign key to occurrence
    'measurementType',
    'measurementValue',
    'measurementUnit',
    'measurementRemarks',
]

# Columns of the occurrence records that are never turned into measurements
MEASUREMENT_EXCLUDED_COLUMNS = [
    'eventID',
    'eventDate',
    'occurrenceID',
    'scientificName',
    'verbatimIdentification',
    'scientificNameID',
    'taxonomicMatch',
    'occurrenceStatus',
    'basisOfRecord',
    'row_order',
]

# measurementType -> (measurementUnit, measurementRemarks)
MEASUREMENT_VOCABULARY = {
    'individualCount': (
        'individuals per cubic meter',
        'Abundance of the taxon in the sample, individuals per cubic meter of filtered water',
    ),
    'lifeStage': (
        'categorical',
        'Life stage of the counted individuals as recorded by the analyst',
    ),
}

DEFAULT_MEASUREMENT_UNIT = 'text'


def measurement_vocabulary(measurement_type: str) -> tuple:
    """Return (measurementUnit, measurementRemarks) for a measurement type."""
    return MEASUREMENT_VOCABULARY.get(measurement_type, (DEFAULT_MEASUREMENT_UNIT, None))


def _validate_value(value, valid_set: set, field_name: str, allow_empty: bool = True) -> str:
    """
    Validate that a value is in the allowed set.

    Args:
        value: The value to validate
        valid_set: Set of allowed values
        field_name: Name of the field (for error messages)
        allow_empty: If True, empty/None values are allowed

    Returns:
        The validated value

    Raises:
        ValueError: If value is not in valid_set
    """
    if allow_empty and (value is None or value == '' or (not isinstance(value, str) and pd.isna(value))):
        return value
    if value not in valid_set:
        raise ValueError(
            f"Invalid {field_name}: '{value}'. "
            f"Must be one of: {sorted(valid_set)}"
        )
    return value


def validate_occurrences(occurrence_df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate occurrence rows against schema constraints.

    Raises ValueError if any occurrenceStatus is invalid or an
    occurrenceID is repeated.
    """
    for _, row in occurrence_df.iterrows():
        _validate_value(row['occurrenceStatus'], OCCURRENCE_STATUS,
                       f"occurrenceStatus in {row['occurrenceID']}",
                       allow_empty=False)

    duplicated = occurrence_df['occurrenceID'][occurrence_df['occurrenceID'].duplicated()]
    if len(duplicated) > 0:
        raise ValueError(
            f"Duplicate occurrenceID values: {sorted(duplicated.unique())[:10]}"
        )
    return occurrence_df


def conform_columns(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    """Ensure all schema columns exist and return them in schema order."""
    df = df.copy()
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df[columns]
