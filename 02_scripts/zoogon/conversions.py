"""
Conversion utilities for sampling dates and abundance values.
"""

import logging
import math
import numbers
import re
from datetime import date, datetime
from typing import Optional

import pandas as pd

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEL SERIAL DATES
# =============================================================================

# Day 0 of the Excel 1900 date system (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = pd.Timestamp('1899-12-30')

# Serials outside this range are not plausible sampling dates (1950 - 2100)
EXCEL_SERIAL_MIN = 18264
EXCEL_SERIAL_MAX = 73051

SERIAL_PATTERN = re.compile(r'^\d+(\.0+)?$')

# Placeholders used in the matrices for "not counted"
MISSING_VALUE_MARKERS = {'', '-', '--', 'na', 'n.a.', 'nd', 'n.d.', 'nan', 'none'}


def excel_serial_to_date(value) -> Optional[date]:
    """
    Convert an Excel serial day number to a calendar date.

    Args:
        value: Serial as int, float or digit string (e.g. 43105, '43105')

    Returns:
        date, or None if value is missing or not a serial
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not SERIAL_PATTERN.match(value):
            return None
        value = float(value)
    try:
        if pd.isna(value):
            return None
        serial = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(serial) or serial != int(serial):
        return None

    return (EXCEL_EPOCH + pd.to_timedelta(int(serial), unit='D')).date()


def is_excel_serial(value) -> bool:
    """True if value looks like an Excel serial date of a plausible sampling day."""
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Real):
        return math.isfinite(value) and value == int(value) and EXCEL_SERIAL_MIN <= value <= EXCEL_SERIAL_MAX
    if isinstance(value, str) and SERIAL_PATTERN.match(value.strip()):
        return EXCEL_SERIAL_MIN <= float(value) <= EXCEL_SERIAL_MAX
    return False


def parse_sample_date(value) -> Optional[date]:
    """
    Parse a sampling date from a matrix header or sample-index cell.

    Handles Excel serials, datetime/date/Timestamp objects and date strings
    (ISO 'YYYY-MM-DD' or day-first 'DD/MM/YYYY', 'DD.MM.YYYY').
    The same function is used on both sides of the date join so that keys
    are computed identically.

    Returns:
        date, or None if value is missing or unparseable
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if is_excel_serial(value):
        return excel_serial_to_date(value)
    if not isinstance(value, str):
        if pd.isna(value):
            return None
        logger.warning("Unparseable sample date: %r", value)
        return None

    text = value.strip()
    if not text:
        return None

    iso = re.match(r'^\d{4}-\d{2}-\d{2}', text)
    parsed = pd.to_datetime(text[:10] if iso else text, dayfirst=not iso, errors='coerce')
    if pd.isna(parsed):
        logger.warning("Unparseable sample date: %r", value)
        return None
    return parsed.date()


# =============================================================================
# ABUNDANCE VALUES
# =============================================================================

def parse_abundance_value(value) -> Optional[float]:
    """
    Convert an abundance cell to float.

    Blank cells and placeholders become None (never 0). Decimal commas
    are accepted.

    Returns:
        float, or None if the cell holds no count
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        if pd.isna(value):
            return None
        number = float(value)
    else:
        text = str(value).strip()
        if text.lower() in MISSING_VALUE_MARKERS:
            return None
        try:
            number = float(text.replace(',', '.'))
        except ValueError:
            number = None

    if number is None or not math.isfinite(number):
        logger.warning("Non-numeric abundance value treated as missing: %r", value)
        return None
    return number
