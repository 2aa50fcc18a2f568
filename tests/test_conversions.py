from datetime import date, datetime

import numpy as np
import pandas as pd
import pytest

from zoogon.conversions import (
    EXCEL_EPOCH,
    excel_serial_to_date,
    parse_abundance_value,
    parse_sample_date,
)


def test_excel_epoch():
    assert EXCEL_EPOCH == pd.Timestamp('1899-12-30')


@pytest.mark.parametrize('serial', [43473, 43473.0, '43473', np.int64(43473)])
def test_excel_serial_to_date(serial):
    assert excel_serial_to_date(serial) == date(2019, 1, 8)


def test_excel_serial_to_date_rejects_non_serials():
    assert excel_serial_to_date('2019-01-08') is None
    assert excel_serial_to_date(None) is None
    assert excel_serial_to_date(43473.5) is None


@pytest.mark.parametrize('value', [
    43473,
    '43473',
    '2019-01-08',
    '08/01/2019',
    '08.01.2019',
    datetime(2019, 1, 8, 10, 30),
    date(2019, 1, 8),
    pd.Timestamp('2019-01-08'),
])
def test_parse_sample_date(value):
    assert parse_sample_date(value) == date(2019, 1, 8)


@pytest.mark.parametrize('value', [None, '', 'not a date', pd.NaT, float('nan')])
def test_parse_sample_date_missing(value):
    assert parse_sample_date(value) is None


@pytest.mark.parametrize('value, expected', [
    (12.5, 12.5),
    (0, 0.0),
    ('3', 3.0),
    ('1,5', 1.5),
    (' 7.25 ', 7.25),
])
def test_parse_abundance_value(value, expected):
    assert parse_abundance_value(value) == expected


@pytest.mark.parametrize('value', [
    None, '', '-', 'nd', 'n.d.', float('nan'), 'lots',
    'inf', 'Infinity', '-inf', float('inf'), float('-inf'),
])
def test_parse_abundance_value_missing_is_never_zero(value):
    assert parse_abundance_value(value) is None


def test_parse_abundance_value_non_finite_warns(caplog):
    with caplog.at_level('WARNING', logger='zoogon.conversions'):
        assert parse_abundance_value('inf') is None
    assert 'Non-numeric abundance value' in caplog.text
