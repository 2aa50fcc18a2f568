from types import SimpleNamespace

import pandas as pd
import pytest

from zoogon import export
from zoogon.config import OUTPUT_MODES
from zoogon.export import generate_run_report, save_to_csv, write_darwin_core


def test_save_to_csv_line_endings(tmp_path):
    path = save_to_csv(pd.DataFrame({'eventID': ['mc1', 'mc2']}), tmp_path / 'sub' / 'event.csv')
    assert path.read_bytes() == b'eventID\nmc1\nmc2\n'


def test_write_darwin_core_rejects_mode_first(tmp_path):
    tables = SimpleNamespace(events=pd.DataFrame(), occurrences=pd.DataFrame(), emof=pd.DataFrame())
    with pytest.raises(ValueError):
        write_darwin_core(tables, tmp_path, mode='json')
    assert list(tmp_path.iterdir()) == []


def test_output_modes_shared_with_config():
    assert export.OUTPUT_MODES is OUTPUT_MODES


def test_run_report(tmp_path):
    path = generate_run_report('mc_test', {
        'outcome': 'failed',
        'error': 'DataQualityError: eventIDs map to more than one eventDate',
        'events': 3,
    }, tmp_path)
    text = path.read_text(encoding='utf-8')
    assert path.name == 'mc_test_run_report.md'
    assert '✗ failed' in text
    assert 'Error: DataQualityError' in text
    assert '- Events: 3' in text
