import json
from datetime import datetime

import pandas as pd
import pytest
import requests

from zoogon.config import OutputConfig, PipelineConfig, StationMetadata
from zoogon.samples import build_sample_index


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, content=None,
                 content_type='application/json'):
        self.status_code = status_code
        self.headers = {'Content-Type': content_type}
        if content is not None:
            self.content = content.encode('utf-8') if isinstance(content, str) else content
        elif payload is not None:
            self.content = json.dumps(payload).encode('utf-8')
        else:
            self.content = b''

    def json(self):
        return json.loads(self.content.decode('utf-8'))

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


@pytest.fixture
def station():
    return StationMetadata(
        locality='LTER-MC (Mare Chiara)',
        country='Italy',
        country_code='IT',
        state_province='Campania',
        water_body='Gulf of Naples, Tyrrhenian Sea',
        minimum_depth_m=0,
        maximum_depth_m=50,
        sampling_protocol='Vertical tow, 200 um mesh net',
    )


@pytest.fixture
def config(tmp_path, station):
    return PipelineConfig(
        data_dir=tmp_path / 'inbox',
        output_dir=tmp_path / 'output',
        station=station,
        output=OutputConfig(mode='csv', qa_workbook=False),
    )


@pytest.fixture
def wide_matrix():
    """Three samples headed by differently written sample ids."""
    return pd.DataFrame({
        'taxa': ['Acartia clausi Giesbrecht, 1889', 'Clupeidae n.i.', 'Oithona+Oncaea', 'Larvae n.i.'],
        'stage': ['adults', 'eggs', None, 'larvae'],
        'MC 1': [12.5, 0, 3, None],
        'mc_2': [4, '', '1,5', 0],
        'Mc3': [None, 2, 0, 7],
    })


@pytest.fixture
def sample_index_raw():
    return pd.DataFrame({
        'id': ['MC1', 'mc 2', 'mc_3', 'MC 4'],
        'date': [43473, 43480, '2019-01-22', datetime(2019, 1, 29)],
        'volume': [10.5, 11, 9.8, 12],
    })


@pytest.fixture
def sample_index(sample_index_raw):
    return build_sample_index(sample_index_raw, id_col='id', date_col='date', volume_col='volume')
