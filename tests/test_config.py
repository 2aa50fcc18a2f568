from pathlib import Path

import pytest

from zoogon.config import DEFAULT_CONFIG_PATH, load_config

CONFIG = """
default:
  data_dir: inbox
  output_dir: output
  station:
    locality: LTER-MC
  worms:
    enabled: false
    max_retries: 3
  kobo:
    asset_id: ${ZOOGON_TEST_ASSET}
    username: ${ZOOGON_TEST_USER}
  output:
    mode: csv

production:
  output_dir: /data/dwc
  worms:
    enabled: true
  output:
    mode: parquet
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'config.yml'
    path.write_text(CONFIG, encoding='utf-8')
    return path


def test_default_profile(config_file):
    config = load_config(config_file)
    assert config.profile == 'default'
    assert config.data_dir == config_file.parent / 'inbox'
    assert config.station.locality == 'LTER-MC'
    assert config.station.decimal_latitude == 40.81
    assert config.output.mode == 'csv'
    assert config.worms.enabled is False


def test_production_profile_merges_over_default(config_file):
    config = load_config(config_file, profile='production')
    assert config.output_dir == Path('/data/dwc')
    assert config.data_dir == config_file.parent / 'inbox'
    assert config.worms.enabled is True
    assert config.worms.max_retries == 3
    assert config.output.mode == 'parquet'


def test_environment_placeholders(config_file, monkeypatch):
    monkeypatch.setenv('ZOOGON_TEST_ASSET', 'aBc123')
    monkeypatch.delenv('ZOOGON_TEST_USER', raising=False)
    config = load_config(config_file)
    assert config.kobo.asset_id == 'aBc123'
    assert config.kobo.username is None


def test_unknown_profile(config_file):
    with pytest.raises(ValueError):
        load_config(config_file, profile='staging')


def test_unknown_keys(tmp_path):
    path = tmp_path / 'config.yml'
    path.write_text("default:\n  worms:\n    retries: 3\n", encoding='utf-8')
    with pytest.raises(ValueError):
        load_config(path)


def test_unsupported_output_mode(tmp_path):
    path = tmp_path / 'config.yml'
    path.write_text("default:\n  output:\n    mode: xlsx\n", encoding='utf-8')
    with pytest.raises(ValueError):
        load_config(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / 'missing.yml')


def test_repository_config_loads():
    config = load_config(DEFAULT_CONFIG_PATH, profile='production')
    assert config.output.mode == 'parquet'
    assert config.station.decimal_longitude == -14.25
