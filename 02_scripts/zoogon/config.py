"""
Pipeline configuration.

Profiles live in config.yml at the repository root. The .env file (if
any) is loaded first so that ${VAR} placeholders in the YAML expand to
credentials kept out of version control.

Usage:
    from zoogon.config import load_config
    config = load_config(profile='production')
    config.station.decimal_latitude  # 40.81
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = REPO_ROOT / 'config.yml'
DEFAULT_PROFILE = 'default'

OUTPUT_MODES = ('csv', 'parquet')


@dataclass
class StationMetadata:
    """Fixed metadata of the sampling station, copied onto every event."""
    decimal_latitude: float = 40.81
    decimal_longitude: float = -14.25
    geodetic_datum: str = 'EPSG:4326'
    locality: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    state_province: Optional[str] = None
    water_body: Optional[str] = None
    minimum_depth_m: Optional[float] = None
    maximum_depth_m: Optional[float] = None
    sampling_protocol: Optional[str] = None
    sample_size_unit: str = 'cubic meters'


@dataclass
class WormsConfig:
    enabled: bool = False
    base_url: str = 'https://www.marinespecies.org/rest'
    timeout: float = 30
    max_retries: int = 3
    backoff: float = 1.0
    marine_only: bool = False


@dataclass
class KoboConfig:
    url: str = 'eu.kobotoolbox.org'
    asset_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    encoding: str = 'UTF-8'
    format: str = 'json'
    page_size: int = 30000
    timeout: float = 120
    max_retries: int = 3


@dataclass
class OutputConfig:
    mode: str = 'csv'
    qa_workbook: bool = True


@dataclass
class PipelineConfig:
    profile: str = DEFAULT_PROFILE
    data_dir: Path = REPO_ROOT / '00_inbox'
    output_dir: Path = REPO_ROOT / '01_output'
    station: StationMetadata = field(default_factory=StationMetadata)
    worms: WormsConfig = field(default_factory=WormsConfig)
    kobo: KoboConfig = field(default_factory=KoboConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _expand(value):
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v) for v in value]
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        # Unset variables are left as '${VAR}' by expandvars
        if expanded.startswith('${') and expanded.endswith('}'):
            return None
        return expanded
    return value


def _section(cls, values: Optional[dict]):
    values = values or {}
    known = set(cls.__dataclass_fields__)
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys for {cls.__name__}: {unknown}")
    return cls(**values)


def _resolve_dir(value, base: Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base / path


def load_config(path=None, profile: str = DEFAULT_PROFILE) -> PipelineConfig:
    """
    Load a configuration profile.

    Non-default profiles are merged over the default profile, so they only
    need to list what differs.

    Args:
        path: Path to config.yml (defaults to the repository root)
        profile: Profile name

    Returns:
        PipelineConfig

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the profile is unknown or a section has unknown keys
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    load_dotenv(config_path.parent / '.env')

    with open(config_path, 'r', encoding='utf-8') as f:
        profiles = yaml.safe_load(f) or {}

    if profile not in profiles:
        raise ValueError(f"Unknown profile '{profile}'. Available: {sorted(profiles)}")

    values = profiles.get(DEFAULT_PROFILE) or {}
    if profile != DEFAULT_PROFILE:
        values = _deep_merge(values, profiles[profile] or {})
    values = _expand(values)

    output = _section(OutputConfig, values.get('output'))
    if output.mode not in OUTPUT_MODES:
        raise ValueError(f"Unsupported output mode '{output.mode}'. Must be one of: {OUTPUT_MODES}")

    base = config_path.parent
    config = PipelineConfig(
        profile=profile,
        data_dir=_resolve_dir(values.get('data_dir', '00_inbox'), base),
        output_dir=_resolve_dir(values.get('output_dir', '01_output'), base),
        station=_section(StationMetadata, values.get('station')),
        worms=_section(WormsConfig, values.get('worms')),
        kobo=_section(KoboConfig, values.get('kobo')),
        output=output,
    )
    logger.info("Loaded config profile '%s' from %s", profile, config_path)
    return config
