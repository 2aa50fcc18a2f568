"""
Taxonomic matching against the World Register of Marine Species (WoRMS).

Each distinct name is looked up once per run with the REST endpoint
AphiaRecordsByMatchNames. Transient failures (connection errors, timeouts,
HTTP 429 and 5xx) are retried with exponential backoff; anything still
failing after that leaves the name unmatched.
"""

import json
import logging
from typing import Iterable, Optional

import pandas as pd
import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

WORMS_REST_URL = 'https://www.marinespecies.org/rest'

# Fields of the Aphia record kept in the taxonomicMatch column
MATCH_FIELDS = [
    'AphiaID',
    'scientificname',
    'authority',
    'status',
    'rank',
    'valid_AphiaID',
    'valid_name',
    'lsid',
    'match_type',
    'kingdom',
    'phylum',
    'class',
    'order',
    'family',
    'genus',
]


class WormsServerError(requests.exceptions.HTTPError):
    """HTTP 429 or 5xx from WoRMS; worth retrying."""


def best_match(records: list) -> Optional[dict]:
    """Pick the first exact match, else the first candidate."""
    candidates = [r for r in records if isinstance(r, dict)]
    if not candidates:
        return None
    for record in candidates:
        if record.get('match_type') == 'exact':
            return record
    return candidates[0]


def trim_record(record: dict) -> dict:
    return {key: record.get(key) for key in MATCH_FIELDS}


def format_match(record: Optional[dict]) -> Optional[str]:
    """Serialize a match record as JSON with sorted keys, or None if unmatched."""
    if not record:
        return None
    return json.dumps(record, sort_keys=True, ensure_ascii=False)


class WormsMatcher:
    """
    Match names to WoRMS, caching one result per distinct name.

    Args:
        base_url: WoRMS REST root
        timeout: Seconds per request
        max_retries: Retries after the first attempt
        backoff: Multiplier for the exponential wait between attempts
        marine_only: Restrict matches to marine taxa
        session: requests.Session (or compatible) to send requests with
    """

    def __init__(self, base_url: str = WORMS_REST_URL, timeout: float = 30,
                 max_retries: int = 3, backoff: float = 1.0, marine_only: bool = False,
                 session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.marine_only = marine_only
        self.session = session or requests.Session()
        self.cache: dict = {}
        self.requests_sent = 0

    @classmethod
    def from_config(cls, worms_config, session=None) -> 'WormsMatcher':
        return cls(
            base_url=worms_config.base_url,
            timeout=worms_config.timeout,
            max_retries=worms_config.max_retries,
            backoff=worms_config.backoff,
            marine_only=worms_config.marine_only,
            session=session,
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff, max=30),
            retry=retry_if_exception_type((
                requests.exceptions.ConnectionError,
                requests.exceptions.Timeout,
                WormsServerError,
            )),
            reraise=True,
        )

    def _fetch(self, name: str) -> list:
        self.requests_sent += 1
        response = self.session.get(
            f"{self.base_url}/AphiaRecordsByMatchNames",
            params={
                'scientificnames[]': name,
                'marine_only': 'true' if self.marine_only else 'false',
            },
            timeout=self.timeout,
        )
        if response.status_code == 429 or response.status_code >= 500:
            raise WormsServerError(f"WoRMS returned HTTP {response.status_code} for '{name}'")
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return []

        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected WoRMS response for '{name}': {type(payload).__name__}")
        # One list of candidates per requested name
        if payload and isinstance(payload[0], list):
            return payload[0]
        return payload

    def match(self, name) -> Optional[dict]:
        """
        Return the trimmed best-match record for a name, or None.

        Failures are logged at WARNING and never raised.
        """
        if name is None or (not isinstance(name, str) and pd.isna(name)) or not str(name).strip():
            return None
        name = str(name)
        if name in self.cache:
            return self.cache[name]

        try:
            candidates = self._retrying()(self._fetch, name)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("WoRMS lookup failed for '%s': %s", name, e)
            candidates = []

        record = best_match(candidates)
        result = trim_record(record) if record else None
        if result is None:
            logger.debug("No WoRMS match for '%s'", name)
        self.cache[name] = result
        return result

    def match_names(self, names: Iterable) -> dict:
        """Match every distinct non-null name. Returns {name: record or None}."""
        matches = {}
        for name in names:
            if name is None or (not isinstance(name, str) and pd.isna(name)) or name in matches:
                continue
            matches[name] = self.match(name)

        n_matched = sum(1 for r in matches.values() if r)
        logger.info("WoRMS matched %d of %d names", n_matched, len(matches))
        return matches
