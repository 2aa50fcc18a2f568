"""
Survey submission download from the KoboToolbox API (v2).

Submissions are fetched page by page with basic authentication until a
page comes back shorter than the page size. A failed page aborts the
download with KoboDownloadError; partial results are never returned.
"""

import json
import logging
import xml.etree.ElementTree as ET
from collections import Counter
from typing import Optional

import pandas as pd
import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from zoogon.flatten import flatten_submissions
from zoogon.schema import DataQualityError

logger = logging.getLogger(__name__)

KOBO_FORMATS = ('json', 'xml')
KOBO_PAGE_SIZE = 30000


class KoboDownloadError(RuntimeError):
    """The submission download failed and was aborted."""


class KoboServerError(requests.exceptions.HTTPError):
    """HTTP 429 or 5xx from KoboToolbox; worth retrying."""


def _require_string(value, name: str) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{name} entered is not a string")
    if not value.strip():
        raise ValueError(f"{name} empty")


def build_data_url(url: str, asset_id: str, fmt: str = 'json') -> str:
    """https://<url>/api/v2/assets/<asset_id>/data.<fmt>"""
    host = url.strip().rstrip('/')
    if '://' not in host:
        host = f"https://{host}"
    return f"{host}/api/v2/assets/{asset_id}/data.{fmt}"


# ============================================================
# RESPONSE PARSING
# ============================================================

def _xml_to_python(elem):
    children = list(elem)
    if not children:
        text = (elem.text or '').strip()
        return text or None
    if all(child.tag == 'list-item' for child in children):
        return [_xml_to_python(child) for child in children]

    value = {}
    for child in children:
        item = _xml_to_python(child)
        # Empty elements are unanswered fields, absent from the JSON export too
        if item is None:
            continue
        if child.tag in value:
            if not isinstance(value[child.tag], list):
                value[child.tag] = [value[child.tag]]
            value[child.tag].append(item)
        else:
            value[child.tag] = item
    return value


def parse_xml_page(text: str) -> dict:
    """
    Parse an XML data page into the same {'results': [...]} shape as JSON.

    Raises:
        KoboDownloadError: If the body is not well-formed XML
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise KoboDownloadError(f"Malformed XML page: {e}") from e

    page = _xml_to_python(root)
    if not isinstance(page, dict):
        return {'results': []}
    results = page.get('results')
    if results is None:
        results = []
    elif isinstance(results, dict):
        # <results><item>..</item><item>..</item></results>
        records = list(results.values())
        results = records[0] if len(records) == 1 and isinstance(records[0], list) else records
    page['results'] = results
    return page


def parse_page(response, encoding: str = 'UTF-8', start: int = 0) -> list:
    """
    Extract the submission records of one page.

    Raises:
        KoboDownloadError: On HTML or unknown content types, bodies that
            cannot be decoded, or pages without a results list
    """
    content_type = response.headers.get('Content-Type', '')
    try:
        text = response.content.decode(encoding)
    except UnicodeDecodeError as e:
        raise KoboDownloadError(f"Page starting at record {start} is not {encoding}: {e}") from e

    if 'json' in content_type:
        try:
            page = json.loads(text)
        except ValueError as e:
            raise KoboDownloadError(f"Malformed JSON on page starting at record {start}: {e}") from e
    elif 'xml' in content_type:
        page = parse_xml_page(text)
    elif 'html' in content_type:
        raise KoboDownloadError(f"Unexpected HTML response for page starting at record {start}")
    else:
        raise KoboDownloadError(
            f"Unexpected content type '{content_type}' for page starting at record {start}"
        )

    results = page.get('results') if isinstance(page, dict) else None
    if not isinstance(results, list):
        raise KoboDownloadError(f"Page starting at record {start} has no results list")
    return results


# ============================================================
# DOWNLOAD
# ============================================================

def get_kobo_data(asset_id: str,
                  username: str,
                  password: str,
                  url: str = 'eu.kobotoolbox.org',
                  encoding: str = 'UTF-8',
                  fmt: str = 'json',
                  page_size: int = KOBO_PAGE_SIZE,
                  timeout: float = 60,
                  max_retries: int = 3,
                  backoff: float = 1.0,
                  session=None) -> list:
    """
    Download all submissions of a KoboToolbox form.

    Args:
        asset_id: Form asset id
        username: Account username
        password: Account password
        url: KoboToolbox server
        encoding: Encoding of the response bodies
        fmt: 'json' or 'xml'
        page_size: Records requested per page (limit)
        timeout: Seconds per request
        max_retries: Retries per page on connection errors, timeouts, 429 and 5xx
        backoff: Multiplier for the exponential wait between retries
        session: requests.Session (or compatible)

    Returns:
        List of submission dicts in download order

    Raises:
        ValueError: On invalid arguments
        KoboDownloadError: If a page cannot be retrieved or parsed
        DataQualityError: If a submission id appears more than once
    """
    _require_string(url, 'url')
    _require_string(username, 'username')
    _require_string(password, 'password')
    _require_string(asset_id, 'asset_id')
    if fmt not in KOBO_FORMATS:
        raise ValueError(f"format must be one of {KOBO_FORMATS}, got {fmt!r}")
    if not isinstance(page_size, int) or page_size <= 0:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    session = session or requests.Session()
    base_url = build_data_url(url, asset_id, fmt)
    logger.info("Starting data retrieval from %s", base_url)

    def get_page(start: int):
        response = session.get(
            base_url,
            params={'limit': page_size, 'start': start},
            auth=(username, password),
            timeout=timeout,
        )
        if response.status_code == 429 or response.status_code >= 500:
            raise KoboServerError(f"KoboToolbox returned HTTP {response.status_code}")
        response.raise_for_status()
        return response

    retrying = Retrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=backoff, max=60),
        retry=retry_if_exception_type((
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
            KoboServerError,
        )),
        reraise=True,
    )

    all_results = []
    seen_ids = set()
    start = 0
    while True:
        logger.info("Retrieving page starting at record %d", start)
        try:
            response = retrying(get_page, start)
        except requests.exceptions.RequestException as e:
            raise KoboDownloadError(
                f"Download aborted on page starting at record {start}: {e}"
            ) from e

        results = parse_page(response, encoding=encoding, start=start)
        page_ids = Counter(str(r['_id']) for r in results if isinstance(r, dict) and r.get('_id') is not None)
        duplicated = sorted(i for i, n in page_ids.items() if n > 1 or i in seen_ids)
        if duplicated:
            raise DataQualityError(
                f"{len(duplicated)} submission ids retrieved more than once "
                f"(page starting at record {start}): {duplicated[:10]}"
            )
        seen_ids.update(page_ids)
        all_results.extend(results)
        logger.info("Total records retrieved so far: %d", len(all_results))

        if len(results) < page_size:
            break
        start += page_size

    logger.info("Data retrieval complete. Total records retrieved: %d", len(all_results))
    return all_results


def ingest_surveys(config, session=None) -> pd.DataFrame:
    """
    Download the survey submissions named in config.kobo and flatten them.

    Returns:
        One row per submission, '_id' renamed to 'submission_id'
    """
    kobo = config.kobo
    submissions = get_kobo_data(
        asset_id=kobo.asset_id,
        username=kobo.username,
        password=kobo.password,
        url=kobo.url,
        encoding=kobo.encoding,
        fmt=kobo.format,
        page_size=kobo.page_size,
        timeout=kobo.timeout,
        max_retries=kobo.max_retries,
        session=session,
    )
    logger.info("Converting %d survey submissions to tabular format", len(submissions))
    raw = flatten_submissions(submissions)
    return raw.rename(columns={'_id': 'submission_id'})
