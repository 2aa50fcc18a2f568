import json
from unittest.mock import Mock

import pytest
import requests

from conftest import FakeResponse
from zoogon.worms import MATCH_FIELDS, WormsMatcher, best_match, format_match

ACARTIA = {
    'AphiaID': 104251,
    'scientificname': 'Acartia clausi',
    'authority': 'Giesbrecht, 1889',
    'status': 'accepted',
    'rank': 'Species',
    'valid_AphiaID': 104251,
    'valid_name': 'Acartia clausi',
    'lsid': 'urn:lsid:marinespecies.org:taxname:104251',
    'match_type': 'exact',
    'kingdom': 'Animalia',
    'isMarine': 1,
}


def _matcher(*responses, max_retries=2):
    session = Mock()
    session.get.side_effect = list(responses)
    return WormsMatcher(max_retries=max_retries, backoff=0, session=session), session


def test_match_trims_record():
    matcher, session = _matcher(FakeResponse(payload=[[ACARTIA]]))
    record = matcher.match('Acartia clausi')

    assert list(record) == MATCH_FIELDS
    assert record['lsid'] == 'urn:lsid:marinespecies.org:taxname:104251'
    assert 'isMarine' not in record

    _, kwargs = session.get.call_args
    assert kwargs['params']['scientificnames[]'] == 'Acartia clausi'
    assert kwargs['params']['marine_only'] == 'false'
    assert kwargs['timeout'] == 30


def test_one_request_per_distinct_name():
    matcher, session = _matcher(
        FakeResponse(payload=[[ACARTIA]]),
        FakeResponse(status_code=204),
    )
    matches = matcher.match_names(['Acartia clausi', 'Larvae n.i.', 'Acartia clausi', None])

    assert session.get.call_count == 2
    assert matches['Acartia clausi']['AphiaID'] == 104251
    assert matches['Larvae n.i.'] is None
    assert None not in matches

    matcher.match('Larvae n.i.')
    assert session.get.call_count == 2


def test_connection_errors_are_retried_then_unmatched(caplog):
    matcher, session = _matcher(*[requests.exceptions.ConnectionError('down')] * 3, max_retries=2)

    with caplog.at_level('WARNING'):
        assert matcher.match('Acartia clausi') is None
    assert session.get.call_count == 3
    assert 'WoRMS lookup failed' in caplog.text


def test_server_errors_are_retried():
    matcher, session = _matcher(
        FakeResponse(status_code=503),
        FakeResponse(status_code=429),
        FakeResponse(payload=[[ACARTIA]]),
    )
    assert matcher.match('Acartia clausi')['AphiaID'] == 104251
    assert session.get.call_count == 3


def test_client_errors_are_not_retried():
    matcher, session = _matcher(FakeResponse(status_code=400))
    assert matcher.match('Acartia clausi') is None
    assert session.get.call_count == 1


def test_malformed_response_is_unmatched():
    matcher, _ = _matcher(FakeResponse(content='<html>oops</html>', content_type='text/html'))
    assert matcher.match('Acartia clausi') is None


def test_unexpected_payload_is_unmatched():
    matcher, _ = _matcher(FakeResponse(payload={'error': 'bad request'}))
    assert matcher.match('Acartia clausi') is None


def test_blank_names_are_not_looked_up():
    matcher, session = _matcher()
    assert matcher.match('') is None
    assert matcher.match(None) is None
    assert session.get.call_count == 0


def test_best_match_prefers_exact():
    fuzzy = {'AphiaID': 1, 'match_type': 'phonetic'}
    exact = {'AphiaID': 2, 'match_type': 'exact'}
    assert best_match([fuzzy, exact])['AphiaID'] == 2
    assert best_match([fuzzy])['AphiaID'] == 1
    assert best_match([]) is None


def test_format_match_is_deterministic():
    text = format_match({'lsid': 'urn:x', 'AphiaID': 7})
    assert text == format_match({'AphiaID': 7, 'lsid': 'urn:x'})
    assert json.loads(text) == {'AphiaID': 7, 'lsid': 'urn:x'}
    assert format_match(None) is None
