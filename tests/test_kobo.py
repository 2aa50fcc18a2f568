from unittest.mock import Mock

import pytest
import requests

from conftest import FakeResponse
from zoogon.config import KoboConfig, PipelineConfig
from zoogon.kobo import (
    KoboDownloadError,
    build_data_url,
    get_kobo_data,
    ingest_surveys,
    parse_xml_page,
)
from zoogon.schema import DataQualityError


def _page(ids):
    return FakeResponse(payload={'count': 7, 'results': [{'_id': i, 'site': 'MC'} for i in ids]})


def _download(*responses, **kwargs):
    session = Mock()
    session.get.side_effect = list(responses)
    params = dict(asset_id='aBc123', username='user', password='secret',
                  page_size=2, max_retries=1, backoff=0, session=session)
    params.update(kwargs)
    return get_kobo_data(**params), session


def test_paginates_until_short_page():
    records, session = _download(_page([1, 2]), _page([3, 4]), _page([5, 6]), _page([7]))

    assert [r['_id'] for r in records] == [1, 2, 3, 4, 5, 6, 7]
    assert session.get.call_count == 4
    starts = [call.kwargs['params']['start'] for call in session.get.call_args_list]
    assert starts == [0, 2, 4, 6]

    first = session.get.call_args_list[0]
    assert first.args[0] == 'https://eu.kobotoolbox.org/api/v2/assets/aBc123/data.json'
    assert first.kwargs['params']['limit'] == 2
    assert first.kwargs['auth'] == ('user', 'secret')


def test_empty_last_page():
    records, session = _download(_page([1, 2]), _page([]))
    assert len(records) == 2
    assert session.get.call_count == 2


def test_duplicate_submission_ids_raise():
    with pytest.raises(DataQualityError):
        _download(_page([1, 2]), _page([2]))


def test_duplicate_stops_download_on_first_repeat():
    session = Mock()
    session.get.side_effect = [_page([1, 2]), _page([2, 3]), _page([4, 5]), _page([6])]

    with pytest.raises(DataQualityError, match='record 2'):
        get_kobo_data(asset_id='aBc123', username='user', password='secret',
                      page_size=2, max_retries=0, backoff=0, session=session)
    assert session.get.call_count == 2


def test_duplicate_within_one_page_raises():
    with pytest.raises(DataQualityError):
        _download(_page([1, 1]), _page([]))


def test_connection_error_aborts_download():
    with pytest.raises(KoboDownloadError):
        _download(_page([1, 2]), requests.exceptions.ConnectionError('reset'),
                  requests.exceptions.ConnectionError('reset'))


def test_transient_error_is_retried():
    records, session = _download(_page([1, 2]), FakeResponse(status_code=502), _page([3]))
    assert len(records) == 3
    assert session.get.call_count == 3


def test_unauthorized_aborts_download():
    with pytest.raises(KoboDownloadError):
        _download(FakeResponse(status_code=401))


def test_html_response_aborts_download():
    with pytest.raises(KoboDownloadError):
        _download(FakeResponse(content='<html>login</html>', content_type='text/html; charset=utf-8'))


def test_page_without_results_aborts_download():
    with pytest.raises(KoboDownloadError):
        _download(FakeResponse(payload={'detail': 'Not found.'}))


def test_xml_pages():
    body = (
        '<root><count>2</count><results>'
        '<list-item><_id>1</_id><site>MC</site></list-item>'
        '<list-item><_id>2</_id><site>MC</site></list-item>'
        '</results></root>'
    )
    records, _ = _download(FakeResponse(content=body, content_type='application/xml'),
                           fmt='xml', page_size=5)
    assert records == [{'_id': '1', 'site': 'MC'}, {'_id': '2', 'site': 'MC'}]


def test_xml_empty_element_is_absent_like_json():
    page = parse_xml_page(
        '<root><results>'
        '<list-item><_id>1</_id><group_taxa></group_taxa><note /></list-item>'
        '</results></root>'
    )
    assert page['results'] == [{'_id': '1'}]


def test_malformed_xml():
    with pytest.raises(KoboDownloadError):
        parse_xml_page('<root><results>')


@pytest.mark.parametrize('kwargs', [
    {'asset_id': ''},
    {'username': None},
    {'password': 42},
    {'fmt': 'csv'},
    {'page_size': 0},
])
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        _download(**kwargs)


def test_build_data_url():
    assert build_data_url('kf.kobotoolbox.org/', 'x1') == 'https://kf.kobotoolbox.org/api/v2/assets/x1/data.json'
    assert build_data_url('http://localhost:8000', 'x1', 'xml') == 'http://localhost:8000/api/v2/assets/x1/data.xml'


def test_ingest_surveys_flattens_submissions(tmp_path):
    config = PipelineConfig(
        data_dir=tmp_path, output_dir=tmp_path,
        kobo=KoboConfig(asset_id='aBc123', username='user', password='secret', page_size=10),
    )
    session = Mock()
    session.get.return_value = FakeResponse(payload={'results': [
        {'_id': 11, 'group_cruise/date': '2019-01-08',
         'group_taxa': [{'group_taxa/count': '3'}]},
    ]})

    raw = ingest_surveys(config, session=session)
    assert list(raw.columns) == ['submission_id', 'group_cruise/date', 'group_taxa.0.group_taxa/count']
    assert raw['submission_id'].tolist() == [11]
