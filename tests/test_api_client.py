import asyncio
from unittest.mock import Mock

import pytest
import requests

from trading_dashboard.api.client import AnalysisApiClient
from trading_dashboard.config.schema import ApiConfig
from trading_dashboard.exceptions import TransportError


def _response(payload=None, status_code=200, content=b''):
    response = Mock()
    response.status_code = status_code
    response.content = content
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error", response=response)
    return response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return AnalysisApiClient('http://analysis.local:5000/', session=session)


class TestAnalysisApiClient:
    """Test the REST client against a mocked requests session."""

    def test_json_header_and_base_url(self, client, session):
        assert session.headers['Content-Type'] == 'application/json'
        assert client.base_url == 'http://analysis.local:5000'

    def test_analyze_posts_tickers_and_indicators(self, client, session):
        session.request.return_value = _response({'job_id': 'job-1'})

        result = asyncio.run(client.analyze_stocks(['TCS.NS'], ['RSI']))

        assert result == {'job_id': 'job-1'}
        session.request.assert_called_once_with(
            'POST', 'http://analysis.local:5000/analyze',
            json={'tickers': ['TCS.NS'], 'indicators': ['RSI']}, timeout=None,
        )

    def test_analyze_all_sends_empty_symbols(self, client, session):
        session.request.return_value = _response({'job_id': 'job-2'})

        asyncio.run(client.analyze_all_stocks())

        assert session.request.call_args.kwargs['json'] == {'symbols': []}

    def test_path_segments_are_quoted(self, client, session):
        session.request.return_value = _response({'status': 'running'})

        asyncio.run(client.get_job_status('a/b c'))

        assert session.request.call_args.args[1] == 'http://analysis.local:5000/status/a%2Fb%20c'

    def test_remove_from_watchlist_sends_body(self, client, session):
        session.request.return_value = _response({'message': 'removed'})

        asyncio.run(client.remove_from_watchlist('INFY.NS'))

        args, kwargs = session.request.call_args
        assert args == ('DELETE', 'http://analysis.local:5000/watchlist')
        assert kwargs['json'] == {'symbol': 'INFY.NS'}

    def test_http_error_carries_status(self, client, session):
        session.request.return_value = _response(status_code=404)

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(client.get_all_stocks())

        assert exc_info.value.status_code == 404
        assert exc_info.value.not_found
        assert exc_info.value.path == '/all-stocks'

    def test_connection_error_has_no_status(self, client, session):
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(client.get_all_stocks_progress())

        assert exc_info.value.status_code is None
        assert session.request.call_count == 1

    def test_invalid_json_is_transport_error(self, client, session):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        session.request.return_value = response

        with pytest.raises(TransportError):
            asyncio.run(client.get_watchlist())

    def test_download_report_saves_workbook(self, client, session, tmp_path):
        session.request.return_value = _response(content=b'PK\x03\x04')

        path = asyncio.run(client.download_report('TCS.NS', tmp_path / 'reports'))

        assert path == tmp_path / 'reports' / 'TCS.NS_analysis.xlsx'
        assert path.read_bytes() == b'PK\x03\x04'
        assert session.request.call_args.args[1].endswith('/report/TCS.NS/download')

    def test_from_config(self):
        client = AnalysisApiClient.from_config(ApiConfig(base_url='http://backend:8000', timeout_seconds=3))

        assert client.base_url == 'http://backend:8000'
        assert client.timeout == 3
        client.close()
