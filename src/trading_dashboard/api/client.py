"""
REST client for the stock analysis backend.

Every endpoint is a thin pass-through returning the decoded JSON body. The
blocking ``requests`` call runs on a worker thread so the event loop is only
suspended while a request is in flight. Any network failure, non-2xx status or
undecodable body is raised as TransportError; nothing is retried here.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..config.constants import API_DEFAULTS
from ..config.logging_config import get_logger
from ..config.schema import ApiConfig
from ..exceptions import TransportError

logger = get_logger(__name__)


class AnalysisApiClient:
    """Async facade over the analysis backend's HTTP/JSON endpoints."""

    def __init__(self, base_url: str = API_DEFAULTS.BASE_URL,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    @classmethod
    def from_config(cls, api_config: ApiConfig) -> "AnalysisApiClient":
        return cls(base_url=api_config.base_url, timeout=api_config.timeout_seconds)

    def close(self) -> None:
        self.session.close()

    # Jobs

    async def analyze_stocks(self, tickers: List[str],
                             indicators: Optional[List[str]] = None) -> Dict[str, Any]:
        return await self._call('POST', '/analyze', {'tickers': tickers, 'indicators': indicators})

    async def get_job_status(self, job_id: str) -> Dict[str, Any]:
        return await self._call('GET', f'/status/{_segment(job_id)}')

    async def cancel_job(self, job_id: str) -> Any:
        return await self._call('POST', f'/cancel/{_segment(job_id)}')

    async def analyze_all_stocks(self, symbols: Optional[List[str]] = None) -> Dict[str, Any]:
        # An empty list means all stocks
        return await self._call('POST', '/analyze-all-stocks', {'symbols': list(symbols or [])})

    async def get_all_stocks_progress(self) -> Dict[str, Any]:
        return await self._call('GET', '/all-stocks/progress')

    # All stocks list

    async def initialize_all_stocks(self) -> Dict[str, Any]:
        return await self._call('POST', '/initialize-all-stocks')

    async def get_all_stocks(self) -> Dict[str, Any]:
        return await self._call('GET', '/all-stocks')

    async def get_stock_history(self, symbol: str) -> Dict[str, Any]:
        return await self._call('GET', f'/all-stocks/{_segment(symbol)}/history')

    # Watchlist

    async def get_watchlist(self) -> List[Dict[str, Any]]:
        return await self._call('GET', '/watchlist')

    async def add_to_watchlist(self, symbol: str, name: str = '') -> Dict[str, Any]:
        return await self._call('POST', '/watchlist', {'symbol': symbol, 'name': name})

    async def remove_from_watchlist(self, symbol: str) -> Dict[str, Any]:
        return await self._call('DELETE', '/watchlist', {'symbol': symbol})

    async def get_history(self, symbol: str) -> Dict[str, Any]:
        """Analysis history used to annotate watchlist rows."""
        return await self._call('GET', f'/history/{_segment(symbol)}')

    # Reports

    async def get_report(self, ticker: str) -> Dict[str, Any]:
        return await self._call('GET', f'/report/{_segment(ticker)}')

    async def download_report(self, ticker: str, output_dir: str | Path = '.') -> Path:
        """Download the report workbook and save it as ``{ticker}_analysis.xlsx``."""
        content = await self._call('GET', f'/report/{_segment(ticker)}/download', expect_json=False)
        output_path = Path(output_dir) / API_DEFAULTS.REPORT_FILENAME_TEMPLATE.format(ticker=ticker)
        await asyncio.to_thread(_write_bytes, output_path, content)
        logger.info(f"Report for {ticker} saved to {output_path}")
        return output_path

    # Reference data

    async def get_nse_stocks(self) -> Any:
        return await self._call('GET', '/nse-stocks')

    async def get_config(self) -> Dict[str, Any]:
        return await self._call('GET', '/config')

    async def get_health(self) -> Dict[str, Any]:
        return await self._call('GET', '/health')

    # Transport

    async def _call(self, method: str, path: str, json_body: Optional[Any] = None,
                    expect_json: bool = True) -> Any:
        return await asyncio.to_thread(self._request, method, path, json_body, expect_json)

    def _request(self, method: str, path: str, json_body: Optional[Any] = None,
                 expect_json: bool = True) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(method, url, json=json_body, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise TransportError(method, path, str(e), status_code=status_code) from e
        except requests.RequestException as e:
            raise TransportError(method, path, str(e)) from e

        if not expect_json:
            return response.content

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(method, path, f"invalid JSON body: {e}",
                                 status_code=response.status_code) from e


def _segment(value: str) -> str:
    return quote(str(value), safe='')


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
