"""
Dashboard controller.

Wires the API client, cache store, per-slot polling engines, selections,
submitter and session recovery together, and exposes the actions the
dashboard pages offer: loading the stock lists, managing the watchlist,
starting and cancelling analysis jobs, and fetching reports and history.

Re-creating a Dashboard over the same CacheStore is the equivalent of a page
reload; call ``start()`` afterwards to re-attach to jobs that were running.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .api.client import AnalysisApiClient
from .caching.cache_backends import FileCache
from .caching.cache_store import CacheKey, CacheStore, SessionMarkers, SessionStore
from .config.logging_config import get_logger
from .config.schema import DashboardConfig
from .exceptions import EmptySelectionError, TransportError
from .jobs.models import AnalysisSnapshot, Job, JobSlot, StockEntry, WatchlistEntry
from .jobs.polling import JobHandle, JobObserver, PollingEngine
from .jobs.progress import ProgressReport, aggregate_job
from .jobs.recovery import SessionRecovery
from .jobs.selection import SelectionManager, filter_stocks
from .jobs.sources import status_source_for
from .jobs.submitter import JobSubmitter

logger = get_logger(__name__)

SnapshotCallback = Callable[[List[Any]], None]


class Dashboard:
    """Entry point for everything the dashboard does against the backend."""

    def __init__(self,
                 client: AnalysisApiClient,
                 cache: Optional[CacheStore] = None,
                 config: Optional[DashboardConfig] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 auto_tick: bool = True):
        self.config = config or DashboardConfig()
        self.client = client
        self.cache = cache or CacheStore()
        self.markers = SessionMarkers(self.cache.session)

        self.engines: Dict[JobSlot, PollingEngine] = {
            slot: PollingEngine(
                slot,
                status_source_for(slot, client),
                slot.poll_interval(self.config.polling),
                cache=self.cache,
                markers=self.markers,
                sleep=sleep,
                auto_tick=auto_tick,
            )
            for slot in JobSlot
        }
        self.selections: Dict[JobSlot, SelectionManager] = {slot: SelectionManager() for slot in JobSlot}
        self.submitter = JobSubmitter(client, self.engines, self.cache, self.markers,
                                      self.selections, indicators=self.config.indicators)
        self.recovery = SessionRecovery(self.engines, self.markers)

        self.cache.register_source(CacheKey.all_stocks(), self._fetch_all_stocks)
        self.cache.register_source(CacheKey.watchlist(), self._fetch_watchlist)

    @classmethod
    def from_config(cls, config: DashboardConfig, **kwargs) -> "Dashboard":
        """Build a dashboard with a file-backed cache as described by config."""
        client = AnalysisApiClient.from_config(config.api)
        cache = CacheStore(
            durable=FileCache(config.cache.cache_dir),
            session=SessionStore.from_directory(config.cache.session_dir),
        )
        return cls(client, cache=cache, config=config, **kwargs)

    # Lifecycle

    async def start(self) -> List[JobHandle]:
        """Re-attach to any job recorded in the session."""
        handles = await self.recovery.recover_all()
        if handles:
            logger.info(f"Recovered {len(handles)} running job(s) from session")
        return handles

    def stop(self) -> None:
        """Stop every engine. Session markers are kept for a later start()."""
        for engine in self.engines.values():
            engine.stop()

    def close(self) -> None:
        self.stop()
        self.client.close()

    def subscribe(self, observer: JobObserver, slots: Optional[Iterable[JobSlot]] = None) -> None:
        for slot in slots or list(JobSlot):
            self.engines[slot].subscribe(observer)

    def unsubscribe(self, observer: JobObserver) -> None:
        for engine in self.engines.values():
            engine.unsubscribe(observer)

    def selection(self, slot: JobSlot) -> SelectionManager:
        return self.selections[slot]

    # Stock lists

    async def load_all_stocks(self, on_snapshot: Optional[SnapshotCallback] = None) -> List[StockEntry]:
        """
        Load the all-stocks list.

        The last cached list (valid or not) is handed to on_snapshot straight
        away, then a fresh list is fetched. If the backend has no list yet it
        is initialized first.

        Raises
        ------
        TransportError
            If no list could be fetched and nothing was cached
        """
        key = CacheKey.all_stocks()
        _emit_stale(self.cache.read(key), on_snapshot, _parse_stocks)

        result = await self.cache.refresh(key)
        missing = isinstance(result.error, TransportError) and result.error.not_found
        if (result.refreshed and not result.snapshot) or missing:
            count = await self.initialize_all_stocks()
            if count == 0:
                return []
            result = await self.cache.refresh(key)

        if result.error is not None and result.snapshot is None:
            raise result.error
        return _parse_stocks(result.snapshot)

    async def initialize_all_stocks(self) -> int:
        """Ask the backend to build its stock universe. Returns the number of stocks."""
        self.cache.invalidate(CacheKey.all_stocks())
        result = await self.client.initialize_all_stocks()
        count = int(result.get('count') or 0) if isinstance(result, dict) else 0
        logger.info(f"Initialized all-stocks list with {count} stocks")
        return count

    async def load_watchlist(self, on_snapshot: Optional[SnapshotCallback] = None) -> List[WatchlistEntry]:
        """Load the watchlist with the latest verdict of every stock."""
        key = CacheKey.watchlist()
        _emit_stale(self.cache.read(key), on_snapshot, _parse_watchlist)

        result = await self.cache.refresh(key)
        if result.error is not None and result.snapshot is None:
            raise result.error
        return _parse_watchlist(result.snapshot)

    async def add_to_watchlist(self, symbol: str, name: str = '') -> List[WatchlistEntry]:
        self.cache.invalidate(CacheKey.watchlist())
        await self.client.add_to_watchlist(symbol, name)
        logger.info(f"Added {symbol} to watchlist")
        return await self.load_watchlist()

    async def remove_from_watchlist(self, symbol: str) -> List[WatchlistEntry]:
        self.cache.invalidate(CacheKey.watchlist())
        await self.client.remove_from_watchlist(symbol)
        logger.info(f"Removed {symbol} from watchlist")
        return await self.load_watchlist()

    async def available_stocks(self, query: str = '') -> List[StockEntry]:
        """NSE stocks that can still be added to the watchlist, filtered by query."""
        data = await self.client.get_nse_stocks()
        stocks = data.get('stocks', []) if isinstance(data, dict) else []
        watched = {entry.symbol for entry in _parse_watchlist(self.cache.read(CacheKey.watchlist()))}

        entries = [StockEntry.from_dict(stock) for stock in stocks]
        available = [entry for entry in entries if entry.yahoo_symbol not in watched]
        return filter_stocks(available, query)

    # Per-ticker data

    async def stock_history(self, symbol: str) -> List[AnalysisSnapshot]:
        """Stored analyses of symbol, newest first."""
        data = await self.client.get_stock_history(symbol)
        return [AnalysisSnapshot.from_dict(item) for item in _history_items(data)]

    async def get_report(self, ticker: str) -> Dict[str, Any]:
        return await self.client.get_report(ticker)

    async def download_report(self, ticker: str, output_dir: str | Path = '.') -> Path:
        return await self.client.download_report(ticker, output_dir)

    async def backend_config(self) -> Dict[str, Any]:
        return await self.client.get_config()

    async def health(self) -> Dict[str, Any]:
        return await self.client.get_health()

    # Jobs

    async def analyze_ticker(self, ticker: str, indicators: Optional[List[str]] = None) -> JobHandle:
        return await self.submitter.submit(JobSlot.SINGLE, [ticker], indicators)

    async def analyze_watchlist(self, symbols: Optional[Iterable[str]] = None,
                                indicators: Optional[List[str]] = None) -> JobHandle:
        """Analyze symbols, or the current watchlist selection if none are given."""
        if symbols is None:
            symbols = sorted(self.selections[JobSlot.WATCHLIST].selected())
        return await self.submitter.submit(JobSlot.WATCHLIST, symbols, indicators)

    async def analyze_all(self) -> JobHandle:
        """Analyze every stock in the backend's universe."""
        return await self.submitter.submit(JobSlot.ALL_STOCKS, [])

    async def analyze_selected_stocks(self) -> JobHandle:
        selected = sorted(self.selections[JobSlot.ALL_STOCKS].selected())
        # An empty symbol list would start a full run
        if not selected:
            raise EmptySelectionError(JobSlot.ALL_STOCKS.value)
        return await self.submitter.submit(JobSlot.ALL_STOCKS, selected)

    async def cancel(self, slot: JobSlot) -> Optional[Job]:
        return await self.engines[slot].cancel()

    def active_job(self, slot: JobSlot) -> Optional[Job]:
        return self.engines[slot].job

    def progress(self, slot: JobSlot) -> Optional[ProgressReport]:
        job = self.engines[slot].job or self.engines[slot].last_job
        if job is None:
            return None
        return aggregate_job(job)

    # Cache sources

    async def _fetch_all_stocks(self) -> List[Dict[str, Any]]:
        data = await self.client.get_all_stocks()
        stocks = data.get('stocks') if isinstance(data, dict) else None
        if not isinstance(stocks, list):
            raise TransportError('GET', '/all-stocks', "response did not include a stocks list")
        return stocks

    async def _fetch_watchlist(self) -> List[Dict[str, Any]]:
        data = await self.client.get_watchlist()
        if not isinstance(data, list):
            raise TransportError('GET', '/watchlist', "response was not a list")
        entries = await asyncio.gather(*(self._watchlist_entry(item) for item in data))
        return [entry.to_dict() for entry in entries]

    async def _watchlist_entry(self, item: Dict[str, Any]) -> WatchlistEntry:
        try:
            data = await self.client.get_history(item['symbol'])
        except TransportError as e:
            logger.warning(f"Could not load analysis history for {item['symbol']}: {e}")
            return WatchlistEntry.from_history(item, [])

        try:
            history = [AnalysisSnapshot.from_dict(record) for record in _history_items(data)]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unreadable analysis history for {item['symbol']}: {e}")
            history = []
        return WatchlistEntry.from_history(item, history)


def _emit_stale(snapshot: Optional[List[Any]], on_snapshot: Optional[SnapshotCallback],
                parse: Callable[[Optional[List[Any]]], List[Any]]) -> None:
    if snapshot is not None and on_snapshot is not None:
        on_snapshot(parse(snapshot))


def _parse_stocks(snapshot: Optional[List[Dict[str, Any]]]) -> List[StockEntry]:
    return [StockEntry.from_dict(item) for item in snapshot or []]


def _parse_watchlist(snapshot: Optional[List[Dict[str, Any]]]) -> List[WatchlistEntry]:
    return [WatchlistEntry(**item) for item in snapshot or []]


def _history_items(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        return list(data.get('history') or [])
    return []
