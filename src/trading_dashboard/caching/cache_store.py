"""
Cache Store - two-tier list cache with stale-while-revalidate semantics.

Snapshots of slow-changing lists (all stocks, watchlist) are kept in a durable
backend, while the flag saying whether a snapshot can be trusted lives in the
session store. A snapshot therefore outlives its validity: after a restart the
last list can still be shown immediately, but it is refreshed before being
treated as authoritative.

The session store also carries the active job marker for each slot, which is
what lets a reloaded dashboard re-attach to a running job.
"""

from dataclasses import dataclass
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config.constants import STORAGE_KEYS
from ..config.logging_config import get_logger
from ..exceptions import CacheError, DashboardError, TransportError
from .cache_backends import CacheBackend, FileCache, MemoryCache

logger = get_logger(__name__)

ListFetcher = Callable[[], Awaitable[Any]]


class CacheKey:
    """Utility class for generating consistent cache keys."""

    @staticmethod
    def all_stocks() -> str:
        return STORAGE_KEYS.ALL_STOCKS_CACHE

    @staticmethod
    def watchlist() -> str:
        return STORAGE_KEYS.WATCHLIST_CACHE

    @staticmethod
    def valid_flag(key: str) -> str:
        return f"{STORAGE_KEYS.VALID_FLAG_PREFIX}{key}"

    @staticmethod
    def active_job(slot: str) -> str:
        return f"{STORAGE_KEYS.ACTIVE_JOB_PREFIX}{slot}"


class SessionStore:
    """
    Key/value state scoped to one dashboard session.

    The session survives re-creating the dashboard (a reload) as long as the
    same store is handed to it; ``end()`` discards everything, which is what a
    browser restart does to session storage.
    """

    def __init__(self, backend: Optional[CacheBackend] = None):
        self.backend = backend or MemoryCache()

    @classmethod
    def from_directory(cls, session_dir: Optional[str]) -> "SessionStore":
        if session_dir:
            return cls(FileCache(session_dir))
        return cls(MemoryCache())

    def get(self, key: str) -> Optional[Any]:
        return self.backend.get(key)

    def set(self, key: str, value: Any) -> None:
        self.backend.set(key, value)

    def delete(self, key: str) -> bool:
        return self.backend.delete(key)

    def end(self) -> None:
        """End the session: every validity flag and job marker is dropped."""
        self.backend.clear()
        logger.info("Session ended, session state cleared")


class SessionMarkers:
    """Active job id per slot, kept for the duration of the session."""

    def __init__(self, session: SessionStore):
        self.session = session

    def get(self, slot: str) -> Optional[str]:
        return self.session.get(CacheKey.active_job(slot))

    def set(self, slot: str, job_id: str) -> None:
        self.session.set(CacheKey.active_job(slot), job_id)
        logger.debug(f"Active job marker set: {slot} -> {job_id}")

    def clear(self, slot: str) -> None:
        if self.session.delete(CacheKey.active_job(slot)):
            logger.debug(f"Active job marker cleared for {slot}")


@dataclass
class RevalidationResult:
    """Outcome of a background refresh of one cached list."""
    key: str
    refreshed: bool
    snapshot: Any = None
    error: Optional[Exception] = None


class CacheStore:
    """
    Durable snapshots plus session-scoped validity flags.

    ``write`` and ``invalidate`` are applied under a lock and a snapshot is
    replaced in one step, so a reader sees either the old or the new list.
    """

    def __init__(self, durable: Optional[CacheBackend] = None,
                 session: Optional[SessionStore] = None):
        self.durable = durable or MemoryCache()
        self.session = session or SessionStore()
        self._sources: Dict[str, ListFetcher] = {}
        self._lock = RLock()

        # Statistics
        self._cache_stats = {
            'writes': 0,
            'invalidations': 0,
            'refreshes': 0,
            'failed_refreshes': 0,
        }

    def read(self, key: str) -> Optional[Any]:
        """Return the last written snapshot, whether or not it is valid."""
        with self._lock:
            return self.durable.get(key)

    def is_valid(self, key: str) -> bool:
        with self._lock:
            return self.session.get(CacheKey.valid_flag(key)) is True

    def write(self, key: str, snapshot: Any) -> None:
        """
        Replace the snapshot for key.

        Raises
        ------
        CacheError
            If the snapshot could not be stored; the previous snapshot is left
            untouched.
        """
        with self._lock:
            self.durable.set(key, snapshot)
            self._cache_stats['writes'] += 1
        logger.debug(f"Cache snapshot written: {key}")

    def mark_valid(self, key: str) -> None:
        with self._lock:
            self.session.set(CacheKey.valid_flag(key), True)

    def invalidate(self, key: str) -> None:
        """Mark the snapshot as stale. The snapshot itself is kept."""
        with self._lock:
            self.session.delete(CacheKey.valid_flag(key))
            self._cache_stats['invalidations'] += 1
        logger.debug(f"Cache invalidated: {key}")

    def register_source(self, key: str, fetch: ListFetcher) -> None:
        """Register the call that fetches the authoritative list for key."""
        self._sources[key] = fetch

    def has_source(self, key: str) -> bool:
        return key in self._sources

    async def refresh(self, key: str) -> RevalidationResult:
        """Re-fetch key from its registered source."""
        fetch = self._sources.get(key)
        if fetch is None:
            logger.warning(f"No list source registered for cache key: {key}")
            return RevalidationResult(key=key, refreshed=False, snapshot=self.read(key))
        return await self.revalidate(key, fetch)

    async def revalidate(self, key: str, fetch: ListFetcher) -> RevalidationResult:
        """
        Fetch a fresh snapshot, then write it and mark it valid.

        On failure the stale snapshot stays in place and validity stays false.
        """
        try:
            snapshot = await fetch()
            self.write(key, snapshot)
        except (TransportError, CacheError) as e:
            self._cache_stats['failed_refreshes'] += 1
            logger.warning(f"Refresh of {key} failed, keeping stale snapshot: {e}")
            return RevalidationResult(key=key, refreshed=False, snapshot=self.read(key), error=e)

        self.mark_valid(key)
        self._cache_stats['refreshes'] += 1
        return RevalidationResult(key=key, refreshed=True, snapshot=snapshot)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics for the store and both backends."""
        stats: Dict[str, Any] = {
            'store_stats': self._cache_stats.copy(),
            'backend_stats': {},
        }
        for name, backend in (('durable', self.durable), ('session', self.session.backend)):
            try:
                stats['backend_stats'][name] = backend.get_stats()
            except (OSError, DashboardError) as e:
                stats['backend_stats'][name] = {'error': str(e)}
        return stats
