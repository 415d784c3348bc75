"""
Cache Backend Implementations

This module provides the two storage scopes the dashboard needs:
- MemoryCache: values that live only as long as the current session
- FileCache: durable JSON snapshots that survive restarts

Each backend implements a common interface for consistency. Values must be
JSON serializable; a value that cannot be serialized is rejected before any
stored state is touched.
"""

import hashlib
import json
import os
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from ..config.constants import CACHE_DEFAULTS
from ..config.logging_config import get_logger
from ..exceptions import CacheError

logger = get_logger(__name__)


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get value from cache by key."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key from cache. Returns True if key existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all cached items."""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        pass


class MemoryCache(CacheBackend):
    """In-memory store scoped to the lifetime of the object."""

    def __init__(self):
        self._cache: Dict[str, str] = {}
        self._lock = Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._sets = 0

    def get(self, key: str) -> Optional[Any]:
        """Get value from memory cache."""
        with self._lock:
            raw = self._cache.get(key)
            if raw is None:
                self._misses += 1
                return None
            self._hits += 1
        # Stored serialized so callers never share a mutable reference
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        """Set value in memory cache."""
        raw = _serialize(key, value)
        with self._lock:
            self._cache[key] = raw
            self._sets += 1

    def delete(self, key: str) -> bool:
        """Delete key from memory cache."""
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all cached items."""
        with self._lock:
            self._cache.clear()
        logger.info("Memory cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Get memory cache statistics."""
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests) if total_requests > 0 else 0

            return {
                'backend': 'memory',
                'size': len(self._cache),
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': hit_rate,
                'sets': self._sets,
            }


class FileCache(CacheBackend):
    """Persistent file-based cache with atomic replacement of entries."""

    def __init__(self, cache_dir: str = CACHE_DEFAULTS.CACHE_DIR):
        """
        Initialize file cache.

        Parameters
        ----------
        cache_dir : str
            Directory to store cache files
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._sets = 0

    def get(self, key: str) -> Optional[Any]:
        """Get value from file cache."""
        cache_file = self._get_cache_file(key)

        with self._lock:
            if not cache_file.exists():
                self._misses += 1
                return None

            try:
                with open(cache_file, 'r', encoding='utf-8') as f:
                    cached_data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Error reading cache file {cache_file}: {e}")
                # Clean up corrupted file
                cache_file.unlink(missing_ok=True)
                self._misses += 1
                return None

            self._hits += 1
            return cached_data['value']

    def set(self, key: str, value: Any) -> None:
        """
        Write value to a temporary file and rename it over the entry.

        Readers see either the previous snapshot or the new one, never a
        partially written file.
        """
        cache_file = self._get_cache_file(key)
        payload = _serialize(key, {
            'key': key,
            'created_at': time.time(),
            'value': value,
        })

        with self._lock:
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix='.tmp-', suffix=CACHE_DEFAULTS.FILE_SUFFIX)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, cache_file)
            except OSError as e:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                logger.error(f"Error writing cache file {cache_file}: {e}")
                raise CacheError(key, str(e)) from e
            self._sets += 1

    def delete(self, key: str) -> bool:
        """Delete key from file cache."""
        cache_file = self._get_cache_file(key)

        with self._lock:
            if cache_file.exists():
                cache_file.unlink()
                return True
            return False

    def clear(self) -> None:
        """Clear all cached files."""
        with self._lock:
            for cache_file in self.cache_dir.glob(f"*{CACHE_DEFAULTS.FILE_SUFFIX}"):
                cache_file.unlink(missing_ok=True)
        logger.info("File cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Get file cache statistics."""
        with self._lock:
            cache_files = [f for f in self.cache_dir.glob(f"*{CACHE_DEFAULTS.FILE_SUFFIX}")
                           if not f.name.startswith('.tmp-')]
            total_size = sum(f.stat().st_size for f in cache_files if f.exists())

            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests) if total_requests > 0 else 0

            return {
                'backend': 'file',
                'cache_dir': str(self.cache_dir),
                'size': len(cache_files),
                'total_size_bytes': total_size,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': hit_rate,
                'sets': self._sets,
            }

    def _get_cache_file(self, key: str) -> Path:
        """Get cache file path for key."""
        # Create a safe filename from the key
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return self.cache_dir / f"{key_hash}{CACHE_DEFAULTS.FILE_SUFFIX}"


def _serialize(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise CacheError(key, f"value is not JSON serializable ({e})") from e
