"""
Caching Layer for the Trading Dashboard

This package keeps durable snapshots of the stock lists, the session-scoped
flags saying whether those snapshots are current, and the active job marker
for each job slot.
"""

from .cache_backends import CacheBackend, FileCache, MemoryCache
from .cache_store import (
    CacheKey,
    CacheStore,
    RevalidationResult,
    SessionMarkers,
    SessionStore,
)

# Export main interfaces
__all__ = [
    'CacheBackend',
    'CacheKey',
    'CacheStore',
    'FileCache',
    'MemoryCache',
    'RevalidationResult',
    'SessionMarkers',
    'SessionStore',
]
