import asyncio
import os
from unittest.mock import patch

import pytest

from trading_dashboard.caching import CacheKey, CacheStore, FileCache, MemoryCache, SessionMarkers, SessionStore
from trading_dashboard.exceptions import CacheError, TransportError


class TestBackends:
    """Test the memory and file backends."""

    def test_memory_cache_returns_copies(self):
        cache = MemoryCache()
        value = [{'symbol': 'TCS'}]
        cache.set('k', value)
        value[0]['symbol'] = 'changed'

        assert cache.get('k') == [{'symbol': 'TCS'}]
        assert cache.delete('k') is True
        assert cache.delete('k') is False

    def test_memory_cache_stats(self):
        cache = MemoryCache()
        cache.set('a', 1)
        cache.get('a')
        cache.get('missing')

        stats = cache.get_stats()
        assert stats['backend'] == 'memory'
        assert stats['hits'] == 1
        assert stats['misses'] == 1
        assert stats['hit_rate'] == 0.5

    def test_unserializable_value_is_rejected(self):
        cache = MemoryCache()
        cache.set('k', [1])

        with pytest.raises(CacheError):
            cache.set('k', {object()})

        assert cache.get('k') == [1]

    def test_file_cache_survives_new_instance(self, tmp_path):
        FileCache(str(tmp_path)).set('all_stocks', [{'yahoo_symbol': 'TCS.NS'}])

        assert FileCache(str(tmp_path)).get('all_stocks') == [{'yahoo_symbol': 'TCS.NS'}]

    def test_file_cache_removes_corrupt_entry(self, tmp_path):
        cache = FileCache(str(tmp_path))
        cache.set('k', [1, 2])
        cache_file = cache._get_cache_file('k')
        cache_file.write_text('{not json')

        assert cache.get('k') is None
        assert not cache_file.exists()

    def test_failed_file_write_keeps_previous_snapshot(self, tmp_path):
        cache = FileCache(str(tmp_path))
        cache.set('k', ['old'])

        with patch('trading_dashboard.caching.cache_backends.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(CacheError):
                cache.set('k', ['new'])

        assert cache.get('k') == ['old']
        leftovers = [name for name in os.listdir(tmp_path) if name.startswith('.tmp-')]
        assert leftovers == []


class TestCacheStore:
    """Test stale-while-revalidate behaviour of the cache store."""

    def test_unset_key_is_invalid_and_empty(self, cache_store):
        assert cache_store.read('all_stocks') is None
        assert cache_store.is_valid('all_stocks') is False

    def test_invalidate_keeps_snapshot(self, cache_store):
        cache_store.write('all_stocks', [{'yahoo_symbol': 'A'}])
        cache_store.mark_valid('all_stocks')

        cache_store.invalidate('all_stocks')

        assert cache_store.is_valid('all_stocks') is False
        assert cache_store.read('all_stocks') == [{'yahoo_symbol': 'A'}]

    def test_revalidate_writes_and_marks_valid(self, cache_store):
        async def fetch():
            return ['fresh']

        result = asyncio.run(cache_store.revalidate('watchlist', fetch))

        assert result.refreshed is True
        assert cache_store.read('watchlist') == ['fresh']
        assert cache_store.is_valid('watchlist') is True

    def test_failed_revalidate_keeps_stale_snapshot(self, cache_store):
        cache_store.write('watchlist', ['stale'])

        async def fetch():
            raise TransportError('GET', '/watchlist', "connection refused")

        result = asyncio.run(cache_store.revalidate('watchlist', fetch))

        assert result.refreshed is False
        assert isinstance(result.error, TransportError)
        assert result.snapshot == ['stale']
        assert cache_store.read('watchlist') == ['stale']
        assert cache_store.is_valid('watchlist') is False

    def test_refresh_uses_registered_source(self, cache_store):
        calls = []

        async def fetch():
            calls.append(1)
            return ['from source']

        cache_store.register_source('watchlist', fetch)
        result = asyncio.run(cache_store.refresh('watchlist'))

        assert result.refreshed is True
        assert calls == [1]
        assert cache_store.has_source('watchlist')

    def test_refresh_without_source_is_a_noop(self, cache_store):
        result = asyncio.run(cache_store.refresh('unknown'))

        assert result.refreshed is False
        assert result.error is None

    def test_session_end_drops_validity_but_not_snapshot(self, tmp_path):
        session = SessionStore()
        store = CacheStore(durable=FileCache(str(tmp_path)), session=session)
        store.write('all_stocks', ['snapshot'])
        store.mark_valid('all_stocks')

        session.end()
        restarted = CacheStore(durable=FileCache(str(tmp_path)), session=SessionStore())

        assert store.is_valid('all_stocks') is False
        assert restarted.is_valid('all_stocks') is False
        assert restarted.read('all_stocks') == ['snapshot']

    def test_stats_cover_both_backends(self, cache_store):
        cache_store.write('k', [1])
        cache_store.invalidate('k')

        stats = cache_store.get_stats()
        assert stats['store_stats']['writes'] == 1
        assert stats['store_stats']['invalidations'] == 1
        assert set(stats['backend_stats']) == {'durable', 'session'}


class TestSessionMarkers:

    def test_set_get_clear(self, session):
        markers = SessionMarkers(session)
        markers.set('single', 'job-1')

        assert markers.get('single') == 'job-1'
        assert session.get(CacheKey.active_job('single')) == 'job-1'

        markers.clear('single')
        assert markers.get('single') is None

    def test_markers_gone_after_session_end(self, session):
        markers = SessionMarkers(session)
        markers.set('all_stocks', 'job-9')

        session.end()

        assert markers.get('all_stocks') is None

    def test_file_backed_session_survives_reload(self, tmp_path):
        SessionMarkers(SessionStore.from_directory(str(tmp_path))).set('watchlist', 'job-3')

        assert SessionMarkers(SessionStore.from_directory(str(tmp_path))).get('watchlist') == 'job-3'
