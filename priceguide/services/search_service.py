"""Search result and trending leaderboard caching."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from priceguide.cache.keys import search_key, trending_key
from priceguide.cache.swr import CacheAside, CacheResult
from priceguide.cache.ttl import CACHE_TTL
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class SearchService:
    """Caches search result pages for a few minutes. No stale serving."""

    def __init__(self, store: KeyValueStore, search_fn: SearchFn, cache: Optional[CacheAside] = None):
        self.search_fn = search_fn
        self.cache = cache if cache is not None else CacheAside(store)

    async def cached_search(self, query: str, options: Optional[Dict[str, Any]] = None) -> CacheResult:
        """Run ``search_fn(query, options)`` through the cache."""
        options = options or {}
        return await self.cache.get(
            search_key(query, options),
            lambda: self.search_fn(query, options),
            ttl=CACHE_TTL.search,
        )


class TrendingService:
    """Caches the trending cards leaderboard, serving stale while it recomputes."""

    def __init__(
        self,
        store: KeyValueStore,
        fetcher: Callable[[], Awaitable[Any]],
        cache: Optional[CacheAside] = None,
    ):
        self.fetcher = fetcher
        self.cache = cache if cache is not None else CacheAside(store)

    async def get_trending(self) -> CacheResult:
        return await self.cache.get(
            trending_key(),
            self.fetcher,
            ttl=CACHE_TTL.trending,
            stale_while_revalidate=True,
        )
