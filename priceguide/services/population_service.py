"""Population report lookups."""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from priceguide.cache.bulk import get_many
from priceguide.cache.keys import population_key
from priceguide.cache.swr import CacheAside, CacheResult, is_envelope
from priceguide.cache.ttl import CACHE_TTL
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

PopulationFetcher = Callable[[str], Awaitable[Any]]


class PopulationService:
    """
    Service class for graded population reports.

    Reports are scraped and change slowly, so a day-old report is served
    right away while a fresh scrape runs in the background.
    """

    def __init__(
        self,
        store: KeyValueStore,
        fetcher: PopulationFetcher,
        cache: Optional[CacheAside] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.cache = cache if cache is not None else CacheAside(store)

    async def get_population(self, card_id: str) -> CacheResult:
        """Population report for one card; ``stale`` is set while refreshing."""
        return await self.cache.get(
            population_key(card_id),
            lambda: self.fetcher(card_id),
            ttl=CACHE_TTL.population,
            stale_while_revalidate=True,
        )

    async def get_cached_populations(self, card_ids: Iterable[str]) -> Dict[str, Any]:
        """
        Cached reports for several cards, without fetching anything.

        Returns:
            {card_id: report}; cards with no cached report are omitted
        """
        envelopes = await get_many(card_ids, population_key, store=self.store)
        return {
            card_id: envelope["data"]
            for card_id, envelope in envelopes.items()
            if is_envelope(envelope)
        }
