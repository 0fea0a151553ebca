"""Card price lookups and the price-sync batch write."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from priceguide.cache.coalescing import RequestCoalescer
from priceguide.cache.keys import card_prices_key
from priceguide.cache.ttl import CACHE_TTL
from priceguide.errors import UpstreamFetchError
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[str], Awaitable[Any]]


@dataclass
class PriceLookup:
    """Prices for one card and whether they came from the cache."""
    data: Any
    from_cache: bool


class PriceService:
    """
    Service class for card price reads.

    Reads go through request coalescing so a burst of page views for one
    card makes a single call to the pricing API. The pricing API is behind
    ``fetcher``; this class only decides when to call it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        fetcher: PriceFetcher,
        coalescer: Optional[RequestCoalescer] = None,
    ):
        """
        Args:
            store: Key-value store adapter
            fetcher: ``await fetcher(tcg_player_id)`` returns the card's prices
            coalescer: Coalescer to use (defaults to one over ``store``)
        """
        self.store = store
        self.fetcher = fetcher
        self.coalescer = coalescer if coalescer is not None else RequestCoalescer(store)

    async def get_card_with_prices(
        self,
        tcg_player_id: str,
        force_refresh: bool = False,
    ) -> PriceLookup:
        """
        Get a card's prices.

        Args:
            tcg_player_id: TCGplayer product id
            force_refresh: Skip the cache, fetch and overwrite

        Returns:
            PriceLookup with the prices

        Raises:
            UpstreamFetchError: The pricing API failed and nothing is cached
        """
        key = card_prices_key(tcg_player_id)

        if force_refresh:
            logger.info(f"FORCE REFRESH: {key}")
            data = await self._fetch(tcg_player_id)
            await self.store.set(key, data, ex=CACHE_TTL.prices)
            return PriceLookup(data=data, from_cache=False)

        fetched = False

        async def fetch():
            nonlocal fetched
            fetched = True
            return await self._fetch(tcg_player_id)

        try:
            data = await self.coalescer.get_or_fetch(key, fetch, ttl=CACHE_TTL.prices)
        except UpstreamFetchError:
            # Another writer may have filled the key while we were failing
            stale = await self.store.get(key)
            if stale is not None:
                logger.warning(f"Returning cached prices after fetch failure: {tcg_player_id}")
                return PriceLookup(data=stale, from_cache=True)
            raise

        return PriceLookup(data=data, from_cache=not fetched)

    async def _fetch(self, tcg_player_id: str) -> Any:
        try:
            return await self.fetcher(tcg_player_id)
        except Exception as e:
            logger.error(f"Price fetch failed for {tcg_player_id}: {e}")
            raise UpstreamFetchError("prices", str(e)) from e

    async def sync_prices(self, prices: Mapping[str, Any]) -> int:
        """
        Write a batch of fresh prices, as the scheduled price-sync job does.

        Args:
            prices: {tcg_player_id: prices}

        Returns:
            Number of cards written
        """
        if not prices:
            return 0
        count = await self.store.set_many(
            ((card_prices_key(card_id), data) for card_id, data in prices.items()),
            ex=CACHE_TTL.prices,
        )
        logger.info(f"Price sync cached {count} cards")
        return count
