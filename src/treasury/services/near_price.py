"""Cached NEAR/USD price."""

from treasury.cache import TTLCache
from treasury.indexers.prices import PriceOracle

CACHE_KEY = "near-price"


class NearPriceService:
    def __init__(self, oracle: PriceOracle, cache: TTLCache, ttl: float = 50) -> None:
        self._oracle = oracle
        self._cache = cache
        self._ttl = ttl

    async def get_price(self) -> dict:
        cached = await self._cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        price, source = await self._oracle.near_price()
        result = {"price": str(price), "source": source}
        await self._cache.set(CACHE_KEY, result, self._ttl)
        return result
