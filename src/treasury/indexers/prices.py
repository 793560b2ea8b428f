"""NEAR/USD price from the first public price API that answers."""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from treasury.config import IndexerSettings
from treasury.exceptions import UpstreamError
from treasury.indexers.client import RestClient
from treasury.logging import get_logger

logger = get_logger(__name__)


def extract_price(source: str, data: Any) -> Decimal | None:
    """Pull the USD price out of a source-specific payload."""
    try:
        if "coingecko" in source:
            raw = (data.get("near") or {}).get("usd")
        elif "binance" in source:
            raw = data.get("price")
        elif "cryptocompare" in source:
            raw = data.get("USD")
        else:
            return None
        if raw is None:
            return None
        price = Decimal(str(raw))
    except (AttributeError, InvalidOperation):
        return None
    return price if price > 0 else None


class PriceOracle(RestClient):
    def __init__(self, settings: IndexerSettings, client: httpx.AsyncClient) -> None:
        super().__init__("", client, settings.request_timeout)
        self._sources = list(settings.price_sources)

    async def near_price(self) -> tuple[Decimal, str]:
        """Return (price, source url). Raises UpstreamError when every source fails."""
        for source in self._sources:
            try:
                data = await self.get_json(source)
            except UpstreamError as e:
                logger.warning("near_price_source_failed", source=source, error=str(e))
                continue

            price = extract_price(source, data)
            if price is not None:
                logger.info("near_price_fetched", source=source, price=str(price))
                return price, source

        raise UpstreamError("Failed to fetch NEAR price from all sources.")
