"""NEAR and FT transfer history for a treasury DAO (and its lockup contract).

Pikespeak pages are merged into a cached list. The first page of every
source is re-fetched at most every ``refresh_ttl`` seconds to pick up new
transfers; older pages are fetched lazily when a caller asks for a page
beyond what is cached.
"""

import asyncio
import math
import time

from treasury.cache import TTLCache
from treasury.exceptions import UpstreamError
from treasury.indexers.pikespeak import PikespeakClient
from treasury.logging import get_logger

logger = get_logger(__name__)

TXNS_PER_PAGE = 20


def _timestamp(item: dict) -> int:
    try:
        return int(item.get("timestamp") or 0)
    except (TypeError, ValueError):
        return 0


def deduplicate_transfers(items: list[dict]) -> list[dict]:
    """Drop repeated transfers, keeping the first occurrence.

    A transfer is identified by its transaction id, timestamp and token, so
    the NEAR and FT legs of one transaction are both kept.
    """
    seen: set[tuple] = set()
    unique = []
    for item in items:
        key = (item.get("transaction_id"), item.get("timestamp"), item.get("token"))
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def sort_by_date(items: list[dict]) -> list[dict]:
    """Newest first."""
    return sorted(items, key=_timestamp, reverse=True)


class TransferHistoryService:
    def __init__(
        self,
        pikespeak: PikespeakClient,
        cache: TTLCache,
        refresh_ttl: float = 120,
    ) -> None:
        self._pikespeak = pikespeak
        self._cache = cache
        self._refresh_ttl = refresh_ttl

    async def get_transfer_history(
        self,
        treasury_dao_id: str,
        lockup_contract: str | None = None,
        page: int = 1,
    ) -> list[dict]:
        """Transfers from the newest up to the end of ``page`` (cumulative)."""
        accounts = [treasury_dao_id] + ([lockup_contract] if lockup_contract else [])
        cache_key = f"{treasury_dao_id}-{lockup_contract or 'no-lockup'}"
        timestamp_key = f"{cache_key}-timestamp"

        cached: list[dict] = await self._cache.get(cache_key) or []
        refreshed_at = await self._cache.get(timestamp_key)

        if refreshed_at is None:
            latest = sort_by_date(deduplicate_transfers(await self._fetch_page(accounts, offset=0)))
            if not cached or latest != cached[: len(latest)]:
                logger.info("transfer_history_updated", cache_key=cache_key, fetched=len(latest))
                cached = sort_by_date(deduplicate_transfers(latest + cached))
                await self._cache.set(cache_key, cached, 0)
            await self._cache.set(timestamp_key, time.time(), self._refresh_ttl)

        cached_pages = math.ceil(len(cached) / (TXNS_PER_PAGE * 2))
        if page > cached_pages:
            additional = await self._fetch_page(accounts, offset=cached_pages * TXNS_PER_PAGE)
            cached = sort_by_date(deduplicate_transfers(cached + additional))
            await self._cache.set(cache_key, cached, 0)

        return cached[: page * TXNS_PER_PAGE]

    async def _fetch_page(self, accounts: list[str], offset: int) -> list[dict]:
        """One page of NEAR and FT transfers for every account; all must succeed."""
        requests = []
        for account in accounts:
            requests.append(self._pikespeak.near_transfers(account, TXNS_PER_PAGE, offset))
            requests.append(self._pikespeak.ft_transfers(account, TXNS_PER_PAGE, offset))

        results = await asyncio.gather(*requests, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise UpstreamError(f"Failed to fetch transfer page at offset {offset}: {failures[0]}")

        return [item for result in results for item in (result or [])]
