"""Staked NEAR per sampled block height, summed across validator pools.

Pools are discovered from the account's stake transactions (via an indexer).
The set of pools active at height H is every pool seen in a stake
transaction at or before H, so a discovered set for a given height never
changes and is cached per (account, height).
"""

from typing import Protocol

from treasury.cache import TTLCache
from treasury.exceptions import ConfigurationError
from treasury.history.fanout import gather_all
from treasury.logging import get_logger
from treasury.rpc.gateway import RpcGateway
from treasury.rpc.queries import call_result_amount, stake_balance_request

logger = get_logger(__name__)


class StakePoolSource(Protocol):
    async def stake_pool_history(self, account_id: str) -> list[tuple[str, int]]:
        """Return (pool_id, block_height) for every stake transaction of the account."""
        ...


def pools_active_at(history: list[tuple[str, int]], block_height: int) -> list[str]:
    return sorted({pool for pool, height in history if height <= block_height})


class StakingBalanceAggregator:
    def __init__(
        self,
        gateway: RpcGateway,
        pool_source: StakePoolSource,
        cache: TTLCache,
    ) -> None:
        self._gateway = gateway
        self._pool_source = pool_source
        self._cache = cache

    async def get_stake_balances(
        self,
        account_id: str,
        block_heights: list[int],
        archival: bool = True,
    ) -> list[int]:
        """Total staked balance at each height, aligned index-for-index with block_heights.

        Any pool/height query that fails contributes 0.
        """
        pools_per_height = await self._discover_pools(account_id, block_heights)

        # One query per distinct (height, pool); repeated heights share it.
        unique_keys = sorted({(h, pool) for h, pools in zip(block_heights, pools_per_height) for pool in pools})
        balances = await gather_all(
            *(self._pool_balance(account_id, pool, h, archival) for h, pool in unique_keys)
        )
        memo = dict(zip(unique_keys, balances))

        return [
            sum(memo[(h, pool)] for pool in pools)
            for h, pools in zip(block_heights, pools_per_height)
        ]

    async def _discover_pools(self, account_id: str, block_heights: list[int]) -> list[list[str]]:
        history: list[tuple[str, int]] | None = None
        loaded = False
        result: list[list[str]] = []

        for height in block_heights:
            cache_key = f"{account_id}:stake-pools:{height}"
            pools = await self._cache.get(cache_key)
            if pools is None:
                if not loaded:
                    history = await self._load_history(account_id)
                    loaded = True
                if history is None:
                    # Discovery failed: no stake for this call only.
                    result.append([])
                    continue
                pools = pools_active_at(history, height)
                await self._cache.set(cache_key, pools)
            result.append(pools)

        return result

    async def _load_history(self, account_id: str) -> list[tuple[str, int]] | None:
        """Stake transaction history, or None when the indexer call failed."""
        try:
            return await self._pool_source.stake_pool_history(account_id)
        except ConfigurationError:
            raise
        except Exception:
            logger.warning("stake_pool_discovery_failed", account_id=account_id, exc_info=True)
            return None

    async def _pool_balance(self, account_id: str, pool_id: str, block_height: int, archival: bool) -> int:
        try:
            response = await self._gateway.send(
                stake_balance_request(pool_id, account_id, block_height),
                archival=archival,
            )
            if response is None:
                return 0
            return call_result_amount(response)
        except ConfigurationError:
            raise
        except Exception:
            logger.warning(
                "stake_balance_fetch_failed",
                account_id=account_id,
                pool_id=pool_id,
                block_height=block_height,
                exc_info=True,
            )
            return 0
