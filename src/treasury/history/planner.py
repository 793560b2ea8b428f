"""Balance history reconstruction from sampled block heights.

For every period the planner samples ``interval`` block heights walking back
from the latest final block, fetches the balance at each height through the
RPC gateway (concurrently), interpolates timestamps between the oldest
sampled block and the latest block, and emits an ascending series.

Failure policy:
- a failed sample is a zero balance,
- a failed period is an empty series,
- a failed latest-block fetch is fatal for the request and falls back to
  the most recently persisted series per period.
"""

import math

from treasury.cache import TTLCache
from treasury.constants import (
    ARCHIVAL_PERIODS,
    BLOCKS_PER_HOUR,
    DEFAULT_DECIMALS,
    MIN_BLOCK_HEIGHT,
    NATIVE_TOKEN_ID,
    PERIOD_MAP,
    TOKENS,
)
from treasury.data.store import BalanceHistoryStore
from treasury.exceptions import ConfigurationError, TransportFailure
from treasury.history.fanout import gather_all
from treasury.history.formatting import convert_ft_balance, format_date
from treasury.history.interpolate import (
    interpolate_timestamps_to_ten_minutes,
    round_to_ten_minutes,
)
from treasury.history.staking import StakingBalanceAggregator
from treasury.logging import get_logger
from treasury.models import BalanceHistoryPoint, BlockHeader, PeriodConfig, block_header, decode_call_result
from treasury.rpc.gateway import RpcGateway
from treasury.rpc.queries import (
    account_amount,
    block_request,
    call_result_amount,
    ft_balance_request,
    ft_metadata_request,
    latest_block_request,
    view_account_request,
)

logger = get_logger(__name__)

BalanceHistory = dict[str, list[BalanceHistoryPoint]]


def sample_block_heights(end_block: int, period_config: PeriodConfig) -> list[int]:
    """Sample heights, most recent first, above the archival safety floor."""
    span = math.floor(BLOCKS_PER_HOUR * period_config.value)
    heights = [end_block - span * i for i in range(period_config.interval)]
    return [h for h in heights if h > MIN_BLOCK_HEIGHT]


def build_series(
    timestamps: list[int],
    balances: list[int],
    decimals: int,
    period_hours: float,
) -> list[BalanceHistoryPoint]:
    """Zip timestamps with raw balances into an ascending series."""
    points = [
        BalanceHistoryPoint(
            timestamp=ts,
            date=format_date(ts, period_hours),
            balance=convert_ft_balance(balance, decimals),
        )
        for ts, balance in zip(timestamps, balances)
    ]
    return sorted(points, key=lambda p: p.timestamp)


class BalanceHistoryPlanner:
    """Plans and executes balance history fetches for an account/token pair.

    Usage:
        planner = BalanceHistoryPlanner(gateway, store, cache, staking)
        history = await planner.get_all_balance_history("alice.near", "near")
        history["1D"]  # list[BalanceHistoryPoint], ascending
    """

    def __init__(
        self,
        gateway: RpcGateway,
        store: BalanceHistoryStore,
        cache: TTLCache,
        staking: StakingBalanceAggregator,
        periods: tuple[PeriodConfig, ...] = PERIOD_MAP,
        tokens: dict[str, dict] = TOKENS,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._cache = cache
        self._staking = staking
        self._periods = periods
        self._tokens = tokens

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def get_all_balance_history(
        self,
        account_id: str,
        token_id: str,
        periods: tuple[PeriodConfig, ...] | list[PeriodConfig] | None = None,
    ) -> BalanceHistory:
        """Balance series for every period, keyed by period label."""
        periods = tuple(periods) if periods is not None else self._periods
        labels = "-".join(p.period for p in periods)
        cache_key = f"{account_id}:{token_id}:{labels}:balance-history"

        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.debug("balance_history_cache_hit", cache_key=cache_key)
            return cached

        decimals = await self.resolve_decimals(token_id)

        try:
            latest = await self._latest_block()
            series = await gather_all(
                *(
                    self._safe_period_history(account_id, token_id, decimals, latest, p)
                    for p in periods
                )
            )
        except ConfigurationError:
            raise
        except Exception:
            logger.error(
                "balance_history_failed",
                account_id=account_id,
                token_id=token_id,
                exc_info=True,
            )
            await self._cache.delete(cache_key)
            return await self._fallback(account_id, token_id, periods)

        result: BalanceHistory = {p.period: points for p, points in zip(periods, series)}
        await self._persist(account_id, token_id, result)

        if all(result.values()):
            await self._cache.set(cache_key, result)
        else:
            logger.info(
                "balance_history_partial",
                account_id=account_id,
                token_id=token_id,
                empty_periods=[label for label, points in result.items() if not points],
            )
        return result

    async def get_single_balance_history(
        self,
        account_id: str,
        token_id: str,
        period_config: PeriodConfig,
    ) -> list[BalanceHistoryPoint]:
        """Balance series for a single period."""
        history = await self.get_all_balance_history(account_id, token_id, [period_config])
        return history.get(period_config.period, [])

    async def resolve_decimals(self, token_id: str) -> int:
        """Token precision from the static table, else ft_metadata, else 24."""
        token = self._tokens.get(token_id)
        if token is not None and token.get("decimals"):
            return int(token["decimals"])

        try:
            response = await self._gateway.send(ft_metadata_request(token_id))
            if response is None:
                raise TransportFailure("ft_metadata unavailable")
            decimals = int(decode_call_result(response)["decimals"])
            logger.debug("token_decimals_resolved", token_id=token_id, decimals=decimals)
            return decimals
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(
                "token_decimals_fallback",
                token_id=token_id,
                decimals=DEFAULT_DECIMALS,
                error=str(e),
            )
            return DEFAULT_DECIMALS

    # ──────────────────────────────────────────────
    # Per-period pipeline
    # ──────────────────────────────────────────────

    async def _latest_block(self) -> BlockHeader:
        response = await self._gateway.send(latest_block_request(), disable_cache=True)
        if response is None:
            raise TransportFailure("Failed to fetch latest block")
        return block_header(response)

    async def _safe_period_history(
        self,
        account_id: str,
        token_id: str,
        decimals: int,
        latest: BlockHeader,
        period_config: PeriodConfig,
    ) -> list[BalanceHistoryPoint]:
        try:
            return await self._period_history(account_id, token_id, decimals, latest, period_config)
        except ConfigurationError:
            raise
        except Exception:
            logger.warning(
                "balance_history_period_failed",
                account_id=account_id,
                token_id=token_id,
                period=period_config.period,
                exc_info=True,
            )
            return []

    async def _period_history(
        self,
        account_id: str,
        token_id: str,
        decimals: int,
        latest: BlockHeader,
        period_config: PeriodConfig,
    ) -> list[BalanceHistoryPoint]:
        heights = sample_block_heights(latest.height, period_config)
        if not heights:
            return []

        archival = period_config.period in ARCHIVAL_PERIODS
        timestamps = await self._sample_timestamps(heights, latest, archival)

        balances = list(
            await gather_all(
                *(self._fetch_balance(account_id, token_id, h, archival) for h in heights)
            )
        )

        if token_id == NATIVE_TOKEN_ID:
            stakes = await self._staking.get_stake_balances(account_id, heights, archival)
            balances = [liquid + staked for liquid, staked in zip(balances, stakes)]

        return build_series(timestamps, balances, decimals, period_config.value)

    async def _sample_timestamps(
        self,
        heights: list[int],
        latest: BlockHeader,
        archival: bool,
    ) -> list[int]:
        """Timestamps aligned with ``heights`` (most recent first)."""
        if len(heights) == 1:
            return [round_to_ten_minutes(latest.timestamp_ms)]

        oldest = heights[-1]
        response = await self._gateway.send(block_request(oldest), archival=archival)
        if response is None:
            raise TransportFailure(f"Failed to fetch block {oldest}")
        first = block_header(response)

        timestamps = interpolate_timestamps_to_ten_minutes(
            first.timestamp_ms, latest.timestamp_ms, len(heights)
        )
        timestamps.reverse()
        return timestamps

    async def _fetch_balance(
        self,
        account_id: str,
        token_id: str,
        block_id: int,
        archival: bool,
    ) -> int:
        """Raw balance at a height; any failure is a zero balance."""
        try:
            if token_id == NATIVE_TOKEN_ID:
                response = await self._gateway.send(
                    view_account_request(account_id, block_id), archival=archival
                )
                return account_amount(response) if response is not None else 0

            response = await self._gateway.send(
                ft_balance_request(token_id, account_id, block_id), archival=archival
            )
            return call_result_amount(response) if response is not None else 0
        except ConfigurationError:
            raise
        except Exception as e:
            logger.debug(
                "balance_sample_failed",
                account_id=account_id,
                token_id=token_id,
                block_id=block_id,
                error=str(e),
            )
            return 0

    # ──────────────────────────────────────────────
    # Persistence
    # ──────────────────────────────────────────────

    async def _persist(self, account_id: str, token_id: str, result: BalanceHistory) -> None:
        for period, points in result.items():
            if not points:
                continue
            try:
                await self._store.write(account_id, token_id, period, points)
            except Exception:
                logger.warning(
                    "balance_history_persist_failed",
                    account_id=account_id,
                    token_id=token_id,
                    period=period,
                    exc_info=True,
                )

    async def _fallback(
        self,
        account_id: str,
        token_id: str,
        periods: tuple[PeriodConfig, ...],
    ) -> BalanceHistory:
        result: BalanceHistory = {p.period: [] for p in periods}
        try:
            persisted = await self._store.read_latest_by_period(account_id, token_id)
        except Exception:
            logger.error("balance_history_fallback_failed", exc_info=True)
            return result

        for label in result:
            if label in persisted:
                result[label] = persisted[label]

        logger.info(
            "balance_history_fallback",
            account_id=account_id,
            token_id=token_id,
            periods=[label for label, points in result.items() if points],
        )
        return result
