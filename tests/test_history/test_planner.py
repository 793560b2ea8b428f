"""Tests for BalanceHistoryPlanner: sampling, series assembly, fallback and caching.

The node cluster is a FakeNode behind httpx.MockTransport so requests flow
through the real gateway, durable cache and existence oracle.
"""

import json
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from payloads import call_result_bytes, decode_args, rpc_result
from treasury.cache import TTLCache
from treasury.constants import PERIODS_BY_LABEL, TEN_MINUTES_MS
from treasury.data.store import BalanceHistoryStore
from treasury.exceptions import ConfigurationError
from treasury.history.planner import BalanceHistoryPlanner, build_series, sample_block_heights
from treasury.history.staking import StakingBalanceAggregator
from treasury.models import BalanceHistoryPoint, PeriodConfig
from treasury.rpc.existence import AccountExistenceOracle
from treasury.rpc.gateway import RpcGateway

ONE_NEAR = str(10**24)
LATEST_HEIGHT = 100_000_000
# 2023-11-14 22:20:00 UTC, a 10-minute boundary
T = 1_700_000_400_000

ONE_HOUR = PERIODS_BY_LABEL["1H"]
ONE_DAY = PERIODS_BY_LABEL["1D"]

PlannerFactory = Callable[..., tuple[BalanceHistoryPlanner, RpcGateway]]


class FakeNode:
    """Answers block, view_account and call_function queries; records what was asked."""

    def __init__(
        self,
        latest_height: int = LATEST_HEIGHT,
        latest_ts_ms: int = T,
        oldest_ts_ms: int = T - 50 * 60_000,
        native_amount: str = ONE_NEAR,
        ft_amount: str = "5000000",
        stake_amount: str = "0",
        failing_blocks: frozenset[int] = frozenset(),
        latest_fails: bool = False,
        ft_decimals: int = 8,
    ) -> None:
        self.latest_height = latest_height
        self.latest_ts_ms = latest_ts_ms
        self.oldest_ts_ms = oldest_ts_ms
        self.native_amount = native_amount
        self.ft_amount = ft_amount
        self.stake_amount = stake_amount
        self.failing_blocks = failing_blocks
        self.latest_fails = latest_fails
        self.ft_decimals = ft_decimals
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        params = body["params"]

        if body["method"] == "block":
            if "finality" in params:
                self.calls.append("latest_block")
                if self.latest_fails:
                    return httpx.Response(503, text="unavailable")
                return self._header(self.latest_height, self.latest_ts_ms)
            self.calls.append("block")
            if params["block_id"] in self.failing_blocks:
                return httpx.Response(500, text="boom")
            return self._header(params["block_id"], self.oldest_ts_ms)

        if params["request_type"] == "view_account":
            self.calls.append("view_account")
            return httpx.Response(
                200, json=rpc_result({"amount": self.native_amount, "locked": "0"})
            )

        method = params["method_name"]
        self.calls.append(method)
        if method == "ft_balance_of":
            value: object = self.ft_amount
        elif method == "get_account_total_balance":
            assert decode_args(params) == {"account_id": "alice.near"}
            value = self.stake_amount
        elif method == "ft_metadata":
            value = {"decimals": self.ft_decimals, "symbol": "TKN"}
        else:
            return httpx.Response(400, text="unexpected")
        return httpx.Response(200, json=rpc_result({"result": call_result_bytes(value)}))

    @staticmethod
    def _header(height: int, ts_ms: int) -> httpx.Response:
        return httpx.Response(
            200,
            json=rpc_result({"header": {"height": height, "timestamp": ts_ms * 1_000_000}}),
        )


@pytest.fixture
def pool_source() -> AsyncMock:
    source = AsyncMock()
    source.stake_pool_history = AsyncMock(return_value=[])
    return source


@pytest.fixture
def make_planner(
    make_gateway: Callable[..., RpcGateway],
    history_store: BalanceHistoryStore,
    cache: TTLCache,
    pool_source: AsyncMock,
) -> PlannerFactory:
    def _make(
        node: Callable[[httpx.Request], httpx.Response],
    ) -> tuple[BalanceHistoryPlanner, RpcGateway]:
        gateway = make_gateway(node)
        staking = StakingBalanceAggregator(gateway, pool_source, cache)
        return BalanceHistoryPlanner(gateway, history_store, cache, staking), gateway

    return _make


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestSampleBlockHeights:
    def test_one_hour_heights(self) -> None:
        heights = sample_block_heights(LATEST_HEIGHT, ONE_HOUR)
        assert heights == [LATEST_HEIGHT - 533 * i for i in range(6)]

    def test_most_recent_first(self) -> None:
        heights = sample_block_heights(LATEST_HEIGHT, ONE_DAY)
        assert heights == sorted(heights, reverse=True)
        assert len(heights) == 12

    def test_heights_at_or_below_floor_dropped(self) -> None:
        heights = sample_block_heights(1_010_000, ONE_DAY)
        assert heights == [1_010_000, 1_006_800, 1_003_600, 1_000_400]

    def test_everything_below_floor(self) -> None:
        assert sample_block_heights(900_000, ONE_DAY) == []


class TestBuildSeries:
    def test_output_is_ascending(self) -> None:
        timestamps = [T, T - TEN_MINUTES_MS, T - 2 * TEN_MINUTES_MS]
        series = build_series(timestamps, [3 * 10**24, 2 * 10**24, 10**24], 24, 1 / 6)

        assert [p.timestamp for p in series] == sorted(timestamps)
        assert [p.balance for p in series] == ["1.00", "2.00", "3.00"]

    def test_dates_follow_period(self) -> None:
        series = build_series([T], [0], 24, 24)
        assert series == [BalanceHistoryPoint(timestamp=T, date="Nov 14", balance="0.00")]

    def test_decimals_applied(self) -> None:
        series = build_series([T], [1_234_567], 6, 1)
        assert series[0].balance == "1.23"


# ---------------------------------------------------------------------------
# End-to-end through the gateway
# ---------------------------------------------------------------------------


class TestBalanceHistoryPlanner:
    @pytest.mark.asyncio
    async def test_one_hour_native_series(self, make_planner: PlannerFactory) -> None:
        node = FakeNode()
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        series = history["1H"]
        assert len(series) == 6
        assert [p.balance for p in series] == ["1.00"] * 6
        timestamps = [p.timestamp for p in series]
        assert timestamps == sorted(timestamps)
        assert timestamps[0] == T - 50 * 60_000
        assert timestamps[-1] == T
        assert all(T - 50 * 60_000 <= ts <= T for ts in timestamps)
        assert all(ts % TEN_MINUTES_MS == 0 for ts in timestamps)
        assert series[-1].date == "10:20 PM"

    @pytest.mark.asyncio
    async def test_one_hour_uses_recent_pool(self, make_planner: PlannerFactory) -> None:
        captured: list[str] = []
        node = FakeNode()

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request.url.host)
            return node(request)

        planner, _ = make_planner(handler)
        await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        assert captured and all(host.startswith("rpc-") for host in captured)

    @pytest.mark.asyncio
    async def test_week_uses_archival_pool(self, make_planner: PlannerFactory) -> None:
        captured: list[tuple[str, str]] = []
        node = FakeNode()

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            captured.append((request.url.host, body["params"].get("request_type", body["method"])))
            return node(request)

        planner, _ = make_planner(handler)
        await planner.get_all_balance_history("alice.near", "near", [PERIODS_BY_LABEL["1W"]])

        samples = [host for host, kind in captured if kind == "view_account"]
        assert len(samples) == 8
        assert all(host.startswith("archival-") for host in samples)

    @pytest.mark.asyncio
    async def test_fungible_token_series(self, make_planner: PlannerFactory) -> None:
        node = FakeNode(ft_amount="5000000")
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history(
            "alice.near", "usdt.tether-token.near", [ONE_HOUR]
        )

        assert [p.balance for p in history["1H"]] == ["5.00"] * 6
        assert "view_account" not in node.calls
        assert node.calls.count("ft_balance_of") == 6

    @pytest.mark.asyncio
    async def test_native_series_includes_staked_balance(
        self, make_planner: PlannerFactory, pool_source: AsyncMock
    ) -> None:
        pool_source.stake_pool_history.return_value = [("pool.poolv1.near", 90_000_000)]
        node = FakeNode(stake_amount=str(2 * 10**24))
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        assert [p.balance for p in history["1H"]] == ["3.00"] * 6
        assert node.calls.count("get_account_total_balance") == 6

    @pytest.mark.asyncio
    async def test_missing_indexer_key_raised_after_every_period_settles(
        self, make_planner: PlannerFactory, pool_source: AsyncMock
    ) -> None:
        pool_source.stake_pool_history.side_effect = ConfigurationError("no key")
        node = FakeNode()
        planner, _ = make_planner(node)

        with pytest.raises(ConfigurationError):
            await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR, ONE_DAY])

        assert node.calls.count("view_account") == 6 + 12
        assert pool_source.stake_pool_history.await_count == 2

    @pytest.mark.asyncio
    async def test_single_surviving_height_uses_latest_timestamp(
        self, make_planner: PlannerFactory
    ) -> None:
        node = FakeNode(latest_height=1_000_500, latest_ts_ms=T + 200_000)
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        assert [p.timestamp for p in history["1H"]] == [T]
        assert "block" not in node.calls

    @pytest.mark.asyncio
    async def test_account_recorded_absent_yields_zero_series_without_sample_calls(
        self,
        make_planner: PlannerFactory,
        oracle: AccountExistenceOracle,
    ) -> None:
        await oracle.record_absent("ghost.near", LATEST_HEIGHT)
        node = FakeNode()
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("ghost.near", "near", [ONE_HOUR])

        assert [p.balance for p in history["1H"]] == ["0.00"] * 6
        assert "view_account" not in node.calls

    @pytest.mark.asyncio
    async def test_get_single_balance_history(self, make_planner: PlannerFactory) -> None:
        planner, _ = make_planner(FakeNode())

        series = await planner.get_single_balance_history("alice.near", "near", ONE_HOUR)

        assert len(series) == 6


# ---------------------------------------------------------------------------
# Caching, persistence and fallback
# ---------------------------------------------------------------------------


class TestPlannerCachingAndFallback:
    @pytest.mark.asyncio
    async def test_complete_result_is_cached_and_persisted(
        self,
        make_planner: PlannerFactory,
        history_store: BalanceHistoryStore,
    ) -> None:
        planner, gateway = make_planner(FakeNode())

        first = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])
        calls = gateway.network_calls
        second = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        assert second == first
        assert gateway.network_calls == calls
        assert await history_store.read_latest("alice.near", "near", "1H") == first["1H"]

    @pytest.mark.asyncio
    async def test_failed_period_is_empty_and_result_not_cached(
        self,
        make_planner: PlannerFactory,
        history_store: BalanceHistoryStore,
        cache: TTLCache,
    ) -> None:
        oldest_day_height = LATEST_HEIGHT - 3200 * 11
        node = FakeNode(failing_blocks=frozenset({oldest_day_height}))
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR, ONE_DAY])

        assert len(history["1H"]) == 6
        assert history["1D"] == []
        assert await history_store.read_latest("alice.near", "near", "1D") is None
        assert await history_store.read_latest("alice.near", "near", "1H") == history["1H"]
        assert await cache.get("alice.near:near:1H-1D:balance-history") is None

    @pytest.mark.asyncio
    async def test_latest_block_failure_falls_back_to_persisted(
        self,
        make_planner: PlannerFactory,
        history_store: BalanceHistoryStore,
    ) -> None:
        persisted = [BalanceHistoryPoint(timestamp=T, date="10:20 PM", balance="7.00")]
        await history_store.write("alice.near", "near", "1H", persisted)
        node = FakeNode(latest_fails=True)
        planner, _ = make_planner(node)

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR, ONE_DAY])

        assert history == {"1H": persisted, "1D": []}
        assert "view_account" not in node.calls
        assert node.calls.count("latest_block") == 3

    @pytest.mark.asyncio
    async def test_fallback_without_persisted_data_is_empty(
        self, make_planner: PlannerFactory
    ) -> None:
        planner, _ = make_planner(FakeNode(latest_fails=True))

        history = await planner.get_all_balance_history("alice.near", "near", [ONE_HOUR])

        assert history == {"1H": []}


class TestResolveDecimals:
    @pytest.mark.asyncio
    async def test_known_token_uses_table(self, make_planner: PlannerFactory) -> None:
        node = FakeNode()
        planner, _ = make_planner(node)

        assert await planner.resolve_decimals("usdt.tether-token.near") == 6
        assert "ft_metadata" not in node.calls

    @pytest.mark.asyncio
    async def test_unknown_token_reads_metadata(self, make_planner: PlannerFactory) -> None:
        planner, _ = make_planner(FakeNode(ft_decimals=8))

        assert await planner.resolve_decimals("new-token.near") == 8

    @pytest.mark.asyncio
    async def test_unreadable_metadata_defaults_to_24(
        self, make_planner: PlannerFactory
    ) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="down")

        planner, _ = make_planner(broken)

        assert await planner.resolve_decimals("new-token.near") == 24

    @pytest.mark.asyncio
    async def test_custom_period_config(self, make_planner: PlannerFactory) -> None:
        planner, _ = make_planner(FakeNode())
        two_samples = PeriodConfig(period="custom", value=1, interval=2)

        history = await planner.get_all_balance_history("alice.near", "near", [two_samples])

        assert len(history["custom"]) == 2
