"""Shared test fixtures for the treasury API."""

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
import pytest_asyncio

from treasury.cache import TTLCache
from treasury.config import AppSettings, IndexerSettings, RpcSettings
from treasury.data.database import TreasuryDatabase
from treasury.data.store import BalanceHistoryStore, RpcResponseCache
from treasury.rpc.existence import AccountExistenceOracle
from treasury.rpc.gateway import RpcGateway

RECENT_ENDPOINTS = ["https://rpc-a.test", "https://rpc-b.test", "https://rpc-c.test"]
ARCHIVAL_ENDPOINTS = ["https://archival-a.test", "https://archival-b.test"]


@pytest.fixture
def rpc_settings() -> RpcSettings:
    """Three recent endpoints, two archival ones, no keyed hosts."""
    return RpcSettings(
        endpoints=RECENT_ENDPOINTS,
        archival_endpoints=ARCHIVAL_ENDPOINTS,
        keyed_hosts=[],
        request_timeout=1.0,
        rate_limit_cooldown_seconds=10.0,
    )


@pytest.fixture
def indexer_settings() -> IndexerSettings:
    return IndexerSettings(
        nearblocks_base_url="https://nearblocks.test",
        nearblocks_api_key="nb-key",  # type: ignore[arg-type]
        pikespeak_base_url="https://pikespeak.test",
        pikespeak_api_key="pk-key",  # type: ignore[arg-type]
        ref_base_url="https://ref.test",
        smart_router_url="https://router.test",
        price_sources=[
            "https://coingecko.test/simple/price",
            "https://binance.test/ticker/price",
            "https://cryptocompare.test/data/price",
        ],
    )


@pytest.fixture
def mock_settings(rpc_settings: RpcSettings, indexer_settings: IndexerSettings) -> AppSettings:
    return AppSettings(log_level="DEBUG", rpc=rpc_settings, indexer=indexer_settings)


@pytest_asyncio.fixture
async def database() -> AsyncIterator[TreasuryDatabase]:
    """Fresh in-memory database per test."""
    async with TreasuryDatabase(":memory:") as db:
        yield db


@pytest.fixture
def history_store(database: TreasuryDatabase) -> BalanceHistoryStore:
    return BalanceHistoryStore(database)


@pytest.fixture
def oracle(database: TreasuryDatabase) -> AccountExistenceOracle:
    return AccountExistenceOracle(database)


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(default_ttl=600)


@pytest.fixture
def make_gateway(
    rpc_settings: RpcSettings,
    database: TreasuryDatabase,
    oracle: AccountExistenceOracle,
) -> Callable[..., RpcGateway]:
    """Build a gateway whose HTTP traffic is answered by ``handler``."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        settings: RpcSettings | None = None,
    ) -> RpcGateway:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RpcGateway(
            settings or rpc_settings,
            RpcResponseCache(database),
            oracle,
            client=client,
        )

    return _make

