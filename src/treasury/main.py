"""Entry point for the treasury API server.

Wires all components together inside the FastAPI lifespan so the database,
the RPC gateway and the shared HTTP client live on the server's event loop.

Component wiring order (in build_components):
1. TreasuryDatabase (already connected)
2. RpcResponseCache + AccountExistenceOracle + RpcGateway
3. Shared httpx client + indexer/price/router clients
4. TTLCache (in-memory response cache)
5. StakingBalanceAggregator + BalanceHistoryPlanner
6. Route services (tokens, swap, NEAR price, transfers)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI

from treasury.api.app import create_app
from treasury.cache import TTLCache
from treasury.config import AppSettings
from treasury.data.database import TreasuryDatabase
from treasury.data.store import BalanceHistoryStore, RpcResponseCache
from treasury.history.planner import BalanceHistoryPlanner
from treasury.history.staking import StakingBalanceAggregator
from treasury.indexers.nearblocks import NearBlocksClient
from treasury.indexers.pikespeak import PikespeakClient
from treasury.indexers.prices import PriceOracle
from treasury.indexers.ref_finance import RefFinanceClient
from treasury.logging import get_logger, setup_logging
from treasury.rpc.existence import AccountExistenceOracle
from treasury.rpc.gateway import RpcGateway
from treasury.services.near_price import NearPriceService
from treasury.services.swap import SwapService
from treasury.services.tokens import TokenService
from treasury.services.transfers import TransferHistoryService


def build_components(
    settings: AppSettings,
    database: TreasuryDatabase,
    http_client: httpx.AsyncClient,
) -> dict[str, Any]:
    """Build every service from settings and a connected database.

    Returns:
        Dict mapping component names to instances; each is attached to
        app.state under the same name.
    """
    gateway = RpcGateway(
        settings.rpc,
        RpcResponseCache(database),
        AccountExistenceOracle(database),
    )

    nearblocks = NearBlocksClient(settings.indexer, http_client)
    pikespeak = PikespeakClient(settings.indexer, http_client)
    ref = RefFinanceClient(settings.indexer, http_client)
    price_oracle = PriceOracle(settings.indexer, http_client)

    cache = TTLCache(default_ttl=settings.cache.default_ttl)
    history_store = BalanceHistoryStore(database)

    staking = StakingBalanceAggregator(gateway, nearblocks, cache)
    planner = BalanceHistoryPlanner(gateway, history_store, cache, staking)

    return {
        "gateway": gateway,
        "cache": cache,
        "history_store": history_store,
        "planner": planner,
        "token_service": TokenService(
            pikespeak, nearblocks, ref, cache, ft_tokens_ttl=settings.cache.ft_tokens_ttl
        ),
        "swap_service": SwapService(ref, gateway, cache),
        "near_price_service": NearPriceService(
            price_oracle, cache, ttl=settings.cache.near_price_ttl
        ),
        "transfer_service": TransferHistoryService(
            pikespeak, cache, refresh_ttl=settings.cache.transfer_refresh_ttl
        ),
    }


def create_server_app(settings: AppSettings) -> FastAPI:
    """Application with a lifespan that owns the database and HTTP clients."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger = get_logger("treasury.main")
        database = TreasuryDatabase(settings.storage.db_path)
        await database.connect()
        http_client = httpx.AsyncClient(timeout=settings.indexer.request_timeout)

        components = build_components(settings, database, http_client)
        for name, component in components.items():
            setattr(app.state, name, component)
        logger.info("treasury_api_started", components=len(components))

        try:
            yield
        finally:
            await components["gateway"].close()
            await http_client.aclose()
            await database.close()
            logger.info("treasury_api_stopped")

    return create_app(lifespan=lifespan)


def main() -> None:
    settings = AppSettings()
    setup_logging(settings.log_level)
    app = create_server_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
