"""Ref Finance: token prices, token list and the smart router path finder."""

from typing import Any

import httpx

from treasury.config import IndexerSettings
from treasury.exceptions import UpstreamError
from treasury.indexers.client import RestClient


class RefFinanceClient(RestClient):
    def __init__(self, settings: IndexerSettings, client: httpx.AsyncClient) -> None:
        super().__init__(settings.ref_base_url, client, settings.request_timeout)
        self._smart_router_url = settings.smart_router_url.rstrip("/")

    async def token_price(self, token_id: str) -> Any:
        data = await self.get_json("/get-token-price", params={"token_id": token_id})
        return data.get("price")

    async def list_tokens(self) -> dict[str, dict]:
        """Whitelisted token metadata keyed by contract id."""
        return await self.get_json("/list-token")

    async def find_path(
        self,
        amount_in: str,
        token_in: str,
        token_out: str,
        slippage: str,
        path_deep: int = 3,
    ) -> dict:
        """Route plan for a swap (``amount_out`` and ``routes[].pools[]``)."""
        data = await self.get_json(
            f"{self._smart_router_url}/findPath",
            params={
                "amountIn": amount_in,
                "tokenIn": token_in,
                "tokenOut": token_out,
                "pathDeep": path_deep,
                "slippage": slippage,
            },
        )
        result = data.get("result_data") if isinstance(data, dict) else None
        if not result or "amount_out" not in result:
            raise UpstreamError(f"Smart router returned no route for {token_in} -> {token_out}")
        return result
