"""Pikespeak indexer: account balances and NEAR / FT transfer history."""

import httpx

from treasury.config import IndexerSettings
from treasury.exceptions import ConfigurationError
from treasury.indexers.client import RestClient


class PikespeakClient(RestClient):
    def __init__(self, settings: IndexerSettings, client: httpx.AsyncClient) -> None:
        super().__init__(settings.pikespeak_base_url, client, settings.request_timeout)
        self._api_key = settings.pikespeak_api_key

    def _headers(self) -> dict[str, str]:
        api_key = self._api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("INDEXER_PIKESPEAK_API_KEY is not set")
        return {**super()._headers(), "Content-Type": "application/json", "x-api-key": api_key}

    def require_key(self) -> None:
        self._headers()

    async def account_balances(self, account_id: str) -> list[dict]:
        return await self.get_json(f"/account/balance/{account_id}")

    async def near_transfers(self, account_id: str, limit: int, offset: int) -> list[dict]:
        return await self.get_json(
            f"/account/near-transfer/{account_id}", params={"limit": limit, "offset": offset}
        )

    async def ft_transfers(self, account_id: str, limit: int, offset: int) -> list[dict]:
        return await self.get_json(
            f"/account/ft-transfer/{account_id}", params={"limit": limit, "offset": offset}
        )
