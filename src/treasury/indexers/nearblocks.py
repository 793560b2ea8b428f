"""NEARBlocks indexer: FT inventory and stake transactions."""

import httpx

from treasury.config import IndexerSettings
from treasury.exceptions import ConfigurationError
from treasury.indexers.client import RestClient
from treasury.logging import get_logger

logger = get_logger(__name__)

STAKE_TXNS_PER_PAGE = 25
MAX_STAKE_TXN_PAGES = 40


class NearBlocksClient(RestClient):
    def __init__(self, settings: IndexerSettings, client: httpx.AsyncClient) -> None:
        super().__init__(settings.nearblocks_base_url, client, settings.request_timeout)
        self._api_key = settings.nearblocks_api_key

    def _headers(self) -> dict[str, str]:
        api_key = self._api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("INDEXER_NEARBLOCKS_API_KEY is not set")
        return {**super()._headers(), "Authorization": f"Bearer {api_key}"}

    async def account_inventory(self, account_id: str) -> dict:
        return await self.get_json(f"/v1/account/{account_id}/inventory")

    async def stake_pool_history(self, account_id: str) -> list[tuple[str, int]]:
        """(pool_id, block_height) for every staking call the account made.

        Walks pages until a short page; the result is ordered by block height.
        """
        history: list[tuple[str, int]] = []
        for page in range(1, MAX_STAKE_TXN_PAGES + 1):
            data = await self.get_json(
                f"/v1/account/{account_id}/stake-txns",
                params={"page": page, "per_page": STAKE_TXNS_PER_PAGE, "order": "asc"},
            )
            txns = data.get("txns") or []
            for txn in txns:
                pool_id = txn.get("receiver_account_id")
                block = txn.get("block") or {}
                height = block.get("block_height")
                if pool_id and height is not None:
                    history.append((pool_id, int(height)))
            if len(txns) < STAKE_TXNS_PER_PAGE:
                break
        else:
            logger.warning("stake_txns_truncated", account_id=account_id, pages=MAX_STAKE_TXN_PAGES)

        history.sort(key=lambda item: item[1])
        return history
