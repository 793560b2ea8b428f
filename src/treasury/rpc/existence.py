"""Negative cache of account existence at a block height.

Accounts persist once created, so "absent at height H" implies "absent at
every height <= H". Rows are permanent facts about chain history and are
never expired; positive existence is never recorded.
"""

import time

from treasury.data.database import TreasuryDatabase
from treasury.exceptions import AccountNotFound
from treasury.logging import get_logger

logger = get_logger(__name__)


class AccountExistenceOracle:
    def __init__(self, database: TreasuryDatabase) -> None:
        self._database = database

    async def is_known_absent(self, account_id: str, block_height: int) -> bool:
        cursor = await self._database.db.execute(
            "SELECT 1 FROM account_block_existence "
            "WHERE account_id = ? AND exists_flag = 0 AND block_height >= ? LIMIT 1",
            (account_id, block_height),
        )
        return await cursor.fetchone() is not None

    async def assert_exists(self, account_id: str, block_height: int) -> None:
        """Raise AccountNotFound if the account is recorded absent at or after this height."""
        if await self.is_known_absent(account_id, block_height):
            logger.debug(
                "account_absent_short_circuit",
                account_id=account_id,
                block_height=block_height,
            )
            raise AccountNotFound(account_id, block_height)

    async def record_absent(self, account_id: str, block_height: int) -> None:
        await self._database.db.execute(
            "INSERT INTO account_block_existence "
            "(account_id, block_height, exists_flag, timestamp_ms) VALUES (?, ?, 0, ?)",
            (account_id, block_height, int(time.time() * 1000)),
        )
        await self._database.db.commit()
        logger.info("account_absence_recorded", account_id=account_id, block_height=block_height)
