"""Typed SQLite read/write abstraction for the durable caches.

RpcResponseCache holds raw JSON-RPC responses keyed by request hash.
BalanceHistoryStore holds computed balance series used as a read-through
fallback when live computation fails. All SQL is isolated behind these
classes.

Both tables are append-only: a newer row for the same key supersedes older
ones, so reads always take the most recent row (ties broken by row id).
"""

import json
import time

from treasury.data.database import TreasuryDatabase
from treasury.logging import get_logger
from treasury.models import BalanceHistoryPoint, TokenBalanceHistoryRecord

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RpcResponseCache:
    """Durable cache of successful JSON-RPC responses."""

    def __init__(self, database: TreasuryDatabase) -> None:
        self._database = database

    async def get_latest(self, request_hash: str) -> dict | None:
        """Return the most recently stored response body for a hash, or None."""
        cursor = await self._database.db.execute(
            "SELECT response_body FROM rpc_requests WHERE request_hash = ? "
            "ORDER BY timestamp_ms DESC, id DESC LIMIT 1",
            (request_hash,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def insert(
        self,
        request_hash: str,
        endpoint: str,
        request_body: dict,
        response_body: dict,
    ) -> None:
        await self._database.db.execute(
            "INSERT INTO rpc_requests "
            "(request_hash, endpoint, request_body, response_body, timestamp_ms) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                request_hash,
                endpoint,
                json.dumps(request_body),
                json.dumps(response_body),
                _now_ms(),
            ),
        )
        await self._database.db.commit()
        logger.debug("rpc_response_cached", request_hash=request_hash, endpoint=endpoint)


class BalanceHistoryStore:
    """Persisted balance history series, one row per successful computation.

    Usage:
        async with TreasuryDatabase("data/treasury.db") as database:
            store = BalanceHistoryStore(database)
            await store.write("alice.near", "near", "1D", points)
            latest = await store.read_latest("alice.near", "near", "1D")
    """

    def __init__(self, database: TreasuryDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def write(
        self,
        account_id: str,
        token_id: str,
        period: str,
        points: list[BalanceHistoryPoint],
    ) -> None:
        await self._database.db.execute(
            "INSERT INTO token_balance_history "
            "(account_id, token_id, period, balance_history, timestamp_ms) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                account_id,
                token_id,
                period,
                json.dumps([p.to_dict() for p in points]),
                _now_ms(),
            ),
        )
        await self._database.db.commit()
        logger.debug(
            "balance_history_persisted",
            account_id=account_id,
            token_id=token_id,
            period=period,
            points=len(points),
        )

    async def purge(self, account_id: str | None = None, token_id: str | None = None) -> int:
        """Delete persisted series, optionally narrowed to an account and/or token.

        Returns the number of deleted rows.
        """
        conditions: list[str] = []
        params: list = []
        if account_id is not None:
            conditions.append("account_id = ?")
            params.append(account_id)
        if token_id is not None:
            conditions.append("token_id = ?")
            params.append(token_id)

        query = "DELETE FROM token_balance_history"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        cursor = await self._database.db.execute(query, params)
        await self._database.db.commit()
        deleted = cursor.rowcount
        logger.info(
            "balance_history_purged",
            account_id=account_id,
            token_id=token_id,
            deleted=deleted,
        )
        return deleted

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def read_latest(
        self, account_id: str, token_id: str, period: str
    ) -> list[BalanceHistoryPoint] | None:
        """Return the most recent series for one period, or None if never stored."""
        cursor = await self._database.db.execute(
            "SELECT balance_history FROM token_balance_history "
            "WHERE account_id = ? AND token_id = ? AND period = ? "
            "ORDER BY timestamp_ms DESC, id DESC LIMIT 1",
            (account_id, token_id, period),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return [BalanceHistoryPoint.from_dict(p) for p in json.loads(row[0])]

    async def read_latest_by_period(
        self, account_id: str, token_id: str
    ) -> dict[str, list[BalanceHistoryPoint]]:
        """Return the most recent series for every stored period of a pair."""
        records = await self.read_records(account_id, token_id)
        latest: dict[str, list[BalanceHistoryPoint]] = {}
        for record in records:
            latest.setdefault(record.period, record.balance_history)
        return latest

    async def read_records(
        self, account_id: str, token_id: str
    ) -> list[TokenBalanceHistoryRecord]:
        """Return every stored record for a pair, newest first."""
        cursor = await self._database.db.execute(
            "SELECT account_id, token_id, period, balance_history, timestamp_ms "
            "FROM token_balance_history WHERE account_id = ? AND token_id = ? "
            "ORDER BY timestamp_ms DESC, id DESC",
            (account_id, token_id),
        )
        rows = await cursor.fetchall()
        return [
            TokenBalanceHistoryRecord(
                account_id=row[0],
                token_id=row[1],
                period=row[2],
                balance_history=[BalanceHistoryPoint.from_dict(p) for p in json.loads(row[3])],
                timestamp=row[4],
            )
            for row in rows
        ]
