"""SQLite storage for the durable RPC cache, account existence and balance history.

One aiosqlite connection per process, opened in WAL mode. The schema is
applied as an ordered list of migrations; the applied version is tracked in
the ``schema_version`` table so a restart only runs what is new.
"""

import os
from typing import Self

import aiosqlite

from treasury.logging import get_logger

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"

# Append only; each entry is applied once, in order.
MIGRATIONS: tuple[str, ...] = (
    """
    CREATE TABLE rpc_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_hash TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        request_body TEXT NOT NULL,
        response_body TEXT NOT NULL,
        timestamp_ms INTEGER NOT NULL
    );
    CREATE INDEX idx_rpc_requests_hash ON rpc_requests(request_hash, timestamp_ms);

    CREATE TABLE account_block_existence (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL,
        block_height INTEGER NOT NULL,
        exists_flag INTEGER NOT NULL,
        timestamp_ms INTEGER NOT NULL
    );
    CREATE INDEX idx_existence_account_height
        ON account_block_existence(account_id, block_height);

    CREATE TABLE token_balance_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL,
        token_id TEXT NOT NULL,
        period TEXT NOT NULL,
        balance_history TEXT NOT NULL,
        timestamp_ms INTEGER NOT NULL
    );
    CREATE INDEX idx_balance_history_lookup
        ON token_balance_history(account_id, token_id, period, timestamp_ms);
    """,
)

SCHEMA_VERSION = len(MIGRATIONS)


class TreasuryDatabase:
    """Owns the aiosqlite connection used by every store.

    Usage:
        async with TreasuryDatabase("data/treasury.db") as database:
            cache = RpcResponseCache(database)

    ``":memory:"`` gives an isolated database that disappears on close.
    """

    def __init__(self, db_path: str = "data/treasury.db") -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"TreasuryDatabase({self._db_path!r}) is not open")
        return self._conn

    async def connect(self) -> None:
        if self._db_path != MEMORY_PATH:
            parent = os.path.dirname(self._db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)

        conn = await aiosqlite.connect(self._db_path)
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        self._conn = conn

        applied = await self._migrate()
        logger.info(
            "treasury_db_connected",
            db_path=self._db_path,
            schema_version=SCHEMA_VERSION,
            migrations_applied=applied,
        )

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        await conn.close()
        logger.info("treasury_db_closed", db_path=self._db_path)

    async def current_version(self) -> int:
        cursor = await self.db.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version")
        (version,) = await cursor.fetchone()
        return int(version)

    async def _migrate(self) -> int:
        """Apply pending migrations; returns how many ran."""
        await self.db.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
        start = await self.current_version()

        for version, script in enumerate(MIGRATIONS[start:], start=start + 1):
            await self.db.executescript(script)
            await self.db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            logger.info("schema_migrated", version=version)

        await self.db.commit()
        return max(SCHEMA_VERSION - start, 0)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
