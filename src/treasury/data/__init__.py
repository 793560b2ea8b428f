"""Persistence layer.

Provides the SQLite database manager and the typed stores for the durable
RPC response cache and the balance history fallback.
"""

from treasury.data.database import TreasuryDatabase
from treasury.data.store import BalanceHistoryStore, RpcResponseCache

__all__ = [
    "BalanceHistoryStore",
    "RpcResponseCache",
    "TreasuryDatabase",
]
