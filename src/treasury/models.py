"""Shared data models for the treasury API.

CRITICAL: On-chain amounts are integers in the token's smallest unit.
Never use float for balances; convert through Decimal only for display.
"""

import json
from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class PeriodConfig:
    """A named sampling window.

    ``value`` is the number of hours between two samples and ``interval`` is
    the number of samples taken, so the window spans ``value * (interval - 1)``
    hours back from the latest block.
    """

    period: str
    value: float
    interval: int


@dataclass
class BalanceHistoryPoint:
    """A single point of a balance history series."""

    timestamp: int  # Unix milliseconds
    date: str
    balance: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BalanceHistoryPoint":
        return cls(
            timestamp=int(data["timestamp"]),
            date=str(data["date"]),
            balance=str(data["balance"]),
        )


@dataclass
class TokenBalanceHistoryRecord:
    """A persisted series for one (account, token, period)."""

    account_id: str
    token_id: str
    period: str
    balance_history: list[BalanceHistoryPoint]
    timestamp: int  # Unix milliseconds of the write


# ──────────────────────────────────────────────
# JSON-RPC envelopes (validated at the gateway boundary)
# ──────────────────────────────────────────────


class RpcErrorCause(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    info: dict[str, Any] | None = None


class RpcError(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    cause: RpcErrorCause | None = None
    code: int | None = None
    message: str | None = None
    data: Any = None

    @property
    def cause_name(self) -> str | None:
        return self.cause.name if self.cause is not None else None


class RpcResponse(BaseModel):
    """A JSON-RPC 2.0 response; exactly one of ``result``/``error`` is expected."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str | None = None
    id: Any = None
    result: Any = None
    error: RpcError | None = None


class BlockHeader(BaseModel):
    model_config = ConfigDict(extra="allow")

    height: int
    timestamp: int  # Unix nanoseconds

    @property
    def timestamp_ms(self) -> float:
        return self.timestamp / 1e6


def decode_call_result(response: dict) -> Any:
    """Decode the byte array returned by a ``call_function`` view call into JSON."""
    raw = bytes(response["result"]["result"])
    if not raw:
        return None
    return json.loads(raw.decode("utf-8"))


def block_header(response: dict) -> BlockHeader:
    return BlockHeader.model_validate(response["result"]["header"])
