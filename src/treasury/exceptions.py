"""Custom exceptions for the treasury API.

All gateway, planner and service exceptions live here to avoid circular
imports between modules.
"""


class TreasuryError(Exception):
    """Base exception for all treasury API errors."""


class TransportFailure(TreasuryError):
    """A single upstream endpoint could not produce a usable response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(TransportFailure):
    """A JSON-RPC response carried an ``error`` field."""

    def __init__(self, message: str, cause: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.cause = cause


class AccountNotFound(TreasuryError):
    """The account did not exist at (or before) the queried block height."""

    def __init__(self, account_id: str, block_height: int) -> None:
        super().__init__(
            f"Account {account_id} did not exist at or before block {block_height}"
        )
        self.account_id = account_id
        self.block_height = block_height


class ConfigurationError(TreasuryError):
    """A required credential or setting is missing."""


class InvalidArgument(TreasuryError, ValueError):
    """Raised on programming errors such as interpolating fewer than two steps."""


class UpstreamError(TreasuryError):
    """A REST indexer, price source or the smart router failed."""


class NotFoundError(TreasuryError):
    """The requested resource does not exist (mapped to HTTP 404)."""
