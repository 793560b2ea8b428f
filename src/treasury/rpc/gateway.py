"""JSON-RPC gateway with endpoint failover, rate-limit cooldowns and a durable cache.

Every RPC call in the service goes through RpcGateway.send(). The gateway:

- short-circuits account-state queries for accounts recorded as absent
  at or after the queried height (AccountExistenceOracle),
- returns the newest durable cache row for a content-equal request unless
  the caller disables caching,
- walks the selected endpoint pool in priority order, skipping endpoints
  that answered 429 within the cooldown window,
- treats transport errors, non-2xx statuses, JSON-RPC ``error`` payloads,
  missing ``result`` fields and unparseable bodies as per-endpoint failures,
- returns None (the exhaustion sentinel) when every endpoint failed.

ConfigurationError and AccountNotFound are the only exceptions that escape.
"""

import hashlib
import json
import time
from collections.abc import Callable
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from treasury.config import RpcSettings
from treasury.data.store import RpcResponseCache
from treasury.exceptions import ConfigurationError, ProtocolError, TransportFailure
from treasury.logging import get_logger
from treasury.models import RpcResponse
from treasury.rpc.existence import AccountExistenceOracle

logger = get_logger(__name__)

UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
_ACCOUNT_STATE_REQUESTS = frozenset({"view_account", "view_state"})


def request_hash(request: dict) -> str:
    """sha256 of the canonical JSON form (sorted keys, compact separators)."""
    canonical = json.dumps(request, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _account_state_target(request: dict) -> tuple[str, int] | None:
    """Return (account_id, block_height) for account-state queries at a numeric height."""
    params = request.get("params")
    if not isinstance(params, dict):
        return None
    if params.get("request_type") not in _ACCOUNT_STATE_REQUESTS:
        return None

    account_id = params.get("account_id")
    block_id = params.get("block_id")
    if not account_id or isinstance(block_id, bool):
        return None
    if isinstance(block_id, int):
        return account_id, block_id
    if isinstance(block_id, str) and block_id.isdigit():
        return account_id, int(block_id)
    return None


class EndpointCooldowns:
    """Remembers which endpoints answered 429 and when.

    Entries are only touched from the event loop between awaits, so no lock
    is needed.
    """

    def __init__(
        self,
        cooldown_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._marked_at: dict[str, float] = {}

    def mark(self, endpoint: str) -> None:
        self._marked_at[endpoint] = self._clock()

    def is_cooling_down(self, endpoint: str) -> bool:
        marked_at = self._marked_at.get(endpoint)
        if marked_at is None:
            return False
        if self._clock() - marked_at < self._cooldown_seconds:
            return True
        del self._marked_at[endpoint]
        return False


class RpcGateway:
    """Failover JSON-RPC client shared by every RPC consumer.

    Usage:
        gateway = RpcGateway(settings.rpc, RpcResponseCache(db), AccountExistenceOracle(db))
        response = await gateway.send(latest_block_request(), disable_cache=True)
        if response is None:
            ...  # every endpoint failed
    """

    def __init__(
        self,
        settings: RpcSettings,
        response_cache: RpcResponseCache,
        oracle: AccountExistenceOracle,
        client: httpx.AsyncClient | None = None,
        cooldowns: EndpointCooldowns | None = None,
    ) -> None:
        self._settings = settings
        self._response_cache = response_cache
        self._oracle = oracle
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._cooldowns = cooldowns or EndpointCooldowns(settings.rate_limit_cooldown_seconds)
        self.network_calls = 0

    async def close(self) -> None:
        await self._client.aclose()

    def endpoints(self, archival: bool) -> list[str]:
        return list(self._settings.archival_endpoints if archival else self._settings.endpoints)

    # ──────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────

    async def send(
        self,
        request: dict,
        disable_cache: bool = False,
        archival: bool = False,
    ) -> dict | None:
        """Send a JSON-RPC request; return the response or None if every endpoint failed.

        Raises AccountNotFound when the oracle already knows the account is
        absent, and ConfigurationError when a keyed endpoint has no key.
        """
        target = _account_state_target(request)
        if target is not None:
            await self._oracle.assert_exists(*target)

        hashed = request_hash(request)
        if not disable_cache:
            cached = await self._response_cache.get_latest(hashed)
            if cached is not None:
                logger.debug("rpc_cache_hit", request_hash=hashed)
                return cached

        for endpoint in self.endpoints(archival):
            if self._cooldowns.is_cooling_down(endpoint):
                logger.debug("rpc_endpoint_cooling_down", endpoint=endpoint)
                continue

            try:
                response = await self._post(endpoint, request)
            except TransportFailure as e:
                await self._handle_failure(endpoint, e, target)
                continue

            await self._response_cache.insert(hashed, endpoint, request, response)
            return response

        logger.error(
            "rpc_all_endpoints_failed",
            method=request.get("method"),
            archival=archival,
        )
        return None

    # ──────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────

    def _headers(self, endpoint: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        host = urlparse(endpoint).hostname or ""
        if host in self._settings.keyed_hosts:
            api_key = self._settings.fastnear_api_key.get_secret_value()
            if not api_key:
                raise ConfigurationError(f"RPC endpoint {endpoint} requires an API key")
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def _post(self, endpoint: str, request: dict) -> dict:
        """POST to one endpoint and validate the envelope. Raises TransportFailure."""
        headers = self._headers(endpoint)
        self.network_calls += 1
        try:
            http_response = await self._client.post(
                endpoint,
                json=request,
                headers=headers,
                timeout=self._settings.request_timeout,
            )
        except httpx.HTTPError as e:
            raise TransportFailure(f"{type(e).__name__}: {e}") from e

        try:
            body = http_response.json()
        except ValueError:
            body = None

        envelope: RpcResponse | None = None
        if isinstance(body, dict):
            try:
                envelope = RpcResponse.model_validate(body)
            except ValidationError:
                envelope = None

        status = http_response.status_code
        if envelope is not None and envelope.error is not None:
            error = envelope.error
            raise ProtocolError(
                f"RPC {error.cause_name}: {error.data}",
                cause=error.cause_name,
                status_code=status,
            )
        if not http_response.is_success:
            raise TransportFailure(f"HTTP {status}", status_code=status)
        if envelope is None:
            raise TransportFailure("Invalid response: unparseable body", status_code=status)
        if envelope.result is None:
            raise TransportFailure("Invalid response: missing result", status_code=status)
        return body

    async def _handle_failure(
        self,
        endpoint: str,
        error: TransportFailure,
        target: tuple[str, int] | None,
    ) -> None:
        if (
            target is not None
            and isinstance(error, ProtocolError)
            and error.cause == UNKNOWN_ACCOUNT
        ):
            await self._oracle.record_absent(*target)

        if error.status_code == 429:
            self._cooldowns.mark(endpoint)
            logger.warning("rpc_endpoint_rate_limited", endpoint=endpoint)
        else:
            logger.warning("rpc_endpoint_failed", endpoint=endpoint, error=str(error))
