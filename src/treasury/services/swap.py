"""Swap quotes and unsigned transactions through the Ref Finance smart router.

The router returns a route plan; this module resolves token metadata, adds
a storage registration for the output token when the account has none, and
wraps the plan's pool actions into an ``ft_transfer_call`` to the Ref
exchange contract. NEAR <-> wNEAR is served directly by wrap/unwrap calls.
"""

import json
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from treasury.cache import TTLCache
from treasury.constants import (
    NATIVE_TOKEN_ID,
    NO_REQUIRED_REGISTRATION_TOKEN_IDS,
    ONE_YOCTO_NEAR,
    REF_EXCHANGE_CONTRACT_ID,
    STORAGE_TO_REGISTER_WITH_FT,
    WRAP_NEAR_CONTRACT_ID,
)
from treasury.exceptions import NotFoundError, UpstreamError
from treasury.history.formatting import from_non_divisible_number, to_non_divisible_number
from treasury.indexers.ref_finance import RefFinanceClient
from treasury.logging import get_logger
from treasury.models import decode_call_result
from treasury.rpc.gateway import RpcGateway
from treasury.rpc.queries import storage_balance_request

logger = get_logger(__name__)

TOKEN_LIST_CACHE_KEY = "ref-token-list"

STORAGE_DEPOSIT_GAS = "30000000000000"
REGISTER_ACCOUNT_GAS = "10000000000000"
WRAP_GAS = "50000000000000"
SWAP_GAS = "180000000000000"

_FIVE_PLACES = Decimal("0.00001")


@dataclass(frozen=True)
class SwapToken:
    id: str
    symbol: str
    name: str
    decimals: int


def _storage_deposit_call(account_id: str) -> dict:
    return {
        "methodName": "storage_deposit",
        "args": {"registration_only": True, "account_id": account_id},
        "gas": STORAGE_DEPOSIT_GAS,
        "amount": to_non_divisible_number(24, STORAGE_TO_REGISTER_WITH_FT),
    }


def route_actions(routes: list[dict]) -> list[dict]:
    """Flatten router pools into exchange actions.

    A zero ``amount_in`` is dropped (the exchange chains the previous
    output) and ``pool_id`` must be numeric.
    """
    actions = []
    for route in routes:
        for pool in route.get("pools", []):
            action = dict(pool)
            if "amount_in" in action and Decimal(str(action["amount_in"] or 0)) == 0:
                del action["amount_in"]
            action["pool_id"] = int(action["pool_id"])
            actions.append(action)
    return actions


class SwapService:
    def __init__(
        self,
        ref: RefFinanceClient,
        gateway: RpcGateway,
        cache: TTLCache,
    ) -> None:
        self._ref = ref
        self._gateway = gateway
        self._cache = cache

    async def search_token(self, query: str) -> SwapToken | None:
        """Resolve a contract id or symbol against the Ref token list."""
        if query.lower() == NATIVE_TOKEN_ID:
            query = WRAP_NEAR_CONTRACT_ID

        tokens = await self._cache.get(TOKEN_LIST_CACHE_KEY)
        if tokens is None:
            tokens = await self._ref.list_tokens()
            await self._cache.set(TOKEN_LIST_CACHE_KEY, tokens)

        needle = query.lower()
        match = tokens.get(query)
        if match is not None:
            return self._swap_token(query, match)

        for token_id, meta in tokens.items():
            if str(meta.get("symbol", "")).lower() == needle:
                return self._swap_token(token_id, meta)
        for token_id, meta in tokens.items():
            if needle in str(meta.get("name", "")).lower():
                return self._swap_token(token_id, meta)
        return None

    @staticmethod
    def _swap_token(token_id: str, meta: dict) -> SwapToken:
        return SwapToken(
            id=meta.get("id", token_id),
            symbol=meta.get("symbol", ""),
            name=meta.get("name", ""),
            decimals=int(meta["decimals"]),
        )

    async def get_swap(
        self,
        account_id: str,
        token_in: str,
        token_out: str,
        amount_in: str,
        slippage: str,
    ) -> dict:
        """Return ``{"transactions": [...], "outEstimate": str}`` for a swap."""
        is_wrap_in = token_in == WRAP_NEAR_CONTRACT_ID
        is_wrap_out = token_out == WRAP_NEAR_CONTRACT_ID

        token_in_data = await self.search_token(token_in)
        token_out_data = await self.search_token(token_out)
        if token_in_data is None or token_out_data is None:
            raise NotFoundError(f"Unable to find token(s) {token_in}, {token_out}")

        if token_in_data.id == token_out_data.id:
            if is_wrap_in and not is_wrap_out:
                return {"transactions": [self.unwrap_near(amount_in)], "outEstimate": amount_in}
            if not is_wrap_in and is_wrap_out:
                return {
                    "transactions": [await self.wrap_near(amount_in, account_id)],
                    "outEstimate": amount_in,
                }

        send_amount = to_non_divisible_number(token_in_data.decimals, amount_in)
        route = await self._ref.find_path(send_amount, token_in_data.id, token_out_data.id, slippage)
        receive_amount = from_non_divisible_number(token_out_data.decimals, route["amount_out"])

        transactions = await self.build_swap_transactions(
            token_in_data, token_out_data, amount_in, account_id, route.get("routes", [])
        )
        logger.info(
            "swap_built",
            account_id=account_id,
            token_in=token_in_data.id,
            token_out=token_out_data.id,
            transactions=len(transactions),
        )
        return {
            "transactions": transactions,
            "outEstimate": f"{receive_amount.quantize(_FIVE_PLACES, rounding=ROUND_HALF_UP):f}",
        }

    async def build_swap_transactions(
        self,
        token_in: SwapToken,
        token_out: SwapToken,
        amount_in: str,
        account_id: str,
        routes: list[dict],
    ) -> list[dict]:
        transactions = []

        registration = await self._registration_calls(token_out.id, account_id)
        if registration:
            transactions.append({"receiverId": token_out.id, "functionCalls": registration})

        msg: dict = {"force": 0, "actions": route_actions(routes)}
        if token_out.symbol == "NEAR":
            msg["skip_unwrap_near"] = False

        transactions.append(
            {
                "receiverId": token_in.id,
                "functionCalls": [
                    {
                        "methodName": "ft_transfer_call",
                        "args": {
                            "receiver_id": REF_EXCHANGE_CONTRACT_ID,
                            "amount": to_non_divisible_number(token_in.decimals, amount_in),
                            "msg": json.dumps(msg, separators=(",", ":")),
                        },
                        "gas": SWAP_GAS,
                        "amount": ONE_YOCTO_NEAR,
                    }
                ],
            }
        )
        return transactions

    async def _registration_calls(self, token_id: str, account_id: str) -> list[dict]:
        """Calls needed so ``account_id`` can receive ``token_id``; empty if registered."""
        response = await self._gateway.send(
            storage_balance_request(token_id, account_id), disable_cache=True
        )
        if response is None:
            if token_id in NO_REQUIRED_REGISTRATION_TOKEN_IDS:
                # Legacy contract without storage_balance_of.
                return [
                    {
                        "methodName": "register_account",
                        "args": {"account_id": account_id},
                        "gas": REGISTER_ACCOUNT_GAS,
                    }
                ]
            raise UpstreamError(f"{token_id} doesn't exist.")

        if decode_call_result(response) is not None:
            return []
        return [_storage_deposit_call(account_id)]

    async def wrap_near(self, amount_in: str, account_id: str) -> dict:
        function_calls = [
            {
                "methodName": "near_deposit",
                "args": {},
                "gas": WRAP_GAS,
                "amount": to_non_divisible_number(24, amount_in),
            }
        ]
        function_calls[:0] = await self._registration_calls(WRAP_NEAR_CONTRACT_ID, account_id)
        return {"receiverId": WRAP_NEAR_CONTRACT_ID, "functionCalls": function_calls}

    @staticmethod
    def unwrap_near(amount_in: str) -> dict:
        return {
            "receiverId": WRAP_NEAR_CONTRACT_ID,
            "functionCalls": [
                {
                    "methodName": "near_withdraw",
                    "args": {"amount": to_non_divisible_number(24, amount_in)},
                    "amount": ONE_YOCTO_NEAR,
                }
            ],
        }
