"""Token metadata, whitelisted token balances/prices and FT holdings."""

import asyncio
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from treasury.cache import TTLCache
from treasury.constants import NATIVE_TOKEN_ID, TOKENS, WRAP_NEAR_CONTRACT_ID
from treasury.exceptions import NotFoundError
from treasury.history.formatting import from_non_divisible_number
from treasury.indexers.nearblocks import NearBlocksClient
from treasury.indexers.pikespeak import PikespeakClient
from treasury.indexers.ref_finance import RefFinanceClient
from treasury.logging import get_logger

logger = get_logger(__name__)

PRICE_UNAVAILABLE = "N/A"
_FOUR_PLACES = Decimal("0.0001")
_TWO_PLACES = Decimal("0.01")


def get_token_metadata(token_id: str, tokens: dict[str, dict] = TOKENS) -> dict:
    token = tokens.get(token_id)
    if token is None:
        raise NotFoundError(f"Unknown token {token_id}")
    return token


def _decimal(value: object) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


class TokenService:
    """Balances and prices for whitelisted tokens plus NEARBlocks FT inventory."""

    def __init__(
        self,
        pikespeak: PikespeakClient,
        nearblocks: NearBlocksClient,
        ref: RefFinanceClient,
        cache: TTLCache,
        ft_tokens_ttl: float = 60,
        tokens: dict[str, dict] = TOKENS,
    ) -> None:
        self._pikespeak = pikespeak
        self._nearblocks = nearblocks
        self._ref = ref
        self._cache = cache
        self._ft_tokens_ttl = ft_tokens_ttl
        self._tokens = tokens

    async def whitelist_tokens(self, account_id: str | None = None) -> list[dict]:
        """Every whitelisted token with the account's balance and the Ref price.

        A failed price lookup yields "N/A" for that token only. Sorted by
        parsed balance, largest first.
        """
        self._pikespeak.require_key()

        token_ids = list(self._tokens)
        balances_task = (
            self._pikespeak.account_balances(account_id) if account_id else _no_balances()
        )
        user_balances, *prices = await asyncio.gather(
            balances_task,
            *(self._price_or_unavailable(token_id) for token_id in token_ids),
        )

        by_contract = {
            str(entry.get("contract", "")).lower(): entry
            for entry in user_balances
            if entry.get("symbol") != "NEAR [Storage]"
        }

        result = []
        for token_id, price in zip(token_ids, prices):
            token = self._tokens[token_id]
            entry = by_contract.get(token_id)
            parsed_balance = str(entry.get("amount", "0")) if entry else "0"
            with localcontext() as ctx:
                ctx.prec = 80
                balance = _decimal(parsed_balance).scaleb(token["decimals"]).quantize(
                    _FOUR_PLACES, rounding=ROUND_HALF_UP
                )
            result.append(
                {
                    "id": token_id,
                    "decimals": token["decimals"],
                    "parsedBalance": parsed_balance,
                    "balance": f"{balance:f}",
                    "price": price,
                    "symbol": token["symbol"],
                    "name": token["name"],
                    "icon": token.get("icon"),
                }
            )

        return sorted(result, key=lambda t: _decimal(t["parsedBalance"]), reverse=True)

    async def _price_or_unavailable(self, token_id: str) -> str:
        lookup_id = WRAP_NEAR_CONTRACT_ID if token_id == NATIVE_TOKEN_ID else token_id
        try:
            price = await self._ref.token_price(lookup_id)
            if price is None:
                return PRICE_UNAVAILABLE
            return f"{_decimal(price).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP):f}"
        except Exception as e:
            logger.warning("token_price_failed", token_id=token_id, error=str(e))
            return PRICE_UNAVAILABLE

    async def ft_tokens(self, account_id: str) -> dict:
        """NEARBlocks FT inventory sorted by USD value, with the summed value."""
        cache_key = f"{account_id}-ft-tokens"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._nearblocks.account_inventory(account_id)
        fts = (data.get("inventory") or {}).get("fts") if isinstance(data, dict) else None
        if not fts or not isinstance(fts, list):
            raise NotFoundError("No FT tokens found")

        valued = [(ft, self._ft_value(ft)) for ft in fts]
        valued.sort(key=lambda item: item[1], reverse=True)

        total = sum((value for _, value in valued), Decimal("0"))
        result = {
            "totalCumulativeAmt": f"{total.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP):f}",
            "fts": [ft for ft, _ in valued],
        }
        await self._cache.set(cache_key, result, self._ft_tokens_ttl)
        return result

    @staticmethod
    def _ft_value(ft: dict) -> Decimal:
        meta = ft.get("ft_meta") or {}
        amount = from_non_divisible_number(int(meta.get("decimals") or 0), ft.get("amount") or "0")
        value = amount * _decimal(meta.get("price") or 0)
        return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


async def _no_balances() -> list[dict]:
    return []
