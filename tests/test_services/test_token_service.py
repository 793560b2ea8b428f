"""Tests for TokenService and token metadata lookup."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from treasury.cache import TTLCache
from treasury.constants import TOKENS
from treasury.exceptions import ConfigurationError, NotFoundError, UpstreamError
from treasury.services.tokens import TokenService, get_token_metadata

USDT = "usdt.tether-token.near"
TOKEN_TABLE = {"near": TOKENS["near"], USDT: TOKENS[USDT]}


@pytest.fixture
def pikespeak() -> MagicMock:
    client = MagicMock()
    client.require_key = MagicMock()
    client.account_balances = AsyncMock(
        return_value=[
            {"contract": "near", "symbol": "NEAR", "amount": "1.5"},
            {"contract": "NEAR", "symbol": "NEAR [Storage]", "amount": "0.01"},
            {"contract": USDT, "symbol": "USDt", "amount": "25"},
        ]
    )
    return client


@pytest.fixture
def ref() -> AsyncMock:
    async def token_price(token_id: str) -> str:
        if token_id == "wrap.near":
            return "3.2"
        raise UpstreamError("price unavailable")

    client = AsyncMock()
    client.token_price = AsyncMock(side_effect=token_price)
    return client


@pytest.fixture
def nearblocks() -> AsyncMock:
    client = AsyncMock()
    client.account_inventory = AsyncMock(
        return_value={
            "inventory": {
                "fts": [
                    {"contract": "a.near", "amount": "1000000", "ft_meta": {"decimals": 6, "price": "2"}},
                    {
                        "contract": "b.near",
                        "amount": "5000000000000000000",
                        "ft_meta": {"decimals": 18, "price": "10"},
                    },
                    {"contract": "c.near", "amount": "7", "ft_meta": {"decimals": 0, "price": None}},
                ]
            }
        }
    )
    return client


@pytest.fixture
def service(pikespeak: MagicMock, nearblocks: AsyncMock, ref: AsyncMock) -> TokenService:
    return TokenService(pikespeak, nearblocks, ref, TTLCache(), tokens=TOKEN_TABLE)


class TestTokenMetadata:
    def test_known_token(self) -> None:
        assert get_token_metadata("near")["symbol"] == "NEAR"

    def test_unknown_token(self) -> None:
        with pytest.raises(NotFoundError):
            get_token_metadata("nope.near")


class TestWhitelistTokens:
    @pytest.mark.asyncio
    async def test_balances_and_prices(self, service: TokenService) -> None:
        tokens = await service.whitelist_tokens("alice.near")

        assert [t["id"] for t in tokens] == [USDT, "near"]
        usdt, near = tokens
        assert usdt["parsedBalance"] == "25"
        assert usdt["balance"] == "25000000.0000"
        assert usdt["price"] == "N/A"
        assert near["parsedBalance"] == "1.5"
        assert near["balance"] == "1500000000000000000000000.0000"
        assert near["price"] == "3.2000"
        assert near["symbol"] == "NEAR"

    @pytest.mark.asyncio
    async def test_price_rounds_half_up(self, service: TokenService, ref: AsyncMock) -> None:
        ref.token_price.side_effect = None
        ref.token_price.return_value = "3.21245"

        tokens = await service.whitelist_tokens("alice.near")

        assert {t["price"] for t in tokens} == {"3.2125"}

    @pytest.mark.asyncio
    async def test_without_account_balances_are_zero(
        self, service: TokenService, pikespeak: MagicMock
    ) -> None:
        tokens = await service.whitelist_tokens()

        assert {t["parsedBalance"] for t in tokens} == {"0"}
        pikespeak.account_balances.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key_fails_loudly(
        self, service: TokenService, pikespeak: MagicMock
    ) -> None:
        pikespeak.require_key.side_effect = ConfigurationError("no key")

        with pytest.raises(ConfigurationError):
            await service.whitelist_tokens("alice.near")


class TestFtTokens:
    @pytest.mark.asyncio
    async def test_sorted_by_value_with_total(self, service: TokenService) -> None:
        result = await service.ft_tokens("alice.near")

        assert [ft["contract"] for ft in result["fts"]] == ["b.near", "a.near", "c.near"]
        assert result["totalCumulativeAmt"] == "52.00"

    @pytest.mark.asyncio
    async def test_result_is_cached(self, service: TokenService, nearblocks: AsyncMock) -> None:
        await service.ft_tokens("alice.near")
        await service.ft_tokens("alice.near")

        assert nearblocks.account_inventory.await_count == 1

    @pytest.mark.asyncio
    async def test_no_fts(self, service: TokenService, nearblocks: AsyncMock) -> None:
        nearblocks.account_inventory.return_value = {"inventory": {"fts": []}}

        with pytest.raises(NotFoundError, match="No FT tokens found"):
            await service.ft_tokens("alice.near")
