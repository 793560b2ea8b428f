"""JSON API endpoints: token data, swaps, balance history, prices and transfers.

Handlers validate query parameters and delegate to the services stored on
``request.app.state`` by the app factory / lifespan. Service exceptions are
turned into ``{"error": ...}`` bodies by the handlers in treasury.api.app.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from treasury.constants import PERIODS_BY_LABEL
from treasury.logging import get_logger
from treasury.models import BalanceHistoryPoint
from treasury.services.tokens import get_token_metadata

logger = get_logger(__name__)

router = APIRouter()


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _points_to_json(points: list[BalanceHistoryPoint]) -> list[dict[str, Any]]:
    return [p.to_dict() for p in points]


@router.get("/token-metadata")
async def token_metadata(request: Request, token: str | None = None) -> JSONResponse:
    if not token:
        return _bad_request("token is required")
    return JSONResponse(content=get_token_metadata(token, request.app.state.tokens))


@router.get("/whitelist-tokens")
async def whitelist_tokens(request: Request, account: str | None = None) -> JSONResponse:
    tokens = await request.app.state.token_service.whitelist_tokens(account)
    return JSONResponse(content=tokens)


@router.get("/swap")
async def swap(
    request: Request,
    accountId: str | None = None,  # noqa: N803
    tokenIn: str | None = None,  # noqa: N803
    tokenOut: str | None = None,  # noqa: N803
    amountIn: str | None = None,  # noqa: N803
    slippage: str = "0.01",
) -> JSONResponse:
    if not (accountId and tokenIn and tokenOut and amountIn):
        return _bad_request(
            "Missing required parameters. Required: accountId, tokenIn, tokenOut, amountIn"
        )
    result = await request.app.state.swap_service.get_swap(
        accountId, tokenIn, tokenOut, amountIn, slippage
    )
    return JSONResponse(content=result)


@router.get("/token-balance-history")
async def token_balance_history(
    request: Request,
    account_id: str | None = None,
    token_id: str | None = None,
    period: str | None = None,
) -> JSONResponse:
    if not account_id or not token_id or not period:
        return _bad_request("Missing required parameters: account_id, token_id, period")

    period_config = PERIODS_BY_LABEL.get(period)
    if period_config is None:
        return _bad_request(f"Unknown period {period}. Expected one of: {', '.join(PERIODS_BY_LABEL)}")

    points = await request.app.state.planner.get_single_balance_history(
        account_id, token_id, period_config
    )
    return JSONResponse(content={period: _points_to_json(points)})


@router.get("/all-token-balance-history")
async def all_token_balance_history(
    request: Request,
    account_id: str | None = None,
    token_id: str | None = None,
) -> JSONResponse:
    if not account_id or not token_id:
        return _bad_request("Missing required parameters")

    history = await request.app.state.planner.get_all_balance_history(account_id, token_id)
    return JSONResponse(
        content={period: _points_to_json(points) for period, points in history.items()}
    )


@router.delete("/token-balance-history")
async def purge_token_balance_history(
    request: Request,
    account_id: str | None = None,
    token_id: str | None = None,
) -> JSONResponse:
    deleted = await request.app.state.history_store.purge(account_id, token_id)
    return JSONResponse(content={"deleted": deleted})


@router.get("/near-price")
async def near_price(request: Request) -> JSONResponse:
    result = await request.app.state.near_price_service.get_price()
    return JSONResponse(content=result)


@router.get("/ft-tokens")
async def ft_tokens(request: Request, account_id: str | None = None) -> JSONResponse:
    if not account_id:
        return _bad_request("Account ID is required")
    result = await request.app.state.token_service.ft_tokens(account_id)
    return JSONResponse(content=result)


@router.get("/transactions-transfer-history")
async def transactions_transfer_history(
    request: Request,
    treasuryDaoID: str | None = None,  # noqa: N803
    lockupContract: str | None = None,  # noqa: N803
    page: int = 1,
) -> JSONResponse:
    if not treasuryDaoID:
        return _bad_request("treasuryDaoID is required")
    if page < 1:
        return _bad_request("page must be >= 1")

    data = await request.app.state.transfer_service.get_transfer_history(
        treasuryDaoID, lockupContract, page
    )
    return JSONResponse(content={"data": data})
