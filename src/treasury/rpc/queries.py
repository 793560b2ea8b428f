"""JSON-RPC request builders and result decoders for the NEAR node API."""

import base64
import json
from typing import Any

from treasury.models import decode_call_result


def _envelope(method: str, params: dict, request_id: Any = "dontcare") -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}


def latest_block_request() -> dict:
    return _envelope("block", {"finality": "final"}, request_id=1)


def block_request(block_id: int) -> dict:
    return _envelope("block", {"block_id": block_id}, request_id=block_id)


def view_account_request(account_id: str, block_id: int) -> dict:
    return _envelope(
        "query",
        {"request_type": "view_account", "block_id": block_id, "account_id": account_id},
        request_id=1,
    )


def call_function_request(
    contract_id: str,
    method_name: str,
    args: dict | None = None,
    block_id: int | None = None,
) -> dict:
    """Build a view call; without a block_id the call runs against the final block."""
    params: dict[str, Any] = {
        "request_type": "call_function",
        "account_id": contract_id,
        "method_name": method_name,
        "args_base64": base64.b64encode(json.dumps(args or {}).encode()).decode(),
    }
    if block_id is None:
        params["finality"] = "final"
    else:
        params["block_id"] = block_id
    return _envelope("query", params)


def ft_metadata_request(token_id: str) -> dict:
    return call_function_request(token_id, "ft_metadata")


def ft_balance_request(token_id: str, account_id: str, block_id: int) -> dict:
    return call_function_request(token_id, "ft_balance_of", {"account_id": account_id}, block_id)


def stake_balance_request(pool_id: str, account_id: str, block_id: int) -> dict:
    return call_function_request(
        pool_id, "get_account_total_balance", {"account_id": account_id}, block_id
    )


def storage_balance_request(token_id: str, account_id: str) -> dict:
    return call_function_request(token_id, "storage_balance_of", {"account_id": account_id})


# ──────────────────────────────────────────────
# Decoders
# ──────────────────────────────────────────────


def parse_amount(value: Any) -> int:
    """Parse a yocto/smallest-unit amount; JSON strings may carry quotes."""
    if value is None:
        return 0
    text = str(value).strip().strip('"')
    return int(text) if text else 0


def account_amount(response: dict) -> int:
    """Liquid balance from a view_account response."""
    return parse_amount(response["result"].get("amount"))


def call_result_amount(response: dict) -> int:
    """Integer result of a view call returning a U128 string."""
    return parse_amount(decode_call_result(response))
