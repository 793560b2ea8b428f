"""Route-level services built on the gateway and indexer clients."""

from treasury.services.near_price import NearPriceService
from treasury.services.swap import SwapService
from treasury.services.tokens import TokenService, get_token_metadata
from treasury.services.transfers import TransferHistoryService

__all__ = [
    "NearPriceService",
    "SwapService",
    "TokenService",
    "TransferHistoryService",
    "get_token_metadata",
]
