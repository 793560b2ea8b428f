"""REST clients for indexers, price APIs and the Ref Finance router."""

from treasury.indexers.client import RestClient
from treasury.indexers.nearblocks import NearBlocksClient
from treasury.indexers.pikespeak import PikespeakClient
from treasury.indexers.prices import PriceOracle
from treasury.indexers.ref_finance import RefFinanceClient

__all__ = [
    "NearBlocksClient",
    "PikespeakClient",
    "PriceOracle",
    "RefFinanceClient",
    "RestClient",
]
