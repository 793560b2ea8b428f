"""NEAR JSON-RPC layer -- failover gateway, existence oracle and request builders."""

from treasury.rpc.existence import AccountExistenceOracle
from treasury.rpc.gateway import EndpointCooldowns, RpcGateway, request_hash

__all__ = ["AccountExistenceOracle", "EndpointCooldowns", "RpcGateway", "request_hash"]
