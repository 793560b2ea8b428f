"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RpcSettings(BaseSettings):
    """NEAR JSON-RPC endpoint pools.

    Endpoints are tried in list order; the first entry has the highest
    priority. Archival endpoints retain full state history and are required
    for queries against old block heights.
    """

    model_config = SettingsConfigDict(env_prefix="RPC_")

    endpoints: list[str] = [
        "https://rpc.mainnet.near.org",
        "https://rpc.mainnet.fastnear.com",
        "https://free.rpc.fastnear.com",
    ]
    archival_endpoints: list[str] = [
        "https://archival-rpc.mainnet.near.org",
        "https://archival-rpc.mainnet.pagoda.co",
        "https://archival-rpc.mainnet.fastnear.com",
    ]
    # Hosts listed here send "Authorization: Bearer <fastnear_api_key>".
    keyed_hosts: list[str] = []
    fastnear_api_key: SecretStr = SecretStr("")
    request_timeout: float = 10.0
    rate_limit_cooldown_seconds: float = 10.0


class IndexerSettings(BaseSettings):
    """Third-party REST indexers, price sources and the Ref smart router."""

    model_config = SettingsConfigDict(env_prefix="INDEXER_")

    nearblocks_base_url: str = "https://api3.nearblocks.io"
    nearblocks_api_key: SecretStr = SecretStr("")
    pikespeak_base_url: str = "https://api.pikespeak.ai"
    pikespeak_api_key: SecretStr = SecretStr("")
    ref_base_url: str = "https://api.ref.finance"
    smart_router_url: str = "https://smartrouter.ref.finance"
    price_sources: list[str] = [
        "https://api.coingecko.com/api/v3/simple/price?ids=near&vs_currencies=usd",
        "https://api.binance.com/api/v3/ticker/price?symbol=NEARUSDT",
        "https://min-api.cryptocompare.com/data/price?fsym=NEAR&tsyms=USD",
    ]
    request_timeout: float = 15.0


class CacheSettings(BaseSettings):
    """In-memory response cache lifetimes, in seconds (0 = never expires)."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    default_ttl: float = 600
    near_price_ttl: float = 50
    ft_tokens_ttl: float = 60
    transfer_refresh_ttl: float = 120


class StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/treasury.db"


class ServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 3000


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    rpc: RpcSettings = RpcSettings()
    indexer: IndexerSettings = IndexerSettings()
    cache: CacheSettings = CacheSettings()
    storage: StorageSettings = StorageSettings()
    server: ServerSettings = ServerSettings()
