"""Chain constants, the sampling period table and the whitelisted token table."""

from treasury.models import PeriodConfig

NATIVE_TOKEN_ID = "near"
WRAP_NEAR_CONTRACT_ID = "wrap.near"
REF_EXCHANGE_CONTRACT_ID = "v2.ref-finance.near"

# Default precision when a token's metadata cannot be resolved (matches NEAR).
DEFAULT_DECIMALS = 24

# ~1.1 blocks per second on mainnet.
BLOCKS_PER_HOUR = 3200

# Archival nodes answer 422 for heights at or below this.
MIN_BLOCK_HEIGHT = 1_000_000

TEN_MINUTES_MS = 600_000

PERIOD_MAP: tuple[PeriodConfig, ...] = (
    PeriodConfig(period="1H", value=1 / 6, interval=6),
    PeriodConfig(period="1D", value=1, interval=12),
    PeriodConfig(period="1W", value=24, interval=8),
    PeriodConfig(period="1M", value=24 * 2, interval=15),
    PeriodConfig(period="1Y", value=24 * 30, interval=12),
    PeriodConfig(period="All", value=24 * 365, interval=10),
)

PERIODS_BY_LABEL: dict[str, PeriodConfig] = {p.period: p for p in PERIOD_MAP}

# Periods that reach further back than non-archival nodes keep state for.
ARCHIVAL_PERIODS = frozenset({"1W", "1M", "1Y", "All"})

# Tokens that must not get a storage_deposit registration action.
NO_REQUIRED_REGISTRATION_TOKEN_IDS = frozenset(
    {"17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1"}
)

STORAGE_TO_REGISTER_WITH_FT = "0.1"
ONE_YOCTO_NEAR = "1"

TOKENS: dict[str, dict] = {
    "near": {
        "name": "NEAR",
        "symbol": "NEAR",
        "decimals": 24,
        "spec": None,
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "wrap.near": {
        "name": "Wrapped NEAR fungible token",
        "symbol": "wNEAR",
        "decimals": 24,
        "spec": "ft-1.0.0",
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "usdt.tether-token.near": {
        "name": "Tether USD",
        "symbol": "USDt",
        "decimals": 6,
        "spec": "ft-1.0.0",
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1": {
        "name": "USD Coin",
        "symbol": "USDC",
        "decimals": 6,
        "spec": "ft-1.0.0",
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "token.v2.ref-finance.near": {
        "name": "Ref Finance Token",
        "symbol": "REF",
        "decimals": 18,
        "spec": "ft-1.0.0",
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "2260fac5e5542a773aa44fbcfedf7c193bc2c599.factory.bridge.near": {
        "name": "Wrapped BTC",
        "symbol": "WBTC",
        "decimals": 8,
        "spec": "ft-1.0.0",
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
}
