"""
Network-specific configurations for the Hyperliquid client.

This module contains network-specific settings such as:
- API endpoints
- Rate limits
- Registry refresh and WebSocket timing
- Request/action type constants
- Error code classification
"""

from dataclasses import dataclass, field
from typing import Dict
from enum import Enum


class NetworkType(Enum):
    """Supported networks."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration for a network."""
    weight_per_minute: int
    default_request_weight: int
    action_weight: int
    heavy_request_weight: int


@dataclass(frozen=True)
class ExchangeConfig:
    """
    Configuration for a specific network.

    Defaults are frozen; derive variants with dataclasses.replace().
    """
    network: NetworkType
    name: str

    # Endpoints
    rest_base_url: str
    websocket_url: str
    info_endpoint: str = "/info"
    exchange_endpoint: str = "/exchange"

    # Rate limits
    rate_limits: RateLimitConfig = field(default_factory=lambda: RateLimitConfig(
        weight_per_minute=1200,
        default_request_weight=2,
        action_weight=1,
        heavy_request_weight=20
    ))

    # Symbol registry
    registry_refresh_interval: float = 60.0    # seconds

    # HTTP
    request_timeout: float = 10.0              # seconds

    # WebSocket
    post_timeout: float = 30.0                 # seconds
    ping_interval: float = 50.0                # venue drops idle sockets after 60s
    initial_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 60.0
    reconnect_backoff_factor: float = 2.0

    # Signing
    source: str = "a"                          # phantom agent source
    chain_name: str = "Mainnet"                # hyperliquidChain for user-signed actions
    signature_chain_id: str = "0xa4b1"

    @property
    def is_mainnet(self) -> bool:
        return self.network == NetworkType.MAINNET


# ============================================================================
# MAINNET CONFIGURATION
# ============================================================================

MAINNET_CONFIG = ExchangeConfig(
    network=NetworkType.MAINNET,
    name="Hyperliquid",
    rest_base_url="https://api.hyperliquid.xyz",
    websocket_url="wss://api.hyperliquid.xyz/ws",
)


# ============================================================================
# TESTNET CONFIGURATION
# ============================================================================

TESTNET_CONFIG = ExchangeConfig(
    network=NetworkType.TESTNET,
    name="Hyperliquid Testnet",
    rest_base_url="https://api.hyperliquid-testnet.xyz",
    websocket_url="wss://api.hyperliquid-testnet.xyz/ws",
    source="b",
    chain_name="Testnet",
)


# ============================================================================
# NETWORK REGISTRY
# ============================================================================

EXCHANGE_CONFIGS: Dict[NetworkType, ExchangeConfig] = {
    NetworkType.MAINNET: MAINNET_CONFIG,
    NetworkType.TESTNET: TESTNET_CONFIG,
}


def get_exchange_config(network: NetworkType) -> ExchangeConfig:
    """
    Get configuration for a specific network.

    Args:
        network: Network type

    Returns:
        ExchangeConfig instance

    Raises:
        ValueError: If network is not supported
    """
    if network not in EXCHANGE_CONFIGS:
        raise ValueError(f"Unsupported network: {network}")

    return EXCHANGE_CONFIGS[network]


# ============================================================================
# REQUEST TYPES
# ============================================================================

class InfoType:
    """Query types accepted by the /info endpoint."""

    ALL_MIDS = "allMids"
    META = "meta"
    OPEN_ORDERS = "openOrders"
    FRONTEND_OPEN_ORDERS = "frontendOpenOrders"
    USER_FILLS = "userFills"
    USER_FILLS_BY_TIME = "userFillsByTime"
    USER_RATE_LIMIT = "userRateLimit"
    TRADE_INFO = "tradeInfo"
    ORDER_STATUS = "orderStatus"
    L2_BOOK = "l2Book"
    CANDLE_SNAPSHOT = "candleSnapshot"
    PERPS_META_AND_ASSET_CTXS = "metaAndAssetCtxs"
    PERPS_CLEARINGHOUSE_STATE = "clearinghouseState"
    USER_FUNDING = "userFunding"
    USER_NON_FUNDING_LEDGER_UPDATES = "userNonFundingLedgerUpdates"
    FUNDING_HISTORY = "fundingHistory"
    SPOT_META = "spotMeta"
    SPOT_CLEARINGHOUSE_STATE = "spotClearinghouseState"
    SPOT_META_AND_ASSET_CTXS = "spotMetaAndAssetCtxs"
    LEADERBOARD = "leaderboard"


class ActionType:
    """Action types accepted by the /exchange endpoint."""

    ORDER = "order"
    CANCEL = "cancel"
    CANCEL_BY_CLOID = "cancelByCloid"
    SCHEDULE_CANCEL = "scheduleCancel"
    MODIFY = "modify"
    BATCH_MODIFY = "batchModify"
    UPDATE_LEVERAGE = "updateLeverage"
    UPDATE_ISOLATED_MARGIN = "updateIsolatedMargin"
    USD_SEND = "usdSend"
    SPOT_SEND = "spotSend"
    WITHDRAW = "withdraw3"
    SPOT_USER = "spotUser"
    VAULT_TRANSFER = "vaultTransfer"
    SET_REFERRER = "setReferrer"


# ============================================================================
# ERROR CODE MAPPINGS
# ============================================================================

# HTTP statuses worth another attempt during the initial registry load
TRANSIENT_HTTP_STATUSES = {
    429,  # Too many requests
    500,  # Internal error
    502,  # Bad gateway
    503,  # Service unavailable
    504,  # Gateway timeout
}


def is_transient_status(status: int) -> bool:
    """
    Check if an HTTP status represents a transient (retryable) failure.

    Args:
        status: HTTP status code

    Returns:
        True if the failure is transient
    """
    return status in TRANSIENT_HTTP_STATUSES
