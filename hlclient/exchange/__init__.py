"""
Exchange API access: configuration, symbol registry, request pipelines and facades.
"""

from .exceptions import (
    HyperliquidError,
    ApiError,
    TransientApiError,
    TransportError,
    RefreshError,
    RegistryIntegrityError,
    RateLimitExceededError,
    RequestTimeoutError,
    ClientClosedError,
    WebSocketError,
    AuthenticationRequiredError,
    UnknownAssetError
)
from .models import (
    SPOT_INDEX_OFFSET,
    MarketClass,
    AssetListing,
    Signature,
    OrderRequest,
    CancelRequest,
    ModifyRequest
)
from .exchange_config import (
    NetworkType,
    RateLimitConfig,
    ExchangeConfig,
    get_exchange_config,
    InfoType,
    ActionType
)
from .rate_limiter import RateLimiter
from .symbol_registry import SymbolRegistry, RegistrySnapshot
from .signing import WalletSigner, NonceManager
from .http_client import RestTransport, RequestPipeline
from .websocket_manager import WebSocketManager
from .websocket_post import WebSocketPostPipeline
from .subscriptions import WebSocketSubscriptions
from .info import InfoAPI, GeneralInfoAPI, PerpsInfoAPI, SpotInfoAPI
from .trading import ExchangeAPI
from .custom import CustomOperations
from .leaderboard import LeaderboardAPI

__all__ = [
    # Exceptions
    "HyperliquidError",
    "ApiError",
    "TransientApiError",
    "TransportError",
    "RefreshError",
    "RegistryIntegrityError",
    "RateLimitExceededError",
    "RequestTimeoutError",
    "ClientClosedError",
    "WebSocketError",
    "AuthenticationRequiredError",
    "UnknownAssetError",

    # Data models
    "SPOT_INDEX_OFFSET",
    "MarketClass",
    "AssetListing",
    "Signature",
    "OrderRequest",
    "CancelRequest",
    "ModifyRequest",

    # Exchange config
    "NetworkType",
    "RateLimitConfig",
    "ExchangeConfig",
    "get_exchange_config",
    "InfoType",
    "ActionType",

    # Core
    "RateLimiter",
    "SymbolRegistry",
    "RegistrySnapshot",
    "WalletSigner",
    "NonceManager",
    "RestTransport",
    "RequestPipeline",

    # WebSocket
    "WebSocketManager",
    "WebSocketPostPipeline",
    "WebSocketSubscriptions",

    # Facades
    "InfoAPI",
    "GeneralInfoAPI",
    "PerpsInfoAPI",
    "SpotInfoAPI",
    "ExchangeAPI",
    "CustomOperations",
    "LeaderboardAPI"
]
