"""
Client entry points.

HyperliquidClient wires the shared pieces together (rate limiter, REST and
WebSocket pipelines, symbol registry, facades) and owns their lifecycle.
AuthenticatedHyperliquidClient adds the wallet signer and the trading
facades that require it.
"""

from typing import Any, Dict, List, Optional

import aiohttp

from .exchange.custom import CustomOperations
from .exchange.exceptions import AuthenticationRequiredError, RefreshError
from .exchange.exchange_config import ExchangeConfig, NetworkType, get_exchange_config
from .exchange.http_client import RequestPipeline, RestTransport
from .exchange.info import InfoAPI
from .exchange.leaderboard import LeaderboardAPI
from .exchange.rate_limiter import RateLimiter
from .exchange.signing import WalletSigner
from .exchange.subscriptions import WebSocketSubscriptions
from .exchange.symbol_registry import SymbolRegistry
from .exchange.trading import ExchangeAPI
from .exchange.websocket_manager import WebSocketManager
from .exchange.websocket_post import WebSocketPostPipeline
from .utils.logger import EventType, get_logger, log_system_event
from .utils.retry import retry_on_transient_error


logger = get_logger(__name__)


class HyperliquidClient:
    """
    Public (read-only) client.

    Usage:
        async with HyperliquidClient(network=NetworkType.TESTNET) as client:
            mids = await client.info.get_all_mids()

    Translated queries wait for the first registry load, which start()
    performs. Raw queries (raw=True) work without it.
    """

    def __init__(
        self,
        config: Optional[ExchangeConfig] = None,
        network: NetworkType = NetworkType.MAINNET,
        session: Optional[aiohttp.ClientSession] = None,
        signer: Optional[WalletSigner] = None
    ):
        """
        Initialize client.

        Args:
            config: Network configuration (defaults to the one for `network`)
            network: Network to connect to when no config is given
            session: Externally owned aiohttp session
            signer: Wallet signer (set by AuthenticatedHyperliquidClient)
        """
        self.config = config or get_exchange_config(network)
        limits = self.config.rate_limits

        self.rate_limiter = RateLimiter.from_config(limits)
        self.transport = RestTransport(self.config.rest_base_url, self.config.request_timeout, session)
        self.pipeline = RequestPipeline(self.config, self.transport, self.rate_limiter, signer=signer)

        self.registry = SymbolRegistry(self.pipeline.fetch_metadata)
        self.pipeline.registry = self.registry

        self.ws = WebSocketManager(self.config)
        self.ws_post = WebSocketPostPipeline(
            self.ws,
            self.rate_limiter,
            registry=self.registry,
            signer=signer,
            timeout=self.config.post_timeout,
            default_weight=limits.default_request_weight,
            action_weight=limits.action_weight
        )
        self.subscriptions = WebSocketSubscriptions(self.ws, self.registry)

        self.info = InfoAPI(self.pipeline, self.registry, heavy_weight=limits.heavy_request_weight)
        self.leaderboard = LeaderboardAPI(self.pipeline)

        self._started = False
        self._closed = False

    @property
    def is_authenticated(self) -> bool:
        return False

    @property
    def exchange(self) -> ExchangeAPI:
        raise AuthenticationRequiredError("Trading requires a private key")

    @property
    def custom(self) -> CustomOperations:
        raise AuthenticationRequiredError("Custom operations require a private key")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Load the asset maps and start the periodic refresh.

        The first load is retried a few times; after that a failing refresh
        only logs and keeps the previous maps.

        Raises:
            RefreshError: If the initial load keeps failing
        """
        if self._started:
            return

        initial_load = retry_on_transient_error(max_attempts=3, exceptions=(RefreshError,))(
            self.registry.refresh
        )
        await initial_load()

        self.registry.start_periodic_refresh(self.config.registry_refresh_interval)
        self._started = True

        log_system_event(
            logger,
            EventType.STARTUP,
            "Client started",
            network=self.config.name,
            authenticated=self.is_authenticated,
            generation=self.registry.generation
        )

    async def ensure_ready(self, timeout: Optional[float] = None) -> None:
        """Wait until the asset maps have been loaded at least once."""
        await self.registry.ensure_ready(timeout)

    async def connect_websocket(self, timeout: float = 10.0) -> None:
        """Open the WebSocket connection used by subscriptions and post requests."""
        await self.ws.connect(timeout)

    async def close(self) -> None:
        """
        Stop background work and release connections.

        In-flight WebSocket post requests are rejected with ClientClosedError.
        """
        if self._closed:
            return
        self._closed = True

        await self.registry.stop_periodic_refresh()
        self.ws_post.close()
        self.subscriptions.clear()
        await self.ws.disconnect()
        await self.pipeline.close()

        log_system_event(logger, EventType.SHUTDOWN, "Client closed", network=self.config.name)

    async def __aenter__(self) -> "HyperliquidClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Registry shortcuts
    # ------------------------------------------------------------------

    def get_asset_index(self, internal_name: str) -> Optional[int]:
        return self.registry.asset_index(internal_name)

    def get_internal_name(self, key: str) -> Optional[str]:
        return self.registry.internal_name(key)

    def get_all_assets(self) -> Dict[str, List[str]]:
        return self.registry.all_assets()


class AuthenticatedHyperliquidClient(HyperliquidClient):
    """Client holding a wallet signer; adds `exchange` and `custom`."""

    def __init__(
        self,
        private_key: str,
        config: Optional[ExchangeConfig] = None,
        network: NetworkType = NetworkType.MAINNET,
        session: Optional[aiohttp.ClientSession] = None,
        vault_address: Optional[str] = None
    ):
        """
        Initialize authenticated client.

        Args:
            private_key: Hex private key, with or without 0x prefix
            config: Network configuration (defaults to the one for `network`)
            network: Network to connect to when no config is given
            session: Externally owned aiohttp session
            vault_address: Vault to trade on behalf of

        Raises:
            ValueError: If the private key is invalid
        """
        config = config or get_exchange_config(network)
        signer = WalletSigner(private_key, config)
        super().__init__(config=config, session=session, signer=signer)

        self.signer = signer
        self._exchange = ExchangeAPI(self.pipeline, self.registry, signer, self.config, vault_address)
        self._custom = CustomOperations(self._exchange, self.info)

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def address(self) -> str:
        return self.signer.address

    @property
    def exchange(self) -> ExchangeAPI:
        return self._exchange

    @property
    def custom(self) -> CustomOperations:
        return self._custom


def create_client(
    private_key: Optional[str] = None,
    network: NetworkType = NetworkType.MAINNET,
    **kwargs: Any
) -> HyperliquidClient:
    """
    Build the client variant matching the credentials given.

    Args:
        private_key: Hex private key; None for a read-only client
        network: Network to connect to
        **kwargs: Passed to the client constructor

    Returns:
        AuthenticatedHyperliquidClient if a key is given, else HyperliquidClient
    """
    if private_key:
        return AuthenticatedHyperliquidClient(private_key, network=network, **kwargs)
    return HyperliquidClient(network=network, **kwargs)
