"""
REST transport and request pipeline.

RestTransport is the thin aiohttp layer: it returns (status, body) or raises
TransportError when no response arrived. RequestPipeline adds signing, rate
limiting, error-envelope mapping and optional symbol translation on top.
"""

import asyncio
import json
from typing import Any, Dict, Iterable, Optional, Tuple

import aiohttp

from .exceptions import (
    ApiError,
    AuthenticationRequiredError,
    ClientClosedError,
    TransientApiError,
    TransportError
)
from .exchange_config import ExchangeConfig, is_transient_status
from .models import MarketClass
from .rate_limiter import RateLimiter
from .signing import WalletSigner
from .symbol_registry import DEFAULT_SYMBOL_FIELDS, SymbolRegistry
from ..utils.logger import EventType, get_logger


logger = get_logger(__name__)


class RestTransport:
    """aiohttp-backed JSON transport."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize transport.

        Args:
            base_url: REST base URL
            timeout: Total timeout per request in seconds
            session: Externally owned session (not closed by close())
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def post(self, path: str, body: Any) -> Tuple[int, Any]:
        return await self._request("POST", path, json=body)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Tuple[int, Any]:
        return await self._request("GET", path, params=params)

    async def _request(self, method: str, path: str, **kwargs) -> Tuple[int, Any]:
        url = f"{self.base_url}{path}"
        session = self._get_session()

        try:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {path} failed: {e!r}") from e

        if not text:
            return response.status, None
        try:
            return response.status, json.loads(text)
        except json.JSONDecodeError:
            return response.status, text


def raise_for_response(status: int, body: Any) -> None:
    """
    Map an error response to ApiError.

    Non-2xx statuses raise with the body's code/message; 2xx bodies shaped
    {"status": "err", "response": ...} are venue-level rejections.
    """
    if 200 <= status < 300:
        if isinstance(body, dict) and body.get("status") == "err":
            raise ApiError("EXCHANGE_ERROR", str(body.get("response")), status_code=status)
        return

    if isinstance(body, dict):
        code = str(body.get("code") or "UNKNOWN_ERROR")
        message = body.get("message") or body.get("msg") or body.get("error") or json.dumps(body)
    else:
        code = "UNKNOWN_ERROR"
        message = str(body) if body else "An unknown error occurred"

    error_cls = TransientApiError if is_transient_status(status) else ApiError
    raise error_cls(code, str(message), status_code=status)


class RequestPipeline:
    """
    One rate-limited, optionally signed, optionally translated round trip.

    No retries happen here; every failure reaches the caller as
    TransportError or ApiError.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        transport: RestTransport,
        rate_limiter: RateLimiter,
        registry: Optional[SymbolRegistry] = None,
        signer: Optional[WalletSigner] = None
    ):
        self.config = config
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.registry = registry
        self.signer = signer
        self._closed = False

    async def send(
        self,
        payload: Dict[str, Any],
        weight: Optional[float] = None,
        authenticated: bool = False,
        translate: bool = False,
        endpoint: Optional[str] = None,
        symbol_fields: Iterable[str] = DEFAULT_SYMBOL_FIELDS,
        forced_class: Optional[MarketClass] = None,
        vault_address: Optional[str] = None
    ) -> Any:
        """
        POST a payload and return the decoded response.

        Args:
            payload: Query body, or for authenticated calls either a full
                {action, nonce, signature} body or just {"action": ...}
            weight: Rate-limit weight (defaults from config)
            authenticated: Route to /exchange and sign if not yet signed
            translate: Run the response through SymbolRegistry.translate_embedded
            endpoint: Override target path
            symbol_fields: Keys holding venue symbols in the response
            forced_class: Market class hint for bare symbols
            vault_address: Vault to act for when signing

        Raises:
            ClientClosedError: If the pipeline was closed
            AuthenticationRequiredError: If authenticated without a signer
            RateLimitExceededError: If weight exceeds limiter capacity
            TransportError: If no response was received
            ApiError: If the venue returned an error
        """
        if self._closed:
            raise ClientClosedError("Request pipeline is closed")

        limits = self.config.rate_limits

        if authenticated:
            if self.signer is None:
                raise AuthenticationRequiredError("Signed action requires a private key")
            if "signature" not in payload:
                payload = self.signer.build_l1_payload(payload["action"], vault_address)
            endpoint = endpoint or self.config.exchange_endpoint
            weight = limits.action_weight if weight is None else weight
        else:
            endpoint = endpoint or self.config.info_endpoint
            weight = limits.default_request_weight if weight is None else weight

        await self.rate_limiter.acquire(weight)
        if self._closed:
            raise ClientClosedError("Request pipeline closed while waiting for rate limit")

        status, body = await self.transport.post(endpoint, payload)

        try:
            raise_for_response(status, body)
        except ApiError as e:
            logger.error(
                "API error",
                event_type=EventType.API_ERROR,
                endpoint=endpoint,
                status=status,
                code=e.code,
                error=e.message
            )
            raise

        if translate and self.registry is not None:
            return self.registry.translate_embedded(body, symbol_fields, forced_class)
        return body

    async def fetch_metadata(self, payload: Dict[str, Any]) -> Any:
        """Untranslated /info query used by the registry refresh."""
        return await self.send(payload)

    async def close(self) -> None:
        """Refuse new requests and close the transport."""
        self._closed = True
        await self.transport.close()
