"""
Request/response over the WebSocket connection ("post" requests).

Each request carries a locally issued id; the venue echoes it on the "post"
channel. A future per id is resolved by the matching frame, or abandoned
after the post timeout.
"""

import asyncio
import itertools
import time
from typing import Any, Dict, Iterable, Optional

from .exceptions import (
    ApiError,
    AuthenticationRequiredError,
    ClientClosedError,
    RequestTimeoutError
)
from .models import MarketClass
from .rate_limiter import RateLimiter
from .signing import WalletSigner
from .symbol_registry import DEFAULT_SYMBOL_FIELDS, SymbolRegistry
from .websocket_manager import WebSocketManager
from ..utils.logger import get_logger


logger = get_logger(__name__)


class WebSocketPostPipeline:
    """
    Correlates post requests with their responses.

    Concurrent requests each own a future keyed by id, so a response can
    only ever complete the request that carried the same id.
    """

    def __init__(
        self,
        ws_manager: WebSocketManager,
        rate_limiter: RateLimiter,
        registry: Optional[SymbolRegistry] = None,
        signer: Optional[WalletSigner] = None,
        timeout: float = 30.0,
        default_weight: float = 2,
        action_weight: float = 1
    ):
        self.ws_manager = ws_manager
        self.rate_limiter = rate_limiter
        self.registry = registry
        self.signer = signer
        self.timeout = timeout
        self.default_weight = default_weight
        self.action_weight = action_weight

        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(int(time.time() * 1000))
        self._closed = False

        ws_manager.add_listener(self._handle_frame)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def send(
        self,
        payload: Dict[str, Any],
        weight: Optional[float] = None,
        authenticated: bool = False,
        translate: bool = False,
        symbol_fields: Iterable[str] = DEFAULT_SYMBOL_FIELDS,
        forced_class: Optional[MarketClass] = None,
        vault_address: Optional[str] = None
    ) -> Any:
        """
        Send a post request and wait for its correlated response.

        Args:
            payload: Info query, or {"action": ...} / a signed body when authenticated
            weight: Rate-limit weight
            authenticated: Send as a signed "action" request
            translate: Map internal names to venue symbols in the outbound
                info payload and translate the response
            symbol_fields: Keys holding symbols
            forced_class: Market class hint for bare symbols in the response
            vault_address: Vault to act for when signing

        Raises:
            ClientClosedError: If the pipeline was closed before or during the wait
            AuthenticationRequiredError: If authenticated without a signer
            RequestTimeoutError: If no response arrived within the timeout
            ApiError: If the venue answered with an error
            WebSocketError: If the frame could not be sent
        """
        if self._closed:
            raise ClientClosedError("WebSocket post pipeline is closed")

        if authenticated:
            if self.signer is None:
                raise AuthenticationRequiredError("Signed action requires a private key")
            if "signature" not in payload:
                payload = self.signer.build_l1_payload(payload["action"], vault_address)
            request_type = "action"
            weight = self.action_weight if weight is None else weight
        else:
            if translate and self.registry is not None:
                payload = self.registry.prepare_outbound(payload, symbol_fields)
            request_type = "info"
            weight = self.default_weight if weight is None else weight

        await self.rate_limiter.acquire(weight)
        if self._closed:
            raise ClientClosedError("WebSocket post pipeline closed while waiting for rate limit")

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.ws_manager.send({
                "method": "post",
                "id": request_id,
                "request": {"type": request_type, "payload": payload},
            })
            response = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Post request timed out", request_id=request_id, timeout=self.timeout)
            raise RequestTimeoutError(f"Post request {request_id} timed out after {self.timeout}s")
        finally:
            self._pending.pop(request_id, None)

        if translate and self.registry is not None:
            return self.registry.translate_embedded(response, symbol_fields, forced_class)
        return response

    def _handle_frame(self, frame: Dict[str, Any]) -> None:
        if frame.get("channel") != "post":
            return

        data = frame.get("data") or {}
        future = self._pending.get(data.get("id"))
        if future is None or future.done():
            return

        response = data.get("response") or {}
        body = response.get("payload")

        if response.get("type") == "error":
            future.set_exception(ApiError("POST_ERROR", str(body)))
        elif response.get("type") == "action" and isinstance(body, dict) and body.get("status") == "err":
            future.set_exception(ApiError("EXCHANGE_ERROR", str(body.get("response"))))
        else:
            future.set_result(body)

    def close(self) -> None:
        """Reject every in-flight request and refuse new ones."""
        self._closed = True
        self.ws_manager.remove_listener(self._handle_frame)

        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(ClientClosedError("Client closed before response arrived"))

        if pending:
            logger.info("Rejected pending post requests on close", count=len(pending))
