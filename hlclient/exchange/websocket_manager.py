"""
WebSocket Manager for the venue's streaming endpoint.

Handles the single persistent connection with:
- Auto-reconnection with exponential backoff
- Application-level ping heartbeat
- Frame fan-out to registered listeners
- Lifecycle callbacks (open, close, error)
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
import structlog

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .exceptions import WebSocketError
from .exchange_config import ExchangeConfig
from ..utils.logger import EventType


logger = structlog.get_logger(__name__)


FrameListener = Callable[[Dict[str, Any]], Any]

LIFECYCLE_EVENTS = ("open", "close", "error")


async def _invoke(callback: Callable, *args) -> None:
    if asyncio.iscoroutinefunction(callback):
        await callback(*args)
    else:
        callback(*args)


class WebSocketManager:
    """
    Manages the WebSocket connection.

    Inbound frames are JSON objects shaped {"channel": str, "data": ...};
    every registered listener receives every frame.
    """

    def __init__(self, config: ExchangeConfig):
        """
        Initialize WebSocket manager.

        Args:
            config: Network configuration
        """
        self.config = config
        self.url = config.websocket_url

        self._ws: Optional[Any] = None
        self._open_event = asyncio.Event()
        self._reconnect_delay = config.initial_reconnect_delay

        self._listeners: List[FrameListener] = []
        self._lifecycle: Dict[str, List[Callable]] = {event: [] for event in LIFECYCLE_EVENTS}

        # Background tasks
        self._tasks: List[asyncio.Task] = []
        self._running = False

        # Statistics
        self._stats = {
            'messages_received': 0,
            'reconnections': 0,
            'last_message_time': None,
            'connected_at': None
        }

        logger.info("WebSocket manager initialized", url=self.url)

    @property
    def is_connected(self) -> bool:
        """Check if WebSocket is connected."""
        return self._ws is not None and self._open_event.is_set()

    @property
    def stats(self) -> Dict[str, Any]:
        """Get connection statistics."""
        return self._stats.copy()

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def add_listener(self, listener: FrameListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: FrameListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on(self, event: str, callback: Callable) -> None:
        """Register a lifecycle callback ("open", "close" or "error")."""
        if event not in self._lifecycle:
            raise ValueError(f"Unknown lifecycle event: {event}")
        self._lifecycle[event].append(callback)

    async def _emit(self, event: str, *args) -> None:
        for callback in list(self._lifecycle[event]):
            try:
                await _invoke(callback, *args)
            except Exception as e:
                logger.error("Error in lifecycle callback", lifecycle_event=event, error=str(e), exc_info=True)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self, timeout: float = 10.0) -> None:
        """
        Start the connection loop and wait until the socket is open.

        Raises:
            WebSocketError: If the socket did not open within `timeout`
        """
        if not self._running:
            self._running = True
            task = asyncio.create_task(self._connection_loop())
            task.set_name("websocket_connection_loop")
            self._tasks.append(task)

        try:
            await asyncio.wait_for(self._open_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise WebSocketError(f"WebSocket did not open within {timeout}s")

    async def disconnect(self) -> None:
        """Close the connection and stop background tasks."""
        self._running = False

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()

        if self._ws is not None:
            await self._ws.close()
            self._ws = None

        if self._open_event.is_set():
            self._open_event.clear()
            await self._emit("close")

        logger.info("WebSocket manager stopped")

    async def send(self, frame: Dict[str, Any]) -> None:
        """
        Send one JSON frame.

        Raises:
            WebSocketError: If not connected or the send fails
        """
        if not self.is_connected:
            raise WebSocketError("WebSocket is not connected")

        try:
            await self._ws.send(json.dumps(frame))
        except (ConnectionClosed, WebSocketException) as e:
            raise WebSocketError(f"Failed to send frame: {e}") from e

    async def _connection_loop(self) -> None:
        """Connect, read frames, reconnect with backoff until stopped."""
        while self._running:
            try:
                logger.info("Connecting to WebSocket", url=self.url)

                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self._open_event.set()
                    self._reconnect_delay = self.config.initial_reconnect_delay
                    self._stats['connected_at'] = datetime.now(timezone.utc)

                    logger.info("Connected to WebSocket", event_type=EventType.WEBSOCKET_CONNECTED)
                    await self._emit("open")

                    ping_task = asyncio.create_task(self._ping_loop())

                    try:
                        async for message in ws:
                            await self._handle_message(message)
                    finally:
                        ping_task.cancel()
                        try:
                            await ping_task
                        except asyncio.CancelledError:
                            pass

            except (ConnectionClosed, WebSocketException, OSError) as e:
                await self._emit("error", e)
                logger.warning(
                    "WebSocket disconnected",
                    event_type=EventType.WEBSOCKET_DISCONNECTED,
                    error=str(e),
                    reconnect_delay=self._reconnect_delay
                )

            except Exception as e:
                logger.error("Unexpected error in connection loop", error=str(e), exc_info=True)

            self._ws = None
            if self._open_event.is_set():
                self._open_event.clear()
                await self._emit("close")

            if self._running:
                self._stats['reconnections'] += 1
                logger.info(
                    "Reconnecting to WebSocket",
                    event_type=EventType.WEBSOCKET_RECONNECTING,
                    delay=self._reconnect_delay
                )
                await asyncio.sleep(self._reconnect_delay)
                self._reconnect_delay = min(
                    self._reconnect_delay * self.config.reconnect_backoff_factor,
                    self.config.max_reconnect_delay
                )

    async def _ping_loop(self) -> None:
        """Send periodic application pings to keep the connection alive."""
        try:
            while True:
                await asyncio.sleep(self.config.ping_interval)
                try:
                    await self.send({"method": "ping"})
                except WebSocketError as e:
                    logger.warning("Failed to send ping", error=str(e))
                    break
        except asyncio.CancelledError:
            pass

    async def _handle_message(self, message: str) -> None:
        """
        Decode an inbound frame and fan it out to listeners.

        Args:
            message: JSON message from WebSocket
        """
        try:
            frame = json.loads(message)
        except json.JSONDecodeError as e:
            logger.error("Failed to decode message", error=str(e))
            return

        self._stats['messages_received'] += 1
        self._stats['last_message_time'] = datetime.now(timezone.utc)

        if not isinstance(frame, dict):
            logger.warning("Ignoring non-object frame", frame_type=type(frame).__name__)
            return

        for listener in list(self._listeners):
            try:
                await _invoke(listener, frame)
            except Exception as e:
                logger.error(
                    "Error in frame listener",
                    channel=frame.get("channel"),
                    error=str(e),
                    exc_info=True
                )
