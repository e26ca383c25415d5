"""
Streaming subscriptions over the WebSocket connection.

Callbacks receive data already translated to internal names. Active
subscriptions are replayed after every reconnect.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .symbol_registry import DEFAULT_SYMBOL_FIELDS, SymbolRegistry
from .websocket_manager import WebSocketManager
from ..utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class _Handler:
    key: str
    callback: Callable
    matches: Callable[[Any], bool]
    symbol_fields: FrozenSet[str] = DEFAULT_SYMBOL_FIELDS
    wrap_in_list: bool = False


def _subscription_key(subscription: Dict[str, Any]) -> str:
    return json.dumps(subscription, sort_keys=True)


def _always(data: Any) -> bool:
    return True


def _for_user(user: str) -> Callable[[Any], bool]:
    """Match frames echoing this user; frames without a user field match any subscriber."""
    wanted = user.lower()

    def matches(data: Any) -> bool:
        if not isinstance(data, dict) or not isinstance(data.get("user"), str):
            return True
        return data["user"].lower() == wanted

    return matches


class WebSocketSubscriptions:
    """
    Subscribe/unsubscribe facade.

    The venue is sent one subscribe per distinct subscription no matter how
    many callbacks share it, and one unsubscribe when the last is removed.
    """

    def __init__(self, ws_manager: WebSocketManager, registry: SymbolRegistry):
        self.ws_manager = ws_manager
        self.registry = registry

        self._handlers: Dict[str, List[_Handler]] = {}      # channel -> handlers
        self._active: Dict[str, Dict[str, Any]] = {}        # key -> subscription

        ws_manager.add_listener(self._handle_frame)
        ws_manager.on("open", self._resubscribe)

    @property
    def active_subscriptions(self) -> List[Dict[str, Any]]:
        return list(self._active.values())

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    async def _subscribe(
        self,
        channel: str,
        subscription: Dict[str, Any],
        callback: Callable,
        matches: Callable[[Any], bool] = _always,
        symbol_fields: FrozenSet[str] = DEFAULT_SYMBOL_FIELDS,
        wrap_in_list: bool = False
    ) -> None:
        key = _subscription_key(subscription)

        if key not in self._active:
            await self.ws_manager.send({"method": "subscribe", "subscription": subscription})
            self._active[key] = subscription
            logger.info("Subscribed", subscription=subscription)

        self._handlers.setdefault(channel, []).append(
            _Handler(key, callback, matches, symbol_fields, wrap_in_list)
        )

    async def _unsubscribe(self, channel: str, subscription: Dict[str, Any], callback: Callable) -> None:
        key = _subscription_key(subscription)

        handlers = self._handlers.get(channel, [])
        remaining = [h for h in handlers if not (h.key == key and h.callback == callback)]
        if remaining:
            self._handlers[channel] = remaining
        else:
            self._handlers.pop(channel, None)

        still_used = any(h.key == key for hs in self._handlers.values() for h in hs)
        if key in self._active and not still_used:
            del self._active[key]
            await self.ws_manager.send({"method": "unsubscribe", "subscription": subscription})
            logger.info("Unsubscribed", subscription=subscription)

    async def _resubscribe(self) -> None:
        for subscription in list(self._active.values()):
            await self.ws_manager.send({"method": "subscribe", "subscription": subscription})
        if self._active:
            logger.info("Replayed subscriptions after reconnect", count=len(self._active))

    async def _handle_frame(self, frame: Dict[str, Any]) -> None:
        handlers = self._handlers.get(frame.get("channel"))
        if not handlers:
            return

        data = frame.get("data")
        for handler in list(handlers):
            if not handler.matches(data):
                continue

            if frame.get("channel") == "allMids" and isinstance(data, dict) and "mids" in data:
                converted = {**data, "mids": self.registry.translate_mids(data["mids"])}
            else:
                converted = self.registry.translate_embedded(data, handler.symbol_fields)

            if handler.wrap_in_list:
                converted = [converted]

            try:
                if asyncio.iscoroutinefunction(handler.callback):
                    await handler.callback(converted)
                else:
                    handler.callback(converted)
            except Exception as e:
                logger.error(
                    "Error in subscription callback",
                    channel=frame.get("channel"),
                    error=str(e),
                    exc_info=True
                )

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    async def subscribe_all_mids(self, callback: Callable) -> None:
        await self._subscribe("allMids", {"type": "allMids"}, callback)

    async def unsubscribe_all_mids(self, callback: Callable) -> None:
        await self._unsubscribe("allMids", {"type": "allMids"}, callback)

    def _candle_subscription(self, coin: str, interval: str) -> Dict[str, Any]:
        return {"type": "candle", "coin": self.registry.exchange_symbol(coin), "interval": interval}

    async def subscribe_candle(self, coin: str, interval: str, callback: Callable) -> None:
        """Candles for one internal name and interval; callback gets a one-element list."""
        subscription = self._candle_subscription(coin, interval)
        venue_coin = subscription["coin"]
        await self._subscribe(
            "candle",
            subscription,
            callback,
            matches=lambda data: isinstance(data, dict) and data.get("s") == venue_coin and data.get("i") == interval,
            symbol_fields=frozenset({"s"}),
            wrap_in_list=True
        )

    async def unsubscribe_candle(self, coin: str, interval: str, callback: Callable) -> None:
        await self._unsubscribe("candle", self._candle_subscription(coin, interval), callback)

    async def subscribe_l2_book(self, coin: str, callback: Callable) -> None:
        venue_coin = self.registry.exchange_symbol(coin)
        await self._subscribe(
            "l2Book",
            {"type": "l2Book", "coin": venue_coin},
            callback,
            matches=lambda data: isinstance(data, dict) and data.get("coin") == venue_coin
        )

    async def unsubscribe_l2_book(self, coin: str, callback: Callable) -> None:
        await self._unsubscribe("l2Book", {"type": "l2Book", "coin": self.registry.exchange_symbol(coin)}, callback)

    async def subscribe_trades(self, coin: str, callback: Callable) -> None:
        venue_coin = self.registry.exchange_symbol(coin)
        await self._subscribe(
            "trades",
            {"type": "trades", "coin": venue_coin},
            callback,
            matches=lambda data: isinstance(data, list) and any(
                isinstance(t, dict) and t.get("coin") == venue_coin for t in data
            )
        )

    async def unsubscribe_trades(self, coin: str, callback: Callable) -> None:
        await self._unsubscribe("trades", {"type": "trades", "coin": self.registry.exchange_symbol(coin)}, callback)

    # ------------------------------------------------------------------
    # User data
    # ------------------------------------------------------------------

    async def subscribe_notification(self, user: str, callback: Callable) -> None:
        await self._subscribe("notification", {"type": "notification", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_notification(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("notification", {"type": "notification", "user": user}, callback)

    async def subscribe_web_data2(self, user: str, callback: Callable) -> None:
        await self._subscribe("webData2", {"type": "webData2", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_web_data2(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("webData2", {"type": "webData2", "user": user}, callback)

    async def subscribe_order_updates(self, user: str, callback: Callable) -> None:
        await self._subscribe("orderUpdates", {"type": "orderUpdates", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_order_updates(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("orderUpdates", {"type": "orderUpdates", "user": user}, callback)

    async def subscribe_user_events(self, user: str, callback: Callable) -> None:
        # userEvents frames arrive on the "user" channel
        await self._subscribe("user", {"type": "userEvents", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_user_events(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("user", {"type": "userEvents", "user": user}, callback)

    async def subscribe_user_fills(self, user: str, callback: Callable) -> None:
        await self._subscribe("userFills", {"type": "userFills", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_user_fills(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("userFills", {"type": "userFills", "user": user}, callback)

    async def subscribe_user_fundings(self, user: str, callback: Callable) -> None:
        await self._subscribe("userFundings", {"type": "userFundings", "user": user}, callback, matches=_for_user(user))

    async def unsubscribe_user_fundings(self, user: str, callback: Callable) -> None:
        await self._unsubscribe("userFundings", {"type": "userFundings", "user": user}, callback)

    async def subscribe_user_non_funding_ledger_updates(self, user: str, callback: Callable) -> None:
        await self._subscribe(
            "userNonFundingLedgerUpdates",
            {"type": "userNonFundingLedgerUpdates", "user": user},
            callback,
            matches=_for_user(user)
        )

    async def unsubscribe_user_non_funding_ledger_updates(self, user: str, callback: Callable) -> None:
        await self._unsubscribe(
            "userNonFundingLedgerUpdates",
            {"type": "userNonFundingLedgerUpdates", "user": user},
            callback
        )

    def clear(self) -> None:
        """Forget all subscriptions locally (used on client close)."""
        self._handlers.clear()
        self._active.clear()
