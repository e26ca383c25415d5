"""
Read-only query facades for the /info endpoint.

Every method returns translated data (internal names, numeric values) by
default. Passing raw=True skips both the translation and the wait for the
first registry load, and returns the venue's payload untouched.
"""

from typing import Any, Dict, Iterable, Optional, Union

from .exchange_config import InfoType
from .models import MarketClass
from .symbol_registry import DEFAULT_SYMBOL_FIELDS, SymbolRegistry


META_SYMBOL_FIELDS = frozenset({"name", "coin", "symbol"})


class BaseInfoAPI:
    """Shared request path for the info facades."""

    def __init__(self, pipeline: Any, registry: SymbolRegistry, heavy_weight: float = 20):
        """
        Args:
            pipeline: RequestPipeline or WebSocketPostPipeline
            registry: Symbol registry used for translation
            heavy_weight: Rate-limit weight of user history queries
        """
        self.pipeline = pipeline
        self.registry = registry
        self.heavy_weight = heavy_weight

    async def _request(
        self,
        payload: Dict[str, Any],
        weight: Optional[float] = None,
        raw: bool = False,
        symbol_fields: Iterable[str] = DEFAULT_SYMBOL_FIELDS,
        forced_class: Optional[MarketClass] = None
    ) -> Any:
        if not raw:
            await self.registry.ensure_ready()

        return await self.pipeline.send(
            payload,
            weight=weight,
            translate=not raw,
            symbol_fields=symbol_fields,
            forced_class=forced_class
        )

    def _venue_symbol(self, coin: str) -> str:
        return self.registry.exchange_symbol(coin)


class GeneralInfoAPI(BaseInfoAPI):
    """Market-wide and per-user queries that are not specific to one market class."""

    async def get_all_mids(self, raw: bool = False) -> Dict[str, Any]:
        """
        Mid prices for every listed coin.

        Keys of the returned mapping are internal names unless raw.
        """
        if not raw:
            await self.registry.ensure_ready()

        response = await self.pipeline.send({"type": InfoType.ALL_MIDS})
        if raw or not isinstance(response, dict):
            return response
        return self.registry.translate_mids(response)

    async def get_user_open_orders(self, user: str, raw: bool = False) -> Any:
        return await self._request({"type": InfoType.OPEN_ORDERS, "user": user}, raw=raw)

    async def get_frontend_open_orders(self, user: str, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.FRONTEND_OPEN_ORDERS, "user": user},
            weight=self.heavy_weight,
            raw=raw
        )

    async def get_user_fills(self, user: str, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.USER_FILLS, "user": user},
            weight=self.heavy_weight,
            raw=raw
        )

    async def get_user_fills_by_time(
        self,
        user: str,
        start_time: Union[int, float],
        end_time: Optional[Union[int, float]] = None,
        raw: bool = False
    ) -> Any:
        """
        Fills within a time window.

        Args:
            user: Account address
            start_time: Window start, epoch milliseconds
            end_time: Window end, epoch milliseconds (open-ended if None)
            raw: Return the venue payload untouched
        """
        payload: Dict[str, Any] = {
            "type": InfoType.USER_FILLS_BY_TIME,
            "user": user,
            "startTime": round(start_time),
        }
        if end_time is not None:
            payload["endTime"] = round(end_time)

        return await self._request(payload, weight=self.heavy_weight, raw=raw)

    async def get_trade_info(self, user: str, order_id: int, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.TRADE_INFO, "user": user, "orderId": order_id},
            raw=raw
        )

    async def get_user_rate_limit(self, user: str, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.USER_RATE_LIMIT, "user": user},
            weight=self.heavy_weight,
            raw=raw
        )

    async def get_order_status(self, user: str, oid: Union[int, str], raw: bool = False) -> Any:
        """Status of one order, by venue order id or client order id."""
        return await self._request({"type": InfoType.ORDER_STATUS, "user": user, "oid": oid}, raw=raw)

    async def get_l2_book(self, coin: str, raw: bool = False) -> Any:
        return await self._request({"type": InfoType.L2_BOOK, "coin": self._venue_symbol(coin)}, raw=raw)

    async def get_candle_snapshot(
        self,
        coin: str,
        interval: str,
        start_time: int,
        end_time: int,
        raw: bool = False
    ) -> Any:
        """
        Historical candles for one coin.

        Candle rows carry the coin under "s", so that is the field translated.
        """
        payload = {
            "type": InfoType.CANDLE_SNAPSHOT,
            "req": {
                "coin": self._venue_symbol(coin),
                "interval": interval,
                "startTime": start_time,
                "endTime": end_time,
            },
        }
        return await self._request(payload, raw=raw, symbol_fields=frozenset({"s"}))


class PerpsInfoAPI(BaseInfoAPI):
    """Perpetuals queries."""

    async def get_meta(self, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.META},
            raw=raw,
            symbol_fields=META_SYMBOL_FIELDS,
            forced_class=MarketClass.PERPETUAL
        )

    async def get_meta_and_asset_ctxs(self, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.PERPS_META_AND_ASSET_CTXS},
            raw=raw,
            symbol_fields=META_SYMBOL_FIELDS,
            forced_class=MarketClass.PERPETUAL
        )

    async def get_clearinghouse_state(self, user: str, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.PERPS_CLEARINGHOUSE_STATE, "user": user},
            raw=raw,
            forced_class=MarketClass.PERPETUAL
        )

    async def get_user_funding(
        self,
        user: str,
        start_time: int,
        end_time: Optional[int] = None,
        raw: bool = False
    ) -> Any:
        payload: Dict[str, Any] = {"type": InfoType.USER_FUNDING, "user": user, "startTime": start_time}
        if end_time is not None:
            payload["endTime"] = end_time
        return await self._request(payload, weight=self.heavy_weight, raw=raw)

    async def get_user_non_funding_ledger_updates(
        self,
        user: str,
        start_time: int,
        end_time: Optional[int] = None,
        raw: bool = False
    ) -> Any:
        payload: Dict[str, Any] = {
            "type": InfoType.USER_NON_FUNDING_LEDGER_UPDATES,
            "user": user,
            "startTime": start_time,
        }
        if end_time is not None:
            payload["endTime"] = end_time
        return await self._request(payload, weight=self.heavy_weight, raw=raw)

    async def get_funding_history(
        self,
        coin: str,
        start_time: int,
        end_time: Optional[int] = None,
        raw: bool = False
    ) -> Any:
        payload: Dict[str, Any] = {
            "type": InfoType.FUNDING_HISTORY,
            "coin": self._venue_symbol(coin),
            "startTime": start_time,
        }
        if end_time is not None:
            payload["endTime"] = end_time
        return await self._request(payload, weight=self.heavy_weight, raw=raw)


class SpotInfoAPI(BaseInfoAPI):
    """Spot queries."""

    async def get_spot_meta(self, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.SPOT_META},
            raw=raw,
            symbol_fields=META_SYMBOL_FIELDS,
            forced_class=MarketClass.SPOT
        )

    async def get_spot_clearinghouse_state(self, user: str, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.SPOT_CLEARINGHOUSE_STATE, "user": user},
            raw=raw,
            symbol_fields=META_SYMBOL_FIELDS,
            forced_class=MarketClass.SPOT
        )

    async def get_spot_meta_and_asset_ctxs(self, raw: bool = False) -> Any:
        return await self._request(
            {"type": InfoType.SPOT_META_AND_ASSET_CTXS},
            raw=raw,
            forced_class=MarketClass.SPOT
        )


class InfoAPI(GeneralInfoAPI):
    """
    All info queries on one object.

    General queries are inherited; perpetual and spot queries are reachable
    through `perpetuals` and `spot`.
    """

    def __init__(self, pipeline: Any, registry: SymbolRegistry, heavy_weight: float = 20):
        super().__init__(pipeline, registry, heavy_weight)
        self.perpetuals = PerpsInfoAPI(pipeline, registry, heavy_weight)
        self.spot = SpotInfoAPI(pipeline, registry, heavy_weight)
