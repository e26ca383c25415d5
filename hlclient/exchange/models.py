"""
Data models shared by the registry, the request pipeline and the facades.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum


# Spot asset indices are offset so both classes share one index table
SPOT_INDEX_OFFSET = 10000


class MarketClass(Enum):
    """Market class of a listing, determines name suffix and index offset."""
    PERPETUAL = "PERP"
    SPOT = "SPOT"

    @property
    def marker(self) -> str:
        """Marker embedded in internal names, e.g. "-PERP-"."""
        return f"-{self.value}-"


@dataclass(frozen=True)
class AssetListing:
    """
    One tradable instrument as known by the venue at a point in time.

    `index` is the venue position within its own universe; `asset_index`
    applies the spot offset and is what signed actions carry.
    """
    exchange_symbol: str             # e.g. "BTC", "PURR/USDC", "@107"
    index: int
    market_class: MarketClass
    base_name: str                   # e.g. "BTC", "PURR"

    @property
    def internal_name(self) -> str:
        """Stable identifier: <base>-<PERP|SPOT>-<index>."""
        return f"{self.base_name}-{self.market_class.value}-{self.index}"

    @property
    def composite_key(self) -> str:
        """Venue symbol qualified by index: <exchange_symbol>-<index>."""
        return composite_key(self.exchange_symbol, self.index)

    @property
    def asset_index(self) -> int:
        if self.market_class == MarketClass.SPOT:
            return SPOT_INDEX_OFFSET + self.index
        return self.index


def composite_key(exchange_symbol: str, index: int) -> str:
    return f"{exchange_symbol}-{index}"


@dataclass
class Signature:
    """ECDSA signature in the venue's wire shape."""
    r: str
    s: str
    v: int

    def to_dict(self) -> Dict[str, Any]:
        return {"r": self.r, "s": self.s, "v": self.v}


@dataclass
class OrderRequest:
    """
    Order to place or modify.

    `order_type` is either {"limit": {"tif": "Gtc"|"Ioc"|"Alo"}} or
    {"trigger": {"triggerPx": float, "isMarket": bool, "tpsl": "tp"|"sl"}}.
    """
    coin: str                        # Internal name, e.g. "BTC-PERP-0"
    is_buy: bool
    sz: float
    limit_px: float
    order_type: Dict[str, Any] = field(default_factory=lambda: {"limit": {"tif": "Gtc"}})
    reduce_only: bool = False
    cloid: Optional[str] = None      # 16-byte hex client order id


@dataclass
class CancelRequest:
    """Cancel by venue order id."""
    coin: str
    oid: int


@dataclass
class ModifyRequest:
    """Replace an existing order."""
    oid: int
    order: OrderRequest
