"""
Symbol registry: translation between venue identifiers and stable internal names.

The venue identifies instruments by a short symbol plus a position in its
perpetual or spot universe. Symbols are not unique across listings, so the
registry keys everything by "<symbol>-<index>" and hands out internal names
of the form "<base>-<PERP|SPOT>-<index>".

Each refresh builds a complete RegistrySnapshot and swaps it in with a single
attribute assignment. Readers capture the current snapshot once per call and
therefore always see one whole generation.
"""

import asyncio
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import HyperliquidError, RefreshError, RegistryIntegrityError
from .exchange_config import InfoType
from .models import AssetListing, MarketClass, composite_key
from ..utils.logger import EventType, get_logger


logger = get_logger(__name__)


DEFAULT_SYMBOL_FIELDS = frozenset({"coin", "symbol"})

SIDE_CODES = {"A": "sell", "B": "buy"}

_INT_RE = re.compile(r"-?\d+")
_DECIMAL_RE = re.compile(r"-?\d*\.\d+")

MetadataFetcher = Callable[[Dict[str, Any]], Awaitable[Any]]


# ============================================================================
# METADATA PARSING
# ============================================================================

def _universe_container(response: Any, label: str) -> Dict[str, Any]:
    """Return the metadata object holding `universe` from a venue response."""
    if isinstance(response, list) and response and isinstance(response[0], dict):
        container = response[0]
    elif isinstance(response, dict):
        container = response
    else:
        raise RefreshError(f"Unexpected {label} metadata shape: {type(response).__name__}")

    if not isinstance(container.get("universe"), list):
        raise RefreshError(f"{label} metadata has no universe list")
    return container


def parse_perp_listings(response: Any) -> List[AssetListing]:
    """
    Build perpetual listings from a metaAndAssetCtxs (or meta) response.

    The index of a perpetual is its position in the universe list.
    """
    container = _universe_container(response, "perpetual")
    listings = []

    try:
        for position, asset in enumerate(container["universe"]):
            name = asset["name"]
            listings.append(AssetListing(
                exchange_symbol=name,
                index=position,
                market_class=MarketClass.PERPETUAL,
                base_name=name
            ))
    except (AttributeError, KeyError, TypeError) as e:
        raise RefreshError(f"Malformed perpetual universe entry: {e!r}") from e

    return listings


def parse_spot_listings(response: Any) -> List[AssetListing]:
    """
    Build spot listings from a spotMetaAndAssetCtxs (or spotMeta) response.

    Each market carries `tokens: [baseTokenIndex, quoteTokenIndex]`; the base
    name comes from the parallel `tokens` array. Markets without a resolvable
    base token fall back to the part of the pair name before "/".
    """
    container = _universe_container(response, "spot")
    listings = []

    try:
        token_names = {
            token.get("index", position): token["name"]
            for position, token in enumerate(container.get("tokens") or [])
        }

        for position, market in enumerate(container["universe"]):
            name = market["name"]
            index = int(market.get("index", position))

            pair_tokens = market.get("tokens") or []
            base_name = token_names.get(pair_tokens[0]) if pair_tokens else None
            if not base_name:
                base_name = name.split("/")[0]

            listings.append(AssetListing(
                exchange_symbol=name,
                index=index,
                market_class=MarketClass.SPOT,
                base_name=base_name
            ))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise RefreshError(f"Malformed spot universe entry: {e!r}") from e

    return listings


# ============================================================================
# SNAPSHOT
# ============================================================================

@dataclass(frozen=True)
class RegistrySnapshot:
    """One immutable generation of the name mappings."""
    generation: int
    exchange_to_internal: Mapping[str, str]
    internal_to_index: Mapping[str, int]
    internal_to_exchange: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    listings: Mapping[str, AssetListing] = field(default_factory=lambda: MappingProxyType({}))
    candidates: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def empty(cls) -> "RegistrySnapshot":
        return cls(
            generation=0,
            exchange_to_internal=MappingProxyType({}),
            internal_to_index=MappingProxyType({})
        )

    @classmethod
    def build(cls, listings: Iterable[AssetListing], generation: int) -> "RegistrySnapshot":
        """
        Build a snapshot from listings.

        Raises:
            RegistryIntegrityError: If two listings share a composite key or
                an internal name
        """
        exchange_to_internal: Dict[str, str] = {}
        internal_to_index: Dict[str, int] = {}
        internal_to_exchange: Dict[str, str] = {}
        by_name: Dict[str, AssetListing] = {}
        candidates: Dict[str, List[str]] = {}

        for listing in listings:
            key = listing.composite_key
            name = listing.internal_name

            if key in exchange_to_internal:
                raise RegistryIntegrityError(
                    f"Composite key {key} maps to both {exchange_to_internal[key]} and {name}"
                )
            if name in by_name:
                raise RegistryIntegrityError(
                    f"Internal name {name} produced by both {by_name[name].composite_key} and {key}"
                )

            exchange_to_internal[key] = name
            internal_to_index[name] = listing.asset_index
            internal_to_exchange[name] = key
            by_name[name] = listing
            candidates.setdefault(listing.exchange_symbol, []).append(name)

        return cls(
            generation=generation,
            exchange_to_internal=MappingProxyType(exchange_to_internal),
            internal_to_index=MappingProxyType(internal_to_index),
            internal_to_exchange=MappingProxyType(internal_to_exchange),
            listings=MappingProxyType(by_name),
            candidates=MappingProxyType({k: tuple(v) for k, v in candidates.items()})
        )

    def resolve_bare(self, symbol: str, forced_class: Optional[MarketClass] = None) -> str:
        """Resolve a venue symbol that arrived without its index."""
        if symbol in self.exchange_to_internal:
            return self.exchange_to_internal[symbol]

        names = self.candidates.get(symbol, ())
        if forced_class is not None:
            names = tuple(n for n in names if self.listings[n].market_class == forced_class)

        if len(names) == 1:
            return names[0]
        return symbol

    def exchange_symbol_for(self, name: str) -> str:
        listing = self.listings.get(name)
        return listing.exchange_symbol if listing else name


# ============================================================================
# JSON TRAVERSAL
# ============================================================================

def _coerce_number(value: Any) -> Any:
    if isinstance(value, str):
        if _INT_RE.fullmatch(value):
            return int(value)
        if _DECIMAL_RE.fullmatch(value):
            return float(value)
    return value


def translate_json(
    value: Any,
    symbol_fields: frozenset,
    convert_symbol: Callable[[str], str],
    coerce: bool = True
) -> Any:
    """
    Deep-copy a JSON value, translating embedded symbols.

    String values under a key in `symbol_fields` go through `convert_symbol`.
    With `coerce`, values under "side" map "A"/"B" to "sell"/"buy" and other
    string leaves that look like integers or decimals become numbers.
    """
    if isinstance(value, dict):
        converted = {}
        for key, item in value.items():
            if key in symbol_fields and isinstance(item, str):
                converted[key] = convert_symbol(item)
            elif coerce and key == "side":
                converted[key] = SIDE_CODES.get(item, item) if isinstance(item, str) else item
            else:
                converted[key] = translate_json(item, symbol_fields, convert_symbol, coerce)
        return converted

    if isinstance(value, list):
        return [translate_json(item, symbol_fields, convert_symbol, coerce) for item in value]

    return _coerce_number(value) if coerce else value


# ============================================================================
# REGISTRY
# ============================================================================

class SymbolRegistry:
    """
    Owns the venue <-> internal name mappings for one client.

    Lookups never fail: unknown symbols and names come back unchanged so a
    freshly listed asset keeps working until the next refresh picks it up.
    """

    def __init__(self, fetch_metadata: MetadataFetcher):
        """
        Initialize an empty registry.

        Args:
            fetch_metadata: Coroutine function sending an untranslated /info query
        """
        self._fetch_metadata = fetch_metadata
        self._snapshot = RegistrySnapshot.empty()
        self._ready = asyncio.Event()
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> RegistrySnapshot:
        """Current generation."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def is_ready(self) -> bool:
        """True once at least one refresh succeeded."""
        return self._ready.is_set()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> RegistrySnapshot:
        """
        Fetch perpetual and spot metadata and replace both mappings.

        Returns:
            The new snapshot

        Raises:
            RefreshError: If either fetch fails or a response cannot be parsed.
                The previous generation stays in place.
        """
        try:
            perp_response, spot_response = await asyncio.gather(
                self._fetch_metadata({"type": InfoType.PERPS_META_AND_ASSET_CTXS}),
                self._fetch_metadata({"type": InfoType.SPOT_META_AND_ASSET_CTXS})
            )
        except HyperliquidError as e:
            raise RefreshError(f"Failed to fetch asset metadata: {e}") from e

        try:
            listings = parse_perp_listings(perp_response) + parse_spot_listings(spot_response)
            snapshot = RegistrySnapshot.build(listings, generation=self._snapshot.generation + 1)
        except RefreshError:
            raise
        except Exception as e:
            raise RefreshError(f"Failed to parse asset metadata: {e!r}") from e

        self._snapshot = snapshot
        self._ready.set()

        counts = self.all_assets()
        logger.info(
            "Asset maps refreshed",
            event_type=EventType.REGISTRY_REFRESHED,
            generation=snapshot.generation,
            perp=len(counts["perp"]),
            spot=len(counts["spot"])
        )
        return snapshot

    async def ensure_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until at least one refresh has completed.

        Raises:
            asyncio.TimeoutError: If `timeout` elapses first
        """
        if self._ready.is_set():
            return
        await asyncio.wait_for(self._ready.wait(), timeout=timeout)

    def start_periodic_refresh(self, interval: float) -> asyncio.Task:
        """Start the background refresh task (idempotent)."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop(interval))
            self._refresh_task.set_name("symbol_registry_refresh")
        return self._refresh_task

    async def stop_periodic_refresh(self) -> None:
        """Cancel the background refresh task."""
        task, self._refresh_task = self._refresh_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except RefreshError as e:
                logger.warning(
                    "Asset map refresh failed, keeping previous generation",
                    event_type=EventType.REGISTRY_REFRESH_FAILED,
                    generation=self._snapshot.generation,
                    error=str(e)
                )
            except Exception as e:
                logger.error(
                    "Unexpected error in asset map refresh",
                    event_type=EventType.REGISTRY_REFRESH_FAILED,
                    generation=self._snapshot.generation,
                    error=str(e),
                    exc_info=True
                )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve(self, exchange_symbol: str, index: int) -> str:
        """
        Translate a venue symbol and its universe index to an internal name.

        An already-qualified "<symbol>-<index>" key is accepted as well.
        Unknown symbols are returned unchanged.
        """
        snapshot = self._snapshot
        name = snapshot.exchange_to_internal.get(composite_key(exchange_symbol, index))
        if name is None:
            name = snapshot.exchange_to_internal.get(exchange_symbol)
        if name is None:
            logger.debug("Symbol not in registry", symbol=exchange_symbol, index=index)
            return exchange_symbol
        return name

    def reverse(self, internal_name: str) -> str:
        """
        Translate an internal name back to its "<symbol>-<index>" key.

        Unknown names are returned unchanged.
        """
        return self._snapshot.internal_to_exchange.get(internal_name, internal_name)

    def exchange_symbol(self, internal_name: str) -> str:
        """Venue symbol for an internal name, as sent on the wire."""
        return self._snapshot.exchange_symbol_for(internal_name)

    def internal_name(self, key: str) -> Optional[str]:
        """Internal name for a "<symbol>-<index>" key, or None."""
        return self._snapshot.exchange_to_internal.get(key)

    def asset_index(self, internal_name: str) -> Optional[int]:
        """Asset index (spot offset applied), or None if unknown."""
        return self._snapshot.internal_to_index.get(internal_name)

    def listing(self, internal_name: str) -> Optional[AssetListing]:
        return self._snapshot.listings.get(internal_name)

    @staticmethod
    def classify(internal_name: str) -> Optional[MarketClass]:
        """Market class from the name's -PERP- / -SPOT- marker."""
        for market_class in MarketClass:
            if market_class.marker in internal_name:
                return market_class
        return None

    def all_assets(self) -> Dict[str, List[str]]:
        """Internal names of the current generation grouped by market class."""
        assets: Dict[str, List[str]] = {"perp": [], "spot": []}
        for name in self._snapshot.internal_to_index:
            market_class = self.classify(name)
            if market_class == MarketClass.PERPETUAL:
                assets["perp"].append(name)
            elif market_class == MarketClass.SPOT:
                assets["spot"].append(name)
        return assets

    # ------------------------------------------------------------------
    # Payload translation
    # ------------------------------------------------------------------

    def translate_embedded(
        self,
        payload: Any,
        symbol_fields: Iterable[str] = DEFAULT_SYMBOL_FIELDS,
        forced_class: Optional[MarketClass] = None
    ) -> Any:
        """
        Normalize an inbound venue payload.

        Symbol fields become internal names, "side" codes become "buy"/"sell"
        and numeric strings become numbers.
        """
        snapshot = self._snapshot
        return translate_json(
            payload,
            frozenset(symbol_fields),
            lambda symbol: snapshot.resolve_bare(symbol, forced_class)
        )

    def translate_mids(self, mids: Mapping[str, Any]) -> Dict[str, Any]:
        """Translate a {symbol: price} mapping, where symbols are keys."""
        snapshot = self._snapshot
        return {snapshot.resolve_bare(symbol): _coerce_number(px) for symbol, px in mids.items()}

    def prepare_outbound(
        self,
        payload: Any,
        symbol_fields: Iterable[str] = DEFAULT_SYMBOL_FIELDS
    ) -> Any:
        """
        Rewrite internal names in an outbound payload to venue symbols.

        Values are otherwise left verbatim; the venue expects decimal strings.
        """
        snapshot = self._snapshot
        return translate_json(
            payload,
            frozenset(symbol_fields),
            snapshot.exchange_symbol_for,
            coerce=False
        )
