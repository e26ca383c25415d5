"""
Leaderboard query with an in-memory cache.

The leaderboard is large and changes slowly, so one fetch is served for a
day. A failed refresh falls back to whatever was cached, however old.
"""

import time
from typing import Any, Callable, Dict, List, Optional

from .exceptions import HyperliquidError
from .exchange_config import InfoType
from ..utils.logger import get_logger


logger = get_logger(__name__)


CACHE_TTL_SECONDS = 24 * 60 * 60

SORT_FIELDS = ("pnl", "roi", "vlm", "accountValue")


def _window_performance(entry: Dict[str, Any], window: str) -> Optional[Dict[str, Any]]:
    for name, performance in entry.get("windowPerformances", []):
        if name == window:
            return performance
    return None


class LeaderboardAPI:
    """Cached leaderboard access plus client-side filtering and sorting."""

    def __init__(
        self,
        pipeline: Any,
        ttl: float = CACHE_TTL_SECONDS,
        weight: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Args:
            pipeline: Request pipeline (the leaderboard is never translated)
            ttl: Cache lifetime in seconds
            weight: Rate-limit weight per fetch
            clock: Time source, monotonic seconds
        """
        self.pipeline = pipeline
        self.ttl = ttl
        self.weight = weight
        self._clock = clock or time.monotonic

        self._data: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0

    def _cache_valid(self) -> bool:
        return self._data is not None and self._clock() - self._fetched_at < self.ttl

    async def get_leaderboard(self) -> Dict[str, Any]:
        """
        Fetch the leaderboard, from cache when fresh.

        Raises:
            HyperliquidError: If the fetch fails and nothing is cached
        """
        if self._cache_valid():
            return self._data

        try:
            data = await self.pipeline.send({"type": InfoType.LEADERBOARD}, weight=self.weight)
        except HyperliquidError as e:
            if self._data is None:
                raise
            logger.warning("Leaderboard fetch failed, serving stale cache", error=str(e))
            return self._data

        self._data = data
        self._fetched_at = self._clock()
        return data

    def clear_cache(self) -> None:
        self._data = None
        self._fetched_at = 0.0

    @staticmethod
    def filter_leaderboard(
        leaderboard: Dict[str, Any],
        time_window: str = "allTime",
        min_account_value: Optional[float] = None,
        min_volume: Optional[float] = None,
        min_pnl: Optional[float] = None,
        min_roi: Optional[float] = None,
        max_accounts: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Rows with a performance entry for `time_window` that pass every minimum."""
        rows = []
        for entry in leaderboard.get("leaderboardRows", []):
            performance = _window_performance(entry, time_window)
            if performance is None:
                continue
            if min_account_value is not None and float(entry["accountValue"]) < min_account_value:
                continue
            if min_volume is not None and float(performance["vlm"]) < min_volume:
                continue
            if min_pnl is not None and float(performance["pnl"]) < min_pnl:
                continue
            if min_roi is not None and float(performance["roi"]) < min_roi:
                continue
            rows.append(entry)

        if max_accounts is not None and max_accounts > 0:
            rows = rows[:max_accounts]
        return rows

    @staticmethod
    def sort_leaderboard(
        entries: List[Dict[str, Any]],
        sort_by: str = "pnl",
        time_window: str = "allTime"
    ) -> List[Dict[str, Any]]:
        """Sort descending by `sort_by`; entries lacking the window sort last."""
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {SORT_FIELDS}")

        def sort_key(entry: Dict[str, Any]) -> float:
            if sort_by == "accountValue":
                return float(entry["accountValue"])
            performance = _window_performance(entry, time_window)
            return float(performance[sort_by]) if performance else float("-inf")

        return sorted(entries, key=sort_key, reverse=True)

    async def get_filtered_and_sorted_leaderboard(
        self,
        sort_by: str = "pnl",
        time_window: str = "allTime",
        **filters
    ) -> List[Dict[str, Any]]:
        leaderboard = await self.get_leaderboard()
        rows = self.filter_leaderboard(leaderboard, time_window=time_window, **filters)
        return self.sort_leaderboard(rows, sort_by, time_window)
