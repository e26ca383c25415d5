"""
Rate limiter for outbound API requests.

This module implements weight-based rate limiting using a token bucket:
fixed capacity, continuous refill proportional to elapsed time, capped at
capacity. One limiter is owned by each client instance and shared by its
REST and WebSocket pipelines.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict

from .exceptions import RateLimitExceededError
from .exchange_config import RateLimitConfig
from ..utils.logger import EventType, get_logger


logger = get_logger(__name__)


@dataclass
class RequestBucket:
    """Token bucket for rate limiting."""
    capacity: float                  # Maximum tokens
    refill_rate: float               # Tokens per second
    tokens: float = field(init=False)  # Current tokens
    last_refill: float = field(init=False)  # Last refill timestamp

    def __post_init__(self):
        self.tokens = float(self.capacity)
        self.last_refill = time.monotonic()

    def refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self.last_refill

        self.tokens = min(
            self.capacity,
            self.tokens + (elapsed * self.refill_rate)
        )

        self.last_refill = now

    def consume(self, tokens: float = 1) -> bool:
        """
        Attempt to consume tokens.

        Args:
            tokens: Number of tokens to consume

        Returns:
            True if tokens were consumed, False if insufficient tokens
        """
        self.refill()

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        else:
            return False

    def wait_time(self, tokens: float = 1) -> float:
        """
        Calculate wait time until tokens available.

        Args:
            tokens: Number of tokens needed

        Returns:
            Wait time in seconds
        """
        self.refill()

        if self.tokens >= tokens:
            return 0.0

        tokens_needed = tokens - self.tokens
        return tokens_needed / self.refill_rate


class RateLimiter:
    """
    Weight-based rate limiter.

    acquire() suspends only the calling task. Once a caller has to wait,
    callers arriving later queue behind it in FIFO order, so small requests
    cannot keep consuming the refill a larger waiter is accumulating.
    """

    def __init__(
        self,
        capacity: float = 1200,
        window_seconds: float = 60.0,
        max_wait: float = 30.0
    ):
        """
        Initialize rate limiter.

        Args:
            capacity: Bucket capacity in weight units
            window_seconds: Time to refill an empty bucket
            max_wait: Upper bound on a single sleep before re-checking
        """
        if capacity <= 0 or window_seconds <= 0:
            raise ValueError("capacity and window_seconds must be positive")

        self.capacity = capacity
        self.max_wait = max_wait
        self._bucket = RequestBucket(
            capacity=capacity,
            refill_rate=capacity / window_seconds
        )

        # Held by the caller at the head of the wait queue
        self._turn = asyncio.Lock()
        self._waiting = 0

        # Statistics
        self._request_count = 0
        self._weight_used = 0.0
        self._rate_limit_hits = 0
        self._start_time = time.monotonic()

        logger.info(
            "Rate limiter initialized",
            capacity=capacity,
            window_seconds=window_seconds
        )

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimiter":
        return cls(capacity=config.weight_per_minute, window_seconds=60.0)

    @property
    def tokens(self) -> float:
        """Tokens currently available (after refill)."""
        self._bucket.refill()
        return self._bucket.tokens

    async def acquire(self, weight: float = 1) -> None:
        """
        Acquire `weight` units of capacity.

        Suspends until the bucket holds enough tokens and every earlier
        waiter has been served.

        Args:
            weight: Weight of the request

        Raises:
            RateLimitExceededError: If weight exceeds bucket capacity
            ValueError: If weight is negative
        """
        if weight > self.capacity:
            raise RateLimitExceededError(weight, self.capacity)
        if weight < 0:
            raise ValueError(f"weight must be non-negative, got {weight}")

        if self._waiting == 0 and self._bucket.consume(weight):
            self._record(weight)
            return

        self._waiting += 1
        try:
            async with self._turn:
                await self._wait_for_tokens(weight)
        finally:
            self._waiting -= 1

    async def _wait_for_tokens(self, weight: float) -> None:
        while True:
            if self._bucket.consume(weight):
                self._record(weight)
                return

            wait_time = min(self._bucket.wait_time(weight), self.max_wait)
            self._rate_limit_hits += 1

            logger.warning(
                "Rate limit hit, waiting",
                event_type=EventType.RATE_LIMIT_WARNING,
                wait_time=wait_time,
                weight=weight,
                tokens=self._bucket.tokens
            )

            await asyncio.sleep(wait_time)

    def _record(self, weight: float) -> None:
        self._request_count += 1
        self._weight_used += weight

        logger.debug(
            "Rate limit passed",
            weight=weight,
            tokens=self._bucket.tokens
        )

    def reset(self) -> None:
        """Reset the bucket and statistics."""
        self._bucket.tokens = float(self._bucket.capacity)
        self._bucket.last_refill = time.monotonic()

        self._request_count = 0
        self._weight_used = 0.0
        self._rate_limit_hits = 0
        self._start_time = time.monotonic()

        logger.info("Rate limiter reset")

    def get_stats(self) -> Dict:
        """
        Get rate limiter statistics.

        Returns:
            Dict with statistics
        """
        elapsed = time.monotonic() - self._start_time

        return {
            'elapsed_seconds': elapsed,
            'total_requests': self._request_count,
            'total_weight': self._weight_used,
            'rate_limit_hits': self._rate_limit_hits,
            'weight_per_minute': (self._weight_used / elapsed * 60) if elapsed > 0 else 0,
            'current_tokens': self.tokens
        }

    @property
    def utilization(self) -> float:
        """Get current bucket utilization (0.0-1.0)."""
        return 1.0 - (self.tokens / self.capacity)

