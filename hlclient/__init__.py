"""
Hyperliquid API client.

Async REST and WebSocket access with stable internal asset names
("<base>-<PERP|SPOT>-<index>") in place of the venue's reusable symbols.
"""

from .client import AuthenticatedHyperliquidClient, HyperliquidClient, create_client
from .exchange.exchange_config import NetworkType

__version__ = "0.1.0"

__all__ = [
    "HyperliquidClient",
    "AuthenticatedHyperliquidClient",
    "create_client",
    "NetworkType",
]
