"""
Composite operations built from the info and trading facades.
"""

from typing import Any, Dict, List, Optional

from .info import GeneralInfoAPI
from .models import CancelRequest
from .trading import ExchangeAPI
from ..utils.logger import get_logger


logger = get_logger(__name__)


class CustomOperations:
    """Multi-request helpers for an authenticated account."""

    def __init__(self, exchange: ExchangeAPI, info: GeneralInfoAPI):
        self.exchange = exchange
        self.info = info

    async def cancel_all_orders(self, symbol: Optional[str] = None) -> Any:
        """
        Cancel every open order of the signer's account.

        Args:
            symbol: Internal name to restrict the cancel to (all coins if None)

        Returns:
            Venue response for the batch cancel, or None if nothing was open
        """
        open_orders = await self.info.get_user_open_orders(self.exchange.address)

        cancels = [
            CancelRequest(coin=order["coin"], oid=order["oid"])
            for order in open_orders
            if symbol is None or order["coin"] == symbol
        ]

        if not cancels:
            logger.info("No open orders to cancel", symbol=symbol)
            return None

        logger.info("Cancelling open orders", count=len(cancels), symbol=symbol)
        return await self.exchange.cancel_order(cancels)

    def get_all_assets(self) -> Dict[str, List[str]]:
        return self.exchange.registry.all_assets()
