"""
Authenticated trading facade for the /exchange endpoint.

Orders reference assets by internal name; the name is mapped to its asset
index before anything is signed, and an unknown name fails right there.
"""

from typing import Any, Dict, List, Optional, Union

from .exceptions import UnknownAssetError
from .exchange_config import ActionType, ExchangeConfig
from .models import CancelRequest, ModifyRequest, OrderRequest, Signature
from .signing import (
    WalletSigner,
    float_to_wire,
    order_request_to_order_wire,
    order_wires_to_order_action
)
from .symbol_registry import SymbolRegistry
from ..utils.logger import get_logger


logger = get_logger(__name__)


def _amount_to_wire(amount: Union[float, str]) -> str:
    if isinstance(amount, str):
        return amount
    return float_to_wire(amount)


class ExchangeAPI:
    """
    Signed actions.

    L1 actions are handed to the pipeline unsigned and signed there with a
    fresh nonce. Transfer-style actions are signed here, since their
    signature covers the action fields themselves.
    """

    def __init__(
        self,
        pipeline: Any,
        registry: SymbolRegistry,
        signer: WalletSigner,
        config: ExchangeConfig,
        vault_address: Optional[str] = None
    ):
        """
        Initialize trading facade.

        Args:
            pipeline: RequestPipeline or WebSocketPostPipeline holding the same signer
            registry: Symbol registry for asset indices
            signer: Wallet signer
            config: Network configuration
            vault_address: Vault to trade on behalf of (L1 actions only)
        """
        self.pipeline = pipeline
        self.registry = registry
        self.signer = signer
        self.config = config
        self.vault_address = vault_address

    @property
    def address(self) -> str:
        return self.signer.address

    async def _asset_index(self, coin: str) -> int:
        await self.registry.ensure_ready()

        index = self.registry.asset_index(coin)
        if index is None:
            raise UnknownAssetError(coin)
        return index

    async def _send_l1(self, action: Dict[str, Any]) -> Any:
        logger.debug("Sending action", action_type=action["type"])
        return await self.pipeline.send(
            {"action": action},
            authenticated=True,
            vault_address=self.vault_address
        )

    async def _send_user_signed(self, action: Dict[str, Any], signature: Signature) -> Any:
        logger.debug("Sending user-signed action", action_type=action["type"])
        payload = {"action": action, "nonce": action["time"], "signature": signature.to_dict()}
        return await self.pipeline.send(payload, authenticated=True)

    def _user_signed_base(self, action_type: str) -> Dict[str, Any]:
        return {
            "type": action_type,
            "hyperliquidChain": self.config.chain_name,
            "signatureChainId": self.config.signature_chain_id,
        }

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def place_order(self, order: OrderRequest) -> Any:
        return await self.place_orders([order])

    async def place_orders(self, orders: List[OrderRequest], grouping: str = "na") -> Any:
        """
        Place one or more orders in a single signed action.

        Raises:
            UnknownAssetError: If any order names an unknown asset
            ValueError: If a price or size cannot be represented exactly
        """
        wires = []
        for order in orders:
            wires.append(order_request_to_order_wire(order, await self._asset_index(order.coin)))

        return await self._send_l1(order_wires_to_order_action(wires, grouping))

    async def cancel_order(self, requests: Union[CancelRequest, List[CancelRequest]]) -> Any:
        """Cancel one order or a batch of orders by venue order id."""
        if isinstance(requests, CancelRequest):
            requests = [requests]

        cancels = []
        for request in requests:
            cancels.append({"a": await self._asset_index(request.coin), "o": request.oid})

        return await self._send_l1({"type": ActionType.CANCEL, "cancels": cancels})

    async def cancel_order_by_cloid(self, coin: str, cloid: str) -> Any:
        action = {
            "type": ActionType.CANCEL_BY_CLOID,
            "cancels": [{"asset": await self._asset_index(coin), "cloid": cloid}],
        }
        return await self._send_l1(action)

    async def modify_order(self, oid: int, order: OrderRequest) -> Any:
        action = {
            "type": ActionType.MODIFY,
            "oid": oid,
            "order": order_request_to_order_wire(order, await self._asset_index(order.coin)),
        }
        return await self._send_l1(action)

    async def batch_modify_orders(self, modifies: List[ModifyRequest]) -> Any:
        wires = []
        for modify in modifies:
            index = await self._asset_index(modify.order.coin)
            wires.append({"oid": modify.oid, "order": order_request_to_order_wire(modify.order, index)})

        return await self._send_l1({"type": ActionType.BATCH_MODIFY, "modifies": wires})

    async def schedule_cancel(self, time: Optional[int] = None) -> Any:
        """
        Schedule a cancel-all at `time` (epoch ms); None clears the schedule.
        """
        action: Dict[str, Any] = {"type": ActionType.SCHEDULE_CANCEL}
        if time is not None:
            action["time"] = time
        return await self._send_l1(action)

    # ------------------------------------------------------------------
    # Margin
    # ------------------------------------------------------------------

    async def update_leverage(self, coin: str, leverage_mode: str, leverage: int) -> Any:
        """
        Args:
            coin: Internal name
            leverage_mode: "cross" or "isolated"
            leverage: Target leverage
        """
        action = {
            "type": ActionType.UPDATE_LEVERAGE,
            "asset": await self._asset_index(coin),
            "isCross": leverage_mode == "cross",
            "leverage": leverage,
        }
        return await self._send_l1(action)

    async def update_isolated_margin(self, coin: str, is_buy: bool, ntli: int) -> Any:
        action = {
            "type": ActionType.UPDATE_ISOLATED_MARGIN,
            "asset": await self._asset_index(coin),
            "isBuy": is_buy,
            "ntli": ntli,
        }
        return await self._send_l1(action)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def usd_transfer(self, destination: str, amount: Union[float, str]) -> Any:
        action = self._user_signed_base(ActionType.USD_SEND)
        action.update({
            "destination": destination,
            "amount": _amount_to_wire(amount),
            "time": self.signer.next_nonce(),
        })
        return await self._send_user_signed(action, self.signer.sign_usd_transfer_action(action))

    async def spot_transfer(self, destination: str, token: str, amount: Union[float, str]) -> Any:
        """
        Args:
            destination: Recipient address
            token: Venue token identifier, "<name>:<tokenId>"
            amount: Amount as a decimal string or number
        """
        action = self._user_signed_base(ActionType.SPOT_SEND)
        action.update({
            "destination": destination,
            "token": token,
            "amount": _amount_to_wire(amount),
            "time": self.signer.next_nonce(),
        })
        return await self._send_user_signed(action, self.signer.sign_spot_transfer_action(action))

    async def initiate_withdrawal(self, destination: str, amount: Union[float, str]) -> Any:
        action = self._user_signed_base(ActionType.WITHDRAW)
        action.update({
            "destination": destination,
            "amount": _amount_to_wire(amount),
            "time": self.signer.next_nonce(),
        })
        return await self._send_user_signed(action, self.signer.sign_withdraw_action(action))

    async def transfer_between_spot_and_perp(self, usdc: float, to_perp: bool) -> Any:
        """Move USDC between the spot and perpetual balances."""
        action = {
            "type": ActionType.SPOT_USER,
            "classTransfer": {
                "usdc": int(round(usdc * 1e6)),
                "toPerp": to_perp,
            },
        }
        return await self._send_l1(action)

    async def vault_transfer(self, vault_address: str, is_deposit: bool, usd: int) -> Any:
        action = {
            "type": ActionType.VAULT_TRANSFER,
            "vaultAddress": vault_address,
            "isDeposit": is_deposit,
            "usd": usd,
        }
        return await self._send_l1(action)

    async def set_referrer(self, code: str) -> Any:
        return await self._send_l1({"type": ActionType.SET_REFERRER, "code": code})
