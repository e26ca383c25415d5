"""
Request signing for authenticated actions.

Two signature schemes are used by the venue:
- L1 actions (orders, cancels, leverage...) sign a "phantom agent" whose
  connectionId is the keccak hash of the msgpack-encoded action, nonce and
  vault address.
- User-signed actions (transfers, withdrawals) sign the action fields
  directly as EIP-712 typed data.

Also holds the order wire encoding that feeds the L1 hash, since any
formatting difference changes the signed bytes.
"""

import threading
import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import msgpack
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_hex

from .exchange_config import ActionType, ExchangeConfig
from .models import OrderRequest, Signature


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

EIP712_DOMAIN_TYPES = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AGENT_TYPES = [
    {"name": "source", "type": "string"},
    {"name": "connectionId", "type": "bytes32"},
]

USD_SEND_TYPES = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination", "type": "string"},
    {"name": "amount", "type": "string"},
    {"name": "time", "type": "uint64"},
]

SPOT_SEND_TYPES = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination", "type": "string"},
    {"name": "token", "type": "string"},
    {"name": "amount", "type": "string"},
    {"name": "time", "type": "uint64"},
]

WITHDRAW_TYPES = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination", "type": "string"},
    {"name": "amount", "type": "string"},
    {"name": "time", "type": "uint64"},
]


# ============================================================================
# WIRE ENCODING
# ============================================================================

def float_to_wire(x: float) -> str:
    """
    Format a price or size the way the venue hashes it.

    At most 8 decimals, no trailing zeros, no negative zero.

    Raises:
        ValueError: If `x` cannot be represented with 8 decimals
    """
    rounded = f"{x:.8f}"
    if abs(float(rounded) - x) >= 1e-12:
        raise ValueError(f"float_to_wire causes rounding: {x}")
    if rounded == "-0.00000000":
        rounded = "0.00000000"
    normalized = Decimal(rounded).normalize()
    return f"{normalized:f}"


def order_type_to_wire(order_type: Dict[str, Any]) -> Dict[str, Any]:
    if "limit" in order_type:
        return {"limit": order_type["limit"]}
    if "trigger" in order_type:
        trigger = order_type["trigger"]
        return {
            "trigger": {
                "isMarket": trigger["isMarket"],
                "triggerPx": float_to_wire(trigger["triggerPx"]),
                "tpsl": trigger["tpsl"],
            }
        }
    raise ValueError(f"Invalid order type: {order_type}")


def order_request_to_order_wire(order: OrderRequest, asset: int) -> Dict[str, Any]:
    """Encode an order for asset index `asset` (key order is hashed)."""
    wire = {
        "a": asset,
        "b": order.is_buy,
        "p": float_to_wire(order.limit_px),
        "s": float_to_wire(order.sz),
        "r": order.reduce_only,
        "t": order_type_to_wire(order.order_type),
    }
    if order.cloid is not None:
        wire["c"] = order.cloid
    return wire


def order_wires_to_order_action(order_wires: List[Dict[str, Any]], grouping: str = "na") -> Dict[str, Any]:
    return {
        "type": ActionType.ORDER,
        "orders": order_wires,
        "grouping": grouping,
    }


def action_hash(action: Dict[str, Any], vault_address: Optional[str], nonce: int) -> bytes:
    data = msgpack.packb(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01" + bytes.fromhex(vault_address[2:] if vault_address.startswith("0x") else vault_address)
    return keccak(data)


# ============================================================================
# NONCES
# ============================================================================

class NonceManager:
    """
    Strictly increasing millisecond nonces for one signer.

    Two requests issued within the same millisecond get consecutive values.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last = 0
        self._lock = threading.Lock()

    def next_nonce(self) -> int:
        with self._lock:
            nonce = max(self._clock(), self._last + 1)
            self._last = nonce
            return nonce


# ============================================================================
# SIGNER
# ============================================================================

class WalletSigner:
    """
    Signs actions with a local private key.

    Signatures are produced by eth_account; callers only see the
    {r, s, v} wire shape.
    """

    def __init__(self, private_key: str, config: ExchangeConfig, nonces: Optional[NonceManager] = None):
        """
        Initialize signer.

        Args:
            private_key: Hex private key, with or without 0x prefix
            config: Network configuration (selects phantom agent source and chain)
            nonces: Nonce source (one per wallet)

        Raises:
            ValueError: If the private key is invalid
        """
        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        self._account = Account.from_key(key)
        self.config = config
        self.nonces = nonces or NonceManager()

    @property
    def address(self) -> str:
        return self._account.address

    def next_nonce(self) -> int:
        return self.nonces.next_nonce()

    def _sign_typed_data(self, typed_data: Dict[str, Any]) -> Signature:
        signed = self._account.sign_message(encode_typed_data(full_message=typed_data))
        return Signature(r=to_hex(signed.r), s=to_hex(signed.s), v=signed.v)

    def sign_l1_action(
        self,
        action: Dict[str, Any],
        nonce: int,
        vault_address: Optional[str] = None
    ) -> Signature:
        """Sign an exchange action via its phantom agent."""
        phantom_agent = {
            "source": self.config.source,
            "connectionId": action_hash(action, vault_address, nonce),
        }
        typed_data = {
            "domain": {
                "chainId": 1337,
                "name": "Exchange",
                "verifyingContract": ZERO_ADDRESS,
                "version": "1",
            },
            "types": {
                "Agent": AGENT_TYPES,
                "EIP712Domain": EIP712_DOMAIN_TYPES,
            },
            "primaryType": "Agent",
            "message": phantom_agent,
        }
        return self._sign_typed_data(typed_data)

    def sign_user_signed_action(
        self,
        action: Dict[str, Any],
        payload_types: List[Dict[str, str]],
        primary_type: str
    ) -> Signature:
        """Sign a transfer-style action as EIP-712 typed data."""
        typed_data = {
            "domain": {
                "name": "HyperliquidSignTransaction",
                "version": "1",
                "chainId": int(action["signatureChainId"], 16),
                "verifyingContract": ZERO_ADDRESS,
            },
            "types": {
                primary_type: payload_types,
                "EIP712Domain": EIP712_DOMAIN_TYPES,
            },
            "primaryType": primary_type,
            "message": {f["name"]: action[f["name"]] for f in payload_types},
        }
        return self._sign_typed_data(typed_data)

    def sign_usd_transfer_action(self, action: Dict[str, Any]) -> Signature:
        return self.sign_user_signed_action(action, USD_SEND_TYPES, "HyperliquidTransaction:UsdSend")

    def sign_spot_transfer_action(self, action: Dict[str, Any]) -> Signature:
        return self.sign_user_signed_action(action, SPOT_SEND_TYPES, "HyperliquidTransaction:SpotSend")

    def sign_withdraw_action(self, action: Dict[str, Any]) -> Signature:
        return self.sign_user_signed_action(action, WITHDRAW_TYPES, "HyperliquidTransaction:Withdraw")

    def build_l1_payload(
        self,
        action: Dict[str, Any],
        vault_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Attach a fresh nonce and signature to an L1 action."""
        nonce = self.next_nonce()
        signature = self.sign_l1_action(action, nonce, vault_address)
        payload = {"action": action, "nonce": nonce, "signature": signature.to_dict()}
        if vault_address is not None:
            payload["vaultAddress"] = vault_address
        return payload
