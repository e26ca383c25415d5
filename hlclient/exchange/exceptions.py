"""
Client-related exception classes.
"""


class HyperliquidError(Exception):
    """Base exception for all client errors."""
    pass


class ApiError(HyperliquidError):
    """Exception raised when the venue returns an error response."""

    def __init__(self, code: str, message: str, status_code: int = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{code}] {message}")


class TransientApiError(ApiError):
    """Exception for error responses that may succeed on retry (429, 5xx)."""
    pass


class TransportError(HyperliquidError):
    """Exception raised when no response was received (connection failure, timeout)."""
    pass


class RefreshError(HyperliquidError):
    """Exception raised when asset metadata could not be fetched or parsed."""
    pass


class RegistryIntegrityError(RefreshError):
    """Exception raised when venue metadata would produce a colliding mapping."""
    pass


class RateLimitExceededError(HyperliquidError):
    """Exception raised when a request weight exceeds the bucket capacity."""

    def __init__(self, weight: float, capacity: float):
        self.weight = weight
        self.capacity = capacity
        super().__init__(f"Requested weight {weight} exceeds capacity {capacity}")


class RequestTimeoutError(HyperliquidError):
    """Exception raised when a WebSocket post request gets no response in time."""
    pass


class ClientClosedError(HyperliquidError):
    """Exception raised for requests abandoned because the client closed."""
    pass


class WebSocketError(HyperliquidError):
    """Exception raised for WebSocket-related errors."""
    pass


class AuthenticationRequiredError(HyperliquidError):
    """Exception raised when a signed action is attempted without a signer."""
    pass


class UnknownAssetError(HyperliquidError):
    """Exception raised when an internal name has no asset index."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Unknown asset: {asset}")
