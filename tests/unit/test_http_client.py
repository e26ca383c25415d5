"""
Unit tests for the REST transport and request pipeline.
"""

import pytest
import asyncio
import aiohttp
from unittest.mock import Mock, AsyncMock, MagicMock

from hlclient.exchange.exceptions import (
    ApiError,
    AuthenticationRequiredError,
    ClientClosedError,
    RateLimitExceededError,
    TransientApiError,
    TransportError
)
from hlclient.exchange.exchange_config import TESTNET_CONFIG
from hlclient.exchange.http_client import RequestPipeline, RestTransport, raise_for_response
from hlclient.exchange.rate_limiter import RateLimiter


def make_session(status=200, text="", error=None):
    """Mock aiohttp session whose request() yields one response."""
    session = MagicMock()
    session.closed = False

    if error is not None:
        session.request.side_effect = error
        return session

    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    session.request.return_value.__aenter__.return_value = response
    return session


@pytest.fixture
def transport():
    transport = Mock(spec=RestTransport)
    transport.post = AsyncMock(return_value=(200, {"status": "ok"}))
    transport.close = AsyncMock()
    return transport


@pytest.fixture
def rate_limiter():
    limiter = Mock(spec=RateLimiter)
    limiter.acquire = AsyncMock()
    return limiter


@pytest.fixture
def signer():
    signer = Mock()
    signer.build_l1_payload = Mock(return_value={
        "action": {"type": "cancel"},
        "nonce": 1700000000000,
        "signature": {"r": "0x1", "s": "0x2", "v": 27},
    })
    return signer


@pytest.fixture
def pipeline(transport, rate_limiter):
    return RequestPipeline(TESTNET_CONFIG, transport, rate_limiter)


# ============================================================================
# Transport Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_decodes_json():
    """Test JSON bodies are decoded."""
    session = make_session(200, '{"universe": []}')
    transport = RestTransport("https://api.example/", session=session)

    status, body = await transport.post("/info", {"type": "meta"})

    assert status == 200
    assert body == {"universe": []}
    session.request.assert_called_once_with("POST", "https://api.example/info", json={"type": "meta"})


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_keeps_non_json_text():
    """Test non-JSON bodies are returned as text."""
    transport = RestTransport("https://api.example", session=make_session(502, "Bad Gateway"))

    assert await transport.post("/info", {}) == (502, "Bad Gateway")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_empty_body():
    """Test an empty body decodes to None."""
    transport = RestTransport("https://api.example", session=make_session(200, ""))

    assert await transport.get("/health") == (200, None)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_connection_failure():
    """Test client errors surface as TransportError."""
    session = make_session(error=aiohttp.ClientConnectionError("refused"))
    transport = RestTransport("https://api.example", session=session)

    with pytest.raises(TransportError):
        await transport.post("/info", {})


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_does_not_close_external_session():
    """Test a caller-owned session is left open."""
    session = make_session()
    session.close = AsyncMock()
    transport = RestTransport("https://api.example", session=session)

    await transport.close()

    session.close.assert_not_awaited()


# ============================================================================
# Error Mapping Tests
# ============================================================================

@pytest.mark.unit
def test_raise_for_response_success():
    """Test 2xx bodies without an error envelope pass."""
    raise_for_response(200, {"status": "ok"})
    raise_for_response(200, [1, 2])
    raise_for_response(204, None)


@pytest.mark.unit
def test_raise_for_response_error_envelope():
    """Test a 200 with status 'err' is a venue rejection."""
    with pytest.raises(ApiError) as exc_info:
        raise_for_response(200, {"status": "err", "response": "Insufficient margin"})

    assert exc_info.value.code == "EXCHANGE_ERROR"
    assert "Insufficient margin" in exc_info.value.message


@pytest.mark.unit
def test_raise_for_response_structured_error():
    """Test code and message come from the error body."""
    with pytest.raises(ApiError) as exc_info:
        raise_for_response(422, {"code": "BAD_ASSET", "message": "asset not found"})

    error = exc_info.value
    assert not isinstance(error, TransientApiError)
    assert error.code == "BAD_ASSET"
    assert error.message == "asset not found"
    assert error.status_code == 422


@pytest.mark.unit
@pytest.mark.parametrize("status", [429, 500, 503])
def test_raise_for_response_transient(status):
    """Test throttling and server errors are marked transient."""
    with pytest.raises(TransientApiError) as exc_info:
        raise_for_response(status, "Service Unavailable")

    assert exc_info.value.code == "UNKNOWN_ERROR"
    assert exc_info.value.message == "Service Unavailable"


# ============================================================================
# Pipeline Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_info_request_defaults(pipeline, transport, rate_limiter):
    """Test queries go to /info with the default weight."""
    result = await pipeline.send({"type": "allMids"})

    assert result == {"status": "ok"}
    rate_limiter.acquire.assert_awaited_once_with(2)
    transport.post.assert_awaited_once_with("/info", {"type": "allMids"})


@pytest.mark.asyncio
@pytest.mark.unit
async def test_explicit_weight_and_endpoint(pipeline, transport, rate_limiter):
    """Test weight and endpoint overrides are honoured."""
    await pipeline.send({"type": "userFills"}, weight=20, endpoint="/custom")

    rate_limiter.acquire.assert_awaited_once_with(20)
    transport.post.assert_awaited_once_with("/custom", {"type": "userFills"})


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authenticated_without_signer_fails_before_network(pipeline, transport, rate_limiter):
    """Test signed requests need a signer and fail with no network activity."""
    with pytest.raises(AuthenticationRequiredError):
        await pipeline.send({"action": {"type": "cancel"}}, authenticated=True)

    rate_limiter.acquire.assert_not_awaited()
    transport.post.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authenticated_request_is_signed(transport, rate_limiter, signer):
    """Test unsigned actions are signed and routed to /exchange."""
    pipeline = RequestPipeline(TESTNET_CONFIG, transport, rate_limiter, signer=signer)

    await pipeline.send({"action": {"type": "cancel"}}, authenticated=True, vault_address="0xvault")

    signer.build_l1_payload.assert_called_once_with({"type": "cancel"}, "0xvault")
    rate_limiter.acquire.assert_awaited_once_with(1)
    endpoint, body = transport.post.await_args.args
    assert endpoint == "/exchange"
    assert body["signature"] == {"r": "0x1", "s": "0x2", "v": 27}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_presigned_payload_is_not_resigned(transport, rate_limiter, signer):
    """Test a payload that already carries a signature is sent as-is."""
    pipeline = RequestPipeline(TESTNET_CONFIG, transport, rate_limiter, signer=signer)
    payload = {"action": {"type": "usdSend"}, "nonce": 5, "signature": {"r": "0x", "s": "0x", "v": 28}}

    await pipeline.send(payload, authenticated=True)

    signer.build_l1_payload.assert_not_called()
    transport.post.assert_awaited_once_with("/exchange", payload)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_api_error_propagates(pipeline, transport):
    """Test an error response reaches the caller as ApiError."""
    transport.post.return_value = (400, {"code": "INVALID", "message": "bad request"})

    with pytest.raises(ApiError) as exc_info:
        await pipeline.send({"type": "meta"})

    assert exc_info.value.code == "INVALID"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transport_error_propagates_without_retry(pipeline, transport):
    """Test transport failures are not retried by the pipeline."""
    transport.post.side_effect = TransportError("timeout")

    with pytest.raises(TransportError):
        await pipeline.send({"type": "meta"})

    assert transport.post.await_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_oversized_weight_fails(transport):
    """Test a weight above limiter capacity fails before dispatch."""
    pipeline = RequestPipeline(TESTNET_CONFIG, transport, RateLimiter(capacity=10))

    with pytest.raises(RateLimitExceededError):
        await pipeline.send({"type": "meta"}, weight=11)

    transport.post.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_translated_response(transport, rate_limiter):
    """Test translate=True runs the response through the registry."""
    registry = Mock()
    registry.translate_embedded = Mock(return_value=[{"coin": "BTC-PERP-0"}])
    transport.post.return_value = (200, [{"coin": "BTC"}])
    pipeline = RequestPipeline(TESTNET_CONFIG, transport, rate_limiter, registry=registry)

    result = await pipeline.send({"type": "openOrders"}, translate=True, symbol_fields=["coin"])

    assert result == [{"coin": "BTC-PERP-0"}]
    registry.translate_embedded.assert_called_once_with([{"coin": "BTC"}], ["coin"], None)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_untranslated_response_is_raw(transport, rate_limiter):
    """Test responses are returned untouched without translate."""
    registry = Mock()
    transport.post.return_value = (200, [{"coin": "BTC"}])
    pipeline = RequestPipeline(TESTNET_CONFIG, transport, rate_limiter, registry=registry)

    assert await pipeline.send({"type": "openOrders"}) == [{"coin": "BTC"}]
    registry.translate_embedded.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_closed_pipeline_rejects(pipeline, transport):
    """Test requests after close fail with ClientClosedError."""
    await pipeline.close()

    with pytest.raises(ClientClosedError):
        await pipeline.send({"type": "meta"})

    transport.close.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_close_during_rate_limit_wait(pipeline, transport, rate_limiter):
    """Test a request held by the rate limiter is not sent once the pipeline closes."""
    release = asyncio.Event()
    entered = asyncio.Event()

    async def held_acquire(weight):
        entered.set()
        await release.wait()

    rate_limiter.acquire.side_effect = held_acquire

    task = asyncio.create_task(pipeline.send({"type": "meta"}))
    await asyncio.wait_for(entered.wait(), timeout=1.0)

    await pipeline.close()
    release.set()

    with pytest.raises(ClientClosedError):
        await task
    transport.post.assert_not_awaited()
