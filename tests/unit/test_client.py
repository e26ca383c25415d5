"""
Unit tests for client construction and lifecycle.
"""

import pytest
from unittest.mock import AsyncMock, patch

from eth_account import Account

from hlclient import AuthenticatedHyperliquidClient, HyperliquidClient, NetworkType, create_client
from hlclient.exchange.exceptions import (
    AuthenticationRequiredError,
    ClientClosedError,
    RefreshError,
    TransportError
)
from hlclient.exchange.exchange_config import TESTNET_CONFIG


PRIVATE_KEY = "0x" + "11" * 32


# ============================================================================
# Construction Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_public_client_has_no_trading():
    """Test the read-only client refuses trading facades."""
    client = HyperliquidClient(network=NetworkType.TESTNET)

    assert client.is_authenticated is False
    assert client.config is TESTNET_CONFIG
    with pytest.raises(AuthenticationRequiredError):
        client.exchange
    with pytest.raises(AuthenticationRequiredError):
        client.custom

    await client.close()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_public_client_shares_one_registry():
    """Test every component translates through the same registry."""
    client = HyperliquidClient(network=NetworkType.TESTNET)

    assert client.pipeline.registry is client.registry
    assert client.info.registry is client.registry
    assert client.info.perpetuals.registry is client.registry
    assert client.subscriptions.registry is client.registry
    assert client.ws_post.registry is client.registry

    await client.close()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_client_variants():
    """Test create_client picks the variant from the credentials."""
    public = create_client(network=NetworkType.TESTNET)
    private = create_client(PRIVATE_KEY, network=NetworkType.TESTNET)

    assert type(public) is HyperliquidClient
    assert isinstance(private, AuthenticatedHyperliquidClient)
    assert private.is_authenticated is True
    assert private.address == Account.from_key(PRIVATE_KEY).address
    assert private.exchange.address == private.address
    assert private.custom.exchange is private.exchange

    await public.close()
    await private.close()


@pytest.mark.unit
def test_invalid_private_key():
    """Test a malformed key is rejected at construction."""
    with pytest.raises(ValueError):
        AuthenticatedHyperliquidClient("0x1234", network=NetworkType.TESTNET)


# ============================================================================
# Lifecycle Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_start_loads_registry(metadata_fetcher):
    """Test start performs the first load and exposes the asset maps."""
    client = HyperliquidClient(network=NetworkType.TESTNET)
    client.registry._fetch_metadata = metadata_fetcher

    async with client:
        assert client.registry.is_ready
        assert client.get_asset_index("PURR-SPOT-0") == 10000
        assert client.get_internal_name("BTC-0") == "BTC-PERP-0"
        assert "ETH-PERP-1" in client.get_all_assets()["perp"]

        # Idempotent
        await client.start()
        assert metadata_fetcher.await_count == 2

    with pytest.raises(ClientClosedError):
        await client.pipeline.send({"type": "meta"})


@pytest.mark.asyncio
@pytest.mark.unit
async def test_start_retries_initial_load(perp_meta, spot_meta):
    """Test a failing first load is retried before giving up."""
    client = HyperliquidClient(network=NetworkType.TESTNET)
    attempts = []

    async def flaky_fetch(payload):
        attempts.append(payload["type"])
        if len(attempts) <= 2:
            raise TransportError("connection reset")
        return perp_meta if payload["type"] == "metaAndAssetCtxs" else spot_meta

    client.registry._fetch_metadata = flaky_fetch

    with patch("hlclient.utils.retry.asyncio.sleep", new=AsyncMock()):
        await client.start()

    assert client.registry.is_ready
    await client.close()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_start_gives_up():
    """Test start raises once every attempt failed."""
    client = HyperliquidClient(network=NetworkType.TESTNET)
    client.registry._fetch_metadata = AsyncMock(side_effect=TransportError("down"))

    with patch("hlclient.utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(RefreshError):
            await client.start()

    assert client.registry.is_ready is False
    await client.close()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_close_is_idempotent():
    """Test close can be called twice."""
    client = HyperliquidClient(network=NetworkType.TESTNET)

    await client.close()
    await client.close()

    assert client.subscriptions.active_subscriptions == []
