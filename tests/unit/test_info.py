"""
Unit tests for the info query facades.
"""

import pytest
from unittest.mock import Mock, AsyncMock

from hlclient.exchange.info import META_SYMBOL_FIELDS, InfoAPI
from hlclient.exchange.models import MarketClass
from hlclient.exchange.symbol_registry import DEFAULT_SYMBOL_FIELDS


USER = "0x" + "bb" * 20


@pytest.fixture
def pipeline():
    pipeline = Mock()
    pipeline.send = AsyncMock(return_value={"ok": True})
    return pipeline


@pytest.fixture
def info(pipeline, registry):
    return InfoAPI(pipeline, registry, heavy_weight=20)


# ============================================================================
# General Query Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_all_mids_translated(info, pipeline, registry):
    """Test mid keys become internal names and prices numbers."""
    await registry.refresh()
    pipeline.send.return_value = {"BTC": "65000.5", "PURR/USDC": "0.2", "NEWCOIN": "1"}

    mids = await info.get_all_mids()

    assert mids == {"BTC-PERP-0": 65000.5, "PURR-SPOT-0": 0.2, "NEWCOIN": 1}
    assert registry.is_ready


@pytest.mark.asyncio
@pytest.mark.unit
async def test_raw_skips_registry(pipeline):
    """Test raw queries neither wait for the registry nor translate."""
    registry = Mock()
    registry.ensure_ready = AsyncMock()
    pipeline.send.return_value = {"BTC": "65000"}
    info = InfoAPI(pipeline, registry)

    assert await info.get_all_mids(raw=True) == {"BTC": "65000"}
    await info.get_user_open_orders(USER, raw=True)

    registry.ensure_ready.assert_not_awaited()
    registry.translate_mids.assert_not_called()
    assert pipeline.send.await_args.kwargs["translate"] is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_open_orders_request(info, pipeline, registry):
    """Test open orders use the default weight and translate the coin field."""
    await registry.refresh()
    await info.get_user_open_orders(USER)

    pipeline.send.assert_awaited_once_with(
        {"type": "openOrders", "user": USER},
        weight=None,
        translate=True,
        symbol_fields=DEFAULT_SYMBOL_FIELDS,
        forced_class=None
    )


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("method,query_type", [
    ("get_frontend_open_orders", "frontendOpenOrders"),
    ("get_user_fills", "userFills"),
    ("get_user_rate_limit", "userRateLimit"),
])
async def test_heavy_user_queries(info, pipeline, method, query_type, registry):
    """Test history-style user queries carry the heavy weight."""
    await registry.refresh()
    await getattr(info, method)(USER)

    assert pipeline.send.await_args.args[0] == {"type": query_type, "user": USER}
    assert pipeline.send.await_args.kwargs["weight"] == 20


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fills_by_time_rounds_window(info, pipeline, registry):
    """Test window bounds are rounded and the end is optional."""
    await registry.refresh()
    await info.get_user_fills_by_time(USER, 1700000000000.4, 1700000100000.6)
    assert pipeline.send.await_args.args[0] == {
        "type": "userFillsByTime",
        "user": USER,
        "startTime": 1700000000000,
        "endTime": 1700000100001,
    }

    await info.get_user_fills_by_time(USER, 1700000000000)
    assert "endTime" not in pipeline.send.await_args.args[0]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_trade_and_order_status_queries(info, pipeline, registry):
    """Test order lookups pass the ids through."""
    await registry.refresh()
    await info.get_trade_info(USER, 12345)
    assert pipeline.send.await_args.args[0] == {"type": "tradeInfo", "user": USER, "orderId": 12345}

    await info.get_order_status(USER, "0x" + "ab" * 16)
    assert pipeline.send.await_args.args[0] == {"type": "orderStatus", "user": USER, "oid": "0x" + "ab" * 16}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_l2_book_uses_venue_symbol(info, pipeline, registry):
    """Test the coin is sent as the venue symbol."""
    await registry.refresh()

    await info.get_l2_book("PURR-SPOT-0")

    assert pipeline.send.await_args.args[0] == {"type": "l2Book", "coin": "PURR/USDC"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_candle_snapshot(info, pipeline, registry):
    """Test candle requests nest under req and translate the 's' field."""
    await registry.refresh()

    await info.get_candle_snapshot("ETH-PERP-1", "15m", 1700000000000, 1700003600000)

    assert pipeline.send.await_args.args[0] == {
        "type": "candleSnapshot",
        "req": {"coin": "ETH", "interval": "15m", "startTime": 1700000000000, "endTime": 1700003600000},
    }
    assert pipeline.send.await_args.kwargs["symbol_fields"] == frozenset({"s"})


# ============================================================================
# Perpetuals Query Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_perp_meta_forces_perpetual(info, pipeline, registry):
    """Test perpetual metadata resolves names against perpetuals only."""
    await registry.refresh()
    await info.perpetuals.get_meta()

    kwargs = pipeline.send.await_args.kwargs
    assert pipeline.send.await_args.args[0] == {"type": "meta"}
    assert kwargs["symbol_fields"] == META_SYMBOL_FIELDS
    assert kwargs["forced_class"] == MarketClass.PERPETUAL


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clearinghouse_state(info, pipeline, registry):
    """Test perpetual account state is scoped to perpetuals."""
    await registry.refresh()
    await info.perpetuals.get_clearinghouse_state(USER)

    assert pipeline.send.await_args.args[0] == {"type": "clearinghouseState", "user": USER}
    assert pipeline.send.await_args.kwargs["forced_class"] == MarketClass.PERPETUAL


@pytest.mark.asyncio
@pytest.mark.unit
async def test_funding_history(info, pipeline, registry):
    """Test funding history uses the venue symbol and the heavy weight."""
    await registry.refresh()

    await info.perpetuals.get_funding_history("BTC-PERP-0", 1700000000000)

    assert pipeline.send.await_args.args[0] == {"type": "fundingHistory", "coin": "BTC", "startTime": 1700000000000}
    assert pipeline.send.await_args.kwargs["weight"] == 20


@pytest.mark.asyncio
@pytest.mark.unit
async def test_user_ledger_queries(info, pipeline, registry):
    """Test funding and ledger queries include endTime only when given."""
    await registry.refresh()
    await info.perpetuals.get_user_funding(USER, 1, 2)
    assert pipeline.send.await_args.args[0] == {"type": "userFunding", "user": USER, "startTime": 1, "endTime": 2}

    await info.perpetuals.get_user_non_funding_ledger_updates(USER, 1)
    assert pipeline.send.await_args.args[0] == {"type": "userNonFundingLedgerUpdates", "user": USER, "startTime": 1}


# ============================================================================
# Spot Query Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.unit
async def test_spot_queries_force_spot(info, pipeline, registry):
    """Test spot metadata and balances resolve names against spot only."""
    await registry.refresh()
    await info.spot.get_spot_meta()
    assert pipeline.send.await_args.kwargs["forced_class"] == MarketClass.SPOT
    assert pipeline.send.await_args.kwargs["symbol_fields"] == META_SYMBOL_FIELDS

    await info.spot.get_spot_clearinghouse_state(USER)
    assert pipeline.send.await_args.args[0] == {"type": "spotClearinghouseState", "user": USER}

    await info.spot.get_spot_meta_and_asset_ctxs()
    assert pipeline.send.await_args.args[0] == {"type": "spotMetaAndAssetCtxs"}
    assert pipeline.send.await_args.kwargs["forced_class"] == MarketClass.SPOT
