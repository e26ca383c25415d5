"""
Shared fixtures: venue metadata responses and a registry loaded from them.
"""

import pytest
from unittest.mock import AsyncMock

from hlclient.exchange.exchange_config import InfoType
from hlclient.exchange.symbol_registry import SymbolRegistry


def make_perp_meta(names):
    """metaAndAssetCtxs response for the given perpetual names, in index order."""
    return [
        {"universe": [{"name": name, "szDecimals": 2, "maxLeverage": 50} for name in names]},
        [{"markPx": "1.0", "funding": "0.0001"} for _ in names],
    ]


def make_spot_meta(markets, tokens):
    """
    spotMetaAndAssetCtxs response.

    Args:
        markets: (pair name, index, base token index) tuples
        tokens: token names, positioned by token index
    """
    return [
        {
            "tokens": [{"name": name, "index": i, "szDecimals": 2} for i, name in enumerate(tokens)],
            "universe": [
                {"name": pair, "tokens": [base, 0], "index": index}
                for pair, index, base in markets
            ],
        },
        [{"markPx": "1.0"} for _ in markets],
    ]


@pytest.fixture
def perp_meta():
    return make_perp_meta(["BTC", "ETH", "SOL"])


@pytest.fixture
def spot_meta():
    return make_spot_meta(
        markets=[("PURR/USDC", 0, 1), ("@1", 1, 2), ("@107", 107, 3)],
        tokens=["USDC", "PURR", "HFUN", "HYPE"]
    )


@pytest.fixture
def metadata_fetcher(perp_meta, spot_meta):
    """Async fetcher answering the two registry metadata queries."""
    responses = {
        InfoType.PERPS_META_AND_ASSET_CTXS: perp_meta,
        InfoType.SPOT_META_AND_ASSET_CTXS: spot_meta,
    }

    async def fetch(payload):
        return responses[payload["type"]]

    return AsyncMock(side_effect=fetch)


@pytest.fixture
def registry(metadata_fetcher):
    """Registry not yet loaded."""
    return SymbolRegistry(metadata_fetcher)
