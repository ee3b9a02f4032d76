"""Fixtures for engine and service tests: fake clients and raw listings."""

import json
from unittest.mock import MagicMock

import pytest

from polyscout.clients.gamma import GammaClient
from polyscout.clients.polymarket import PolymarketClient
from polyscout.clients.positions import PositionsClient
from polyscout.config import Settings
from polyscout.models import BalanceAllowance
from polyscout.session import Session

CONDITION_ID = "0x" + "ab" * 32


def discovery_listing(
    listing_id: str,
    question: str,
    volume: float = 500.0,
    liquidity: float = 1000.0,
    end_date: str = "2026-12-31T00:00:00Z",
    ticker: str = "",
    condition_id: str = CONDITION_ID,
    **extra,
) -> dict:
    """Raw discovery-API record, with outcomes JSON-encoded like upstream."""
    record = {
        "id": listing_id,
        "question": question,
        "conditionId": condition_id,
        "outcomes": json.dumps(["Yes", "No"]),
        "volume24hr": str(volume),
        "liquidityNum": liquidity,
        "endDateIso": end_date,
        "events": [{"id": f"e-{listing_id}", "title": f"Event {listing_id}", "ticker": ticker}],
    }
    record.update(extra)
    return record


def trading_detail(condition_id: str = CONDITION_ID, question: str = "Will the Lakers win?") -> dict:
    """Raw trading-API market record."""
    return {
        "condition_id": condition_id,
        "question": question,
        "end_date_iso": "2026-06-30T00:00:00Z",
        "tokens": [
            {"token_id": "111", "outcome": "Yes", "price": 0.6},
            {"token_id": "222", "outcome": "No", "price": 0.4},
        ],
        "tags": ["Sports"],
    }


@pytest.fixture
def listing():
    return discovery_listing


@pytest.fixture
def detail():
    return trading_detail


@pytest.fixture
def gamma():
    gamma = MagicMock(spec=GammaClient)
    gamma.fetch_listings.return_value = []
    return gamma


@pytest.fixture
def clob():
    """Fake trading client with a funded wallet."""
    clob = MagicMock(spec=PolymarketClient)
    clob.can_trade = True
    clob.wallet_address = "0xwallet"
    clob.fetch_listings.return_value = []
    clob.fetch_market_detail.return_value = trading_detail()
    clob.get_collateral_balance.return_value = BalanceAllowance(balance=100.0, allowance=100.0)
    clob.get_token_balance.return_value = BalanceAllowance(balance=50.0, allowance=50.0)
    clob.post_limit_order.return_value = "0xorder"
    clob.post_market_order.return_value = "0xmarket"
    clob.get_open_orders.return_value = []
    return clob


@pytest.fixture
def positions():
    positions = MagicMock(spec=PositionsClient)
    positions.fetch_positions.return_value = []
    return positions


@pytest.fixture
def session(gamma, clob, positions):
    return Session(Settings(), gamma, clob, positions)
