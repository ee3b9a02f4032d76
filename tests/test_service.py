"""Tests for caller-facing operations, run against fake clients."""

import pytest

from polyscout import service
from polyscout.exceptions import ErrorKind, InvalidParametersError, NotConnectedError, NotFoundError
from polyscout.models import BalanceAllowance, OrderKind, OrderState, Position, Side

CONDITION_ID = "0x" + "ab" * 32


@pytest.fixture
def sports_listings(listing):
    return [
        listing("lakers", "Will the Lakers win the NBA Finals?", volume=5000),
        listing("btc", "Will Bitcoin close above $150k this year?", volume=9000),
        listing("rain", "Will it rain in Seattle on New Year's Day?", volume=700),
        listing("celtics", "Will the Celtics reach the NBA conference semis?", volume=8000),
        listing("oscars", "Who will win the Best Picture award?", volume=400),
    ]


@pytest.mark.asyncio
class TestSearchMarkets:
    """Test cases for search_markets()."""

    async def test_basketball_by_volume(self, session, gamma, sports_listings):
        gamma.fetch_listings.return_value = sports_listings

        results = await service.search_markets(session, "basketball", limit=10, sort_by="volume")

        assert [m.id for m in results] == ["celtics", "lakers"]
        assert all(m.relevance_score > 0.1 for m in results)
        listing_filter = gamma.fetch_listings.await_args.args[0]
        assert listing_filter.tags == ["Sports"]
        assert listing_filter.limit == 30
        assert listing_filter.order == "volume24hr"

    async def test_limit_caps_results(self, session, gamma, sports_listings):
        gamma.fetch_listings.return_value = sports_listings
        results = await service.search_markets(session, "nba", limit=1, sort_by="volume")
        assert [m.id for m in results] == ["celtics"]

    async def test_falls_back_to_trading_listings(self, session, gamma, clob, detail):
        gamma.fetch_listings.return_value = []
        clob.fetch_listings.return_value = [dict(detail(question="Will the Lakers win the NBA title?"), volume=5000)]

        results = await service.search_markets(session, "lakers")

        assert [m.condition_id for m in results] == [CONDITION_ID]
        clob.fetch_listings.assert_awaited_once_with(30)

    async def test_outage_is_empty(self, session, gamma, clob):
        gamma.fetch_listings.return_value = []
        clob.fetch_listings.return_value = []
        assert await service.search_markets(session, "anything") == []

    async def test_conservative_drops_thin_markets(self, session, gamma, sports_listings):
        gamma.fetch_listings.return_value = sports_listings
        results = await service.search_markets(session, "", risk_tolerance="conservative")
        assert [m.id for m in results] == ["lakers", "btc", "celtics"]

    async def test_bad_limit(self, session):
        with pytest.raises(InvalidParametersError):
            await service.search_markets(session, "nba", limit=0)

    async def test_bad_sort(self, session):
        with pytest.raises(InvalidParametersError):
            await service.search_markets(session, "nba", sort_by="hot")


@pytest.mark.asyncio
class TestSearchByInterests:
    """Test cases for search_by_interests()."""

    async def test_merges_expanded_queries(self, session, gamma, sports_listings):
        gamma.fetch_listings.return_value = sports_listings

        results = await service.search_by_interests(session, ["basketball"], knowledge_level="beginner")

        # "basketball" and "sports" both hit the same two markets
        assert gamma.fetch_listings.await_count == 2
        assert [m.id for m in results] == ["lakers", "celtics"]

    async def test_sorted_by_volume(self, session, gamma, sports_listings):
        gamma.fetch_listings.return_value = sports_listings
        results = await service.search_by_interests(session, ["basketball"], sort_by="volume")
        assert [m.id for m in results] == ["celtics", "lakers"]

    async def test_failing_query_is_skipped(self, session, gamma, sports_listings):
        async def fetch_listings(listing_filter):
            if "Politics" in listing_filter.tags:
                raise ValueError("unexpected payload")
            return sports_listings

        gamma.fetch_listings.side_effect = fetch_listings

        results = await service.search_by_interests(session, ["nba", "election"])

        assert sorted(m.id for m in results) == ["celtics", "lakers"]
        assert gamma.fetch_listings.await_count == 6

    async def test_requires_an_interest(self, session):
        with pytest.raises(InvalidParametersError):
            await service.search_by_interests(session, ["  "])


@pytest.mark.asyncio
class TestGetMarket:
    """Test cases for get_market()."""

    async def test_by_condition_id(self, session, gamma, clob):
        detail = await service.get_market(session, CONDITION_ID)

        assert detail.market.condition_id == CONDITION_ID
        assert [t.outcome for t in detail.tokens] == ["Yes", "No"]
        clob.fetch_market_detail.assert_awaited_once_with(CONDITION_ID)
        gamma.fetch_listing.assert_not_awaited()

    async def test_by_discovery_id_merges_stats(self, session, gamma, clob, listing):
        gamma.fetch_listing.return_value = listing("42", "Will the Lakers win?", volume=700, liquidity=2000)

        detail = await service.get_market(session, "42")

        clob.fetch_market_detail.assert_awaited_once_with(CONDITION_ID)
        assert detail.market.volume_24hr == 700.0
        assert detail.market.liquidity == 2000.0
        assert detail.market.event_title == "Event 42"
        assert detail.market.category == "Sports"
        assert detail.token_for("Yes").token_id == "111"

    async def test_listing_without_condition_id(self, session, gamma, clob, listing):
        gamma.fetch_listing.return_value = listing("42", "Q?", condition_id="")
        with pytest.raises(NotFoundError):
            await service.get_market(session, "42")
        clob.fetch_market_detail.assert_not_awaited()

    async def test_untradeable_listing(self, session, gamma, listing):
        gamma.fetch_listing.return_value = listing("42", "Q?", condition_id="abc123")
        with pytest.raises(InvalidParametersError, match="not tradeable"):
            await service.get_market(session, "42")

    async def test_not_found_propagates(self, session, clob):
        clob.fetch_market_detail.side_effect = NotFoundError(f"market {CONDITION_ID}")
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_market(session, CONDITION_ID)
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_blank_id(self, session):
        with pytest.raises(InvalidParametersError):
            await service.get_market(session, " ")


@pytest.mark.asyncio
class TestOrders:
    """Test cases for order placement."""

    async def test_buy_beyond_balance_is_not_posted(self, session, clob):
        clob.get_collateral_balance.return_value = BalanceAllowance(balance=10.0, allowance=10.0)

        response = await service.create_buy_order(session, CONDITION_ID, "Yes", price=0.65, size=20)

        assert not response.success
        assert response.state is OrderState.UNVALIDATED
        assert response.error_kind is ErrorKind.VALIDATION_FAILED
        assert response.requirements.max_order_size == pytest.approx(10.0)
        assert response.to_dict()["validationDetails"]["canPlace"] is False
        clob.post_limit_order.assert_not_awaited()

    async def test_buy_posts_outcome_token(self, session, clob):
        response = await service.create_buy_order(session, CONDITION_ID, "Yes", price=0.65, size=20)

        assert response.success
        assert response.order_id == "0xorder"
        assert response.order_details.total_value == pytest.approx(13.0)
        assert clob.post_limit_order.await_args.kwargs["token_id"] == "111"

    async def test_sell_resolves_other_outcome(self, session, clob):
        response = await service.create_sell_order(session, CONDITION_ID, "no", price=0.4, size=10)
        assert response.success
        clob.get_token_balance.assert_awaited_once_with("222")

    async def test_unknown_outcome(self, session, clob):
        with pytest.raises(InvalidParametersError, match="Available outcomes"):
            await service.create_buy_order(session, CONDITION_ID, "Maybe", price=0.5, size=10)
        clob.post_limit_order.assert_not_awaited()

    async def test_bad_price_checked_before_fetch(self, session, clob):
        with pytest.raises(InvalidParametersError):
            await service.create_buy_order(session, CONDITION_ID, "Yes", price=1.2, size=10)
        clob.fetch_market_detail.assert_not_awaited()

    async def test_market_sell(self, session, clob):
        response = await service.create_market_order(session, CONDITION_ID, "No", "sell", size=5)
        assert response.order_id == "0xmarket"
        assert response.order_details.order_type is OrderKind.MARKET
        clob.post_market_order.assert_awaited_once_with(token_id="222", side=Side.SELL, amount=5.0, price=0.0)

    async def test_gtd(self, session, clob):
        response = await service.create_gtd_order(
            session, CONDITION_ID, "Yes", "BUY", price=0.3, size=10, expiration_minutes=30
        )
        assert response.success
        assert response.order_details.expiration is not None
        assert clob.post_limit_order.await_args.kwargs["kind"] is OrderKind.GTD

    async def test_prepare_order(self, session):
        preview = await service.prepare_order(session, CONDITION_ID, "buy", price=0.65, size=20)

        assert preview.token.token_id == "111"
        assert preview.order_value == pytest.approx(13.0)
        assert preview.requirements.can_place
        assert preview.to_dict()["side"] == "BUY"

    async def test_bad_side(self, session):
        with pytest.raises(InvalidParametersError):
            await service.prepare_order(session, CONDITION_ID, "hold", price=0.5, size=1)


@pytest.mark.asyncio
class TestAccount:
    """Test cases for positions and open orders."""

    async def test_positions_default_to_wallet(self, session, positions):
        await service.get_positions(session)
        positions.fetch_positions.assert_awaited_once_with("0xwallet", None)

    async def test_positions_without_wallet(self, session, clob):
        clob.wallet_address = None
        with pytest.raises(NotConnectedError):
            await service.get_positions(session)

    async def test_explicit_user(self, session, clob, positions):
        clob.wallet_address = None
        await service.get_positions(session, user="0xother")
        positions.fetch_positions.assert_awaited_once_with("0xother", None)

    async def test_open_orders(self, session, clob):
        assert await service.get_open_orders(session) == []
        clob.get_open_orders.assert_awaited_once()


class TestSummary:
    """Test cases for summarize_positions()."""

    def test_totals(self):
        summary = service.summarize_positions([
            Position(title="A", size=10, current_value=6.0, cash_pnl=1.5),
            Position(title="B", size=5, current_value=1.0, cash_pnl=-2.0, redeemable=True),
        ])
        assert summary.total_value == 7.0
        assert summary.total_pnl == -0.5
        assert summary.winning_positions == 1
        assert summary.redeemable_positions == 1
        assert summary.position_count == 2

    def test_empty(self):
        assert service.summarize_positions([]).position_count == 0


@pytest.mark.asyncio
class TestMarketsByEvents:
    """Test cases for get_markets_by_events()."""

    async def test_grouping(self, session, gamma, listing):
        gamma.fetch_listings.return_value = [
            listing("1", "Q1?", events=[{"title": "NBA Finals"}]),
            listing("2", "Q2?", events=[{"title": "NBA Finals"}]),
            listing("3", "Q3?", events=[], category="Crypto"),
            listing("4", "Q4?", events=[]),
        ]

        groups = await service.get_markets_by_events(session)

        assert list(groups) == ["NBA Finals", "Crypto", service.OTHER_MARKETS]
        assert [m.id for m in groups["NBA Finals"]] == ["1", "2"]

    async def test_group_limit(self, session, gamma, listing):
        gamma.fetch_listings.return_value = [listing(str(i), f"Q{i}?") for i in range(5)]
        groups = await service.get_markets_by_events(session, limit=2)
        assert list(groups) == ["Event 0", "Event 1"]
