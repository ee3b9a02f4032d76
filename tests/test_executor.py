"""Tests for order execution."""

import pytest

from polyscout.engine.executor import (
    EXPIRATION_PAD_SECONDS,
    OrderExecutor,
    OrderIntent,
    check_order_values,
    compute_expiration,
)
from polyscout.exceptions import (
    ErrorKind,
    ExchangeRejectedError,
    InsufficientBalanceError,
    InvalidParametersError,
)
from polyscout.models import BalanceAllowance, OrderKind, OrderState, Side

CONDITION_ID = "0x" + "ab" * 32


def make_intent(**overrides) -> OrderIntent:
    values = dict(condition_id=CONDITION_ID, token_id="111", side=Side.BUY, price=0.5, size=10.0)
    values.update(overrides)
    return OrderIntent(**values)


class TestExpiration:
    """Test cases for compute_expiration()."""

    def test_window(self):
        now = 1_700_000_000.4
        expiration = compute_expiration(5, now)
        assert int(now) + EXPIRATION_PAD_SECONDS <= expiration <= int(now) + EXPIRATION_PAD_SECONDS + 5 * 60 + 1
        assert expiration == 1_700_000_000 + 60 + 300


class TestOrderValues:
    """Test cases for check_order_values()."""

    @pytest.mark.parametrize("price", [0.0, 0.005, 0.995, 1.0, float("nan"), None])
    def test_limit_price_bounds(self, price):
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.LIMIT, Side.BUY, price=price, size=10)

    @pytest.mark.parametrize("price", [0.01, 0.5, 0.99])
    def test_limit_price_accepted(self, price):
        check_order_values(OrderKind.LIMIT, Side.SELL, price=price, size=1)

    def test_limit_min_size(self):
        with pytest.raises(InvalidParametersError, match="Size must be at least 1"):
            check_order_values(OrderKind.LIMIT, Side.BUY, price=0.5, size=0.5)

    @pytest.mark.parametrize("minutes", [None, 0, -5, 1.5, True])
    def test_gtd_needs_positive_minutes(self, minutes):
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.GTD, Side.BUY, price=0.5, size=10, expiration_minutes=minutes)

    def test_market_buy(self):
        check_order_values(OrderKind.MARKET, Side.BUY, amount=25.0)
        check_order_values(OrderKind.MARKET, Side.BUY, amount=25.0, price=1.0)
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.MARKET, Side.BUY, amount=0)
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.MARKET, Side.BUY, amount=5, price=0)

    def test_market_sell(self):
        check_order_values(OrderKind.MARKET, Side.SELL, size=3.0, price=0.0)
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.MARKET, Side.SELL, size=None)
        with pytest.raises(InvalidParametersError):
            check_order_values(OrderKind.MARKET, Side.SELL, size=3.0, price=1.0)


@pytest.mark.asyncio
class TestExecute:
    """Test cases for OrderExecutor.execute()."""

    async def test_confirmed(self, clob):
        response = await OrderExecutor(clob).execute(make_intent())

        assert response.success
        assert response.state is OrderState.CONFIRMED
        assert response.order_id == "0xorder"
        assert response.requirements.can_place
        assert response.order_details.total_value == 5.0
        clob.post_limit_order.assert_awaited_once_with(
            token_id="111", side=Side.BUY, price=0.5, size=10.0, kind=OrderKind.LIMIT, expiration=0
        )

    async def test_untradeable_market_posts_nothing(self, clob):
        with pytest.raises(InvalidParametersError):
            await OrderExecutor(clob).execute(make_intent(condition_id="98765"))
        clob.get_collateral_balance.assert_not_awaited()
        clob.post_limit_order.assert_not_awaited()

    async def test_bad_price_posts_nothing(self, clob):
        with pytest.raises(InvalidParametersError):
            await OrderExecutor(clob).execute(make_intent(price=1.5))
        clob.post_limit_order.assert_not_awaited()

    async def test_validation_failure_is_not_submitted(self, clob):
        clob.get_collateral_balance.return_value = BalanceAllowance(balance=2.0, allowance=100.0)

        response = await OrderExecutor(clob).execute(make_intent())

        assert not response.success
        assert response.state is OrderState.UNVALIDATED
        assert response.error_kind is ErrorKind.VALIDATION_FAILED
        assert response.requirements.max_order_size == 2.0
        assert response.error == response.requirements.error
        clob.post_limit_order.assert_not_awaited()

    async def test_skip_validation(self, clob):
        clob.get_collateral_balance.return_value = BalanceAllowance(balance=0.0, allowance=0.0)

        response = await OrderExecutor(clob).execute(make_intent(skip_validation=True))

        assert response.success
        assert response.requirements is None
        clob.get_collateral_balance.assert_not_awaited()

    async def test_rejection_carries_exchange_message(self, clob):
        clob.post_limit_order.side_effect = ExchangeRejectedError("order crosses book: min tick size 0.01")

        response = await OrderExecutor(clob).execute(make_intent())

        assert not response.success
        assert response.state is OrderState.REJECTED
        assert response.error_kind is ErrorKind.EXCHANGE_REJECTED
        assert response.error == "order crosses book: min tick size 0.01"
        assert response.order_id is None

    async def test_insufficient_balance_rejection(self, clob):
        clob.post_limit_order.side_effect = InsufficientBalanceError("not enough balance / allowance")
        response = await OrderExecutor(clob).execute(make_intent(skip_validation=True))
        assert response.state is OrderState.REJECTED
        assert response.error == "not enough balance / allowance"

    async def test_sell_checks_token_holding(self, clob):
        response = await OrderExecutor(clob).execute(make_intent(side=Side.SELL, size=60.0))
        assert response.error_kind is ErrorKind.VALIDATION_FAILED
        clob.get_token_balance.assert_awaited_once_with("111")
        clob.get_collateral_balance.assert_not_awaited()

    async def test_gtd_sets_expiration(self, clob):
        intent = make_intent(kind=OrderKind.GTD, expiration_minutes=5)

        response = await OrderExecutor(clob).execute(intent, now=1_000.0)

        assert response.order_details.expiration == 1_000 + 60 + 300
        assert response.order_details.order_type is OrderKind.GTD
        assert clob.post_limit_order.await_args.kwargs["expiration"] == 1_360

    async def test_market_buy_spends_amount(self, clob):
        intent = make_intent(kind=OrderKind.MARKET, price=None, size=None, amount=25.0)

        response = await OrderExecutor(clob).execute(intent)

        assert response.order_id == "0xmarket"
        clob.get_collateral_balance.assert_awaited_once()
        assert response.requirements.requested == 25.0
        clob.post_market_order.assert_awaited_once_with(
            token_id="111", side=Side.BUY, amount=25.0, price=0.0
        )

    async def test_market_sell_uses_size(self, clob):
        intent = make_intent(kind=OrderKind.MARKET, side=Side.SELL, price=None, size=4.0)

        await OrderExecutor(clob).execute(intent)

        clob.post_market_order.assert_awaited_once_with(
            token_id="111", side=Side.SELL, amount=4.0, price=0.0
        )
