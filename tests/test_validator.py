"""Tests for pre-trade requirement checks."""

import pytest

from polyscout.engine.validator import RequirementValidator, evaluate
from polyscout.exceptions import InvalidParametersError, UpstreamUnavailableError
from polyscout.models import BalanceAllowance

CONDITION_ID = "0x" + "ab" * 32


class TestEvaluate:
    """Test cases for evaluate()."""

    def test_covered(self):
        result = evaluate(BalanceAllowance(100.0, 100.0), 50.0, "USDC")
        assert result.can_place
        assert result.max_order_size == 50.0
        assert result.error is None

    def test_short_balance(self):
        result = evaluate(BalanceAllowance(100.0, 100.0), 150.0, "USDC")
        assert not result.can_place
        assert result.max_order_size == 100.0
        assert "balance" in result.error

    def test_short_allowance(self):
        result = evaluate(BalanceAllowance(100.0, 20.0), 50.0, "USDC")
        assert not result.can_place
        assert result.max_order_size == 20.0
        assert "allowance" in result.error

    def test_exact_amount_is_enough(self):
        assert evaluate(BalanceAllowance(6.5, 6.5), 6.5, "USDC").can_place


@pytest.mark.asyncio
class TestCheckBuy:
    """Test cases for RequirementValidator.check_buy()."""

    async def test_funded(self, clob):
        result = await RequirementValidator(clob).check_buy(50.0, CONDITION_ID)
        assert result.can_place
        assert result.balance == 100.0
        assert result.max_order_size == 50.0

    async def test_underfunded(self, clob):
        result = await RequirementValidator(clob).check_buy(150.0, CONDITION_ID)
        assert not result.can_place
        assert result.error
        assert result.max_order_size == 100.0

    @pytest.mark.parametrize("value", [0, -1.0, float("nan"), float("inf"), "10"])
    async def test_bad_value_raises(self, clob, value):
        with pytest.raises(InvalidParametersError):
            await RequirementValidator(clob).check_buy(value)
        clob.get_collateral_balance.assert_not_awaited()

    async def test_untradeable_market_raises(self, clob):
        with pytest.raises(InvalidParametersError, match="not tradeable"):
            await RequirementValidator(clob).check_buy(10.0, "12345")
        clob.get_collateral_balance.assert_not_awaited()

    async def test_upstream_failure_is_a_result(self, clob):
        clob.get_collateral_balance.side_effect = UpstreamUnavailableError("trading: timed out")
        result = await RequirementValidator(clob).check_buy(10.0)
        assert not result.can_place
        assert "timed out" in result.error
        assert result.requested == 10.0


@pytest.mark.asyncio
class TestCheckSell:
    """Test cases for RequirementValidator.check_sell()."""

    async def test_holding_covers(self, clob):
        result = await RequirementValidator(clob).check_sell("111", 20.0, CONDITION_ID)
        assert result.can_place
        clob.get_token_balance.assert_awaited_once_with("111")

    async def test_holding_short(self, clob):
        result = await RequirementValidator(clob).check_sell("111", 80.0)
        assert not result.can_place
        assert result.max_order_size == 50.0
        assert "token balance" in result.error

    async def test_missing_token_raises(self, clob):
        with pytest.raises(InvalidParametersError):
            await RequirementValidator(clob).check_sell("", 5.0)
