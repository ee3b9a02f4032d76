"""Pre-trade balance and allowance checks."""

import math

from ..clients.polymarket import PolymarketClient
from ..exceptions import InvalidParametersError
from ..logging import engine_logger as logger
from ..models import BalanceAllowance, OrderRequirements, is_tradeable_condition


def _require_tradeable(condition_id: str | None) -> None:
    if condition_id is not None and not is_tradeable_condition(condition_id):
        raise InvalidParametersError(
            f"Market {condition_id!r} is not tradeable: condition id must start with 0x"
        )


def _require_positive(value: float, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParametersError(f"{name} must be a number, got {value!r}")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise InvalidParametersError(f"{name} must be positive, got {value}")
    return float(value)


def evaluate(state: BalanceAllowance, requested: float, asset: str) -> OrderRequirements:
    """Compare account state against a requested amount."""
    can_place = state.balance >= requested and state.allowance >= requested
    max_order_size = min(state.balance, state.allowance, requested)

    error = None
    if state.balance < requested:
        error = (
            f"Insufficient {asset} balance. Required: {requested:.2f}, "
            f"available: {state.balance:.2f}"
        )
    elif state.allowance < requested:
        error = (
            f"Insufficient {asset} allowance. Required: {requested:.2f}, "
            f"approved: {state.allowance:.2f}"
        )

    return OrderRequirements(
        can_place=can_place,
        balance=state.balance,
        allowance=state.allowance,
        max_order_size=max_order_size,
        requested=requested,
        error=error,
    )


class RequirementValidator:
    """Checks whether the wallet can fund an order.

    A failed check is a business outcome, never an exception: upstream,
    wallet and connection failures all come back as ``can_place=False``
    with a readable error. Only malformed inputs raise.

    The check holds no lock. Account state may change before submission,
    and the exchange remains the final arbiter.
    """

    def __init__(self, clob: PolymarketClient):
        self.clob = clob

    async def check_buy(self, order_value: float, condition_id: str | None = None) -> OrderRequirements:
        """Check collateral balance and allowance cover `order_value` USDC.

        Raises:
            InvalidParametersError: Non-positive value or untradeable condition id.
        """
        _require_tradeable(condition_id)
        requested = _require_positive(order_value, "order value")

        try:
            state = await self.clob.get_collateral_balance()
        except Exception as e:
            logger.warning(f"Buy check could not read collateral: {e}")
            return OrderRequirements(can_place=False, requested=requested, error=str(e))

        result = evaluate(state, requested, "USDC")
        logger.info(
            f"Buy check: value={requested:.2f} balance={state.balance:.2f} "
            f"allowance={state.allowance:.2f} -> {'ok' if result.can_place else 'insufficient'}"
        )
        return result

    async def check_sell(self, token_id: str, size: float, condition_id: str | None = None) -> OrderRequirements:
        """Check held shares of `token_id` cover `size`.

        Raises:
            InvalidParametersError: Empty token, non-positive size or
                untradeable condition id.
        """
        _require_tradeable(condition_id)
        if not token_id:
            raise InvalidParametersError("token_id is required")
        requested = _require_positive(size, "size")

        try:
            state = await self.clob.get_token_balance(token_id)
        except Exception as e:
            logger.warning(f"Sell check could not read token balance: {e}")
            return OrderRequirements(can_place=False, requested=requested, error=str(e))

        result = evaluate(state, requested, "token")
        logger.info(
            f"Sell check: size={requested:.2f} held={state.balance:.2f} "
            f"allowance={state.allowance:.2f} -> {'ok' if result.can_place else 'insufficient'}"
        )
        return result
