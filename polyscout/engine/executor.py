"""Order execution: parameter checks, validation gate, submission."""

import math
from dataclasses import dataclass
from time import time
from typing import Optional

from ..clients.polymarket import PolymarketClient
from ..exceptions import ErrorKind, ExchangeRejectedError, InvalidParametersError
from ..logging import engine_logger
from ..models import (
    OrderDetails,
    OrderKind,
    OrderRequirements,
    OrderResponse,
    OrderState,
    Side,
    is_tradeable_condition,
)
from .validator import RequirementValidator

MIN_PRICE = 0.01
MAX_PRICE = 0.99
MIN_SIZE = 1.0

# The exchange rejects expirations too close to submission time.
EXPIRATION_PAD_SECONDS = 60


def compute_expiration(minutes: int, now: Optional[float] = None) -> int:
    """Unix expiration for a GTD order `minutes` from `now`, plus the pad."""
    now = time() if now is None else now
    return int(now) + EXPIRATION_PAD_SECONDS + int(minutes) * 60


@dataclass
class OrderIntent:
    """What the caller wants submitted.

    Attributes:
        condition_id: Market condition id (must carry the settlement prefix)
        token_id: Outcome token to trade
        side: BUY or SELL
        kind: LIMIT (GTC), MARKET (FOK) or GTD
        price: Limit price; worst price (buy) or floor price (sell) for MARKET
        size: Shares for LIMIT/GTD and MARKET sells
        amount: USD to spend for MARKET buys
        expiration_minutes: Lifetime of a GTD order
        skip_validation: Submit without checking balance/allowance
    """

    condition_id: str
    token_id: str
    side: Side
    kind: OrderKind = OrderKind.LIMIT
    price: Optional[float] = None
    size: Optional[float] = None
    amount: Optional[float] = None
    expiration_minutes: Optional[int] = None
    skip_validation: bool = False

    @property
    def order_value(self) -> float:
        """USD committed by a buy (or received at the limit by a sell)."""
        if self.kind is OrderKind.MARKET and self.side is Side.BUY:
            return float(self.amount or 0)
        return float(self.price or 0) * float(self.size or 0)


def _finite(value, name: str) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParametersError(f"{name} must be a number, got {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise InvalidParametersError(f"{name} must be finite, got {value}")
    return float(value)


def check_order_values(
    kind: OrderKind,
    side: Side,
    price: Optional[float] = None,
    size: Optional[float] = None,
    amount: Optional[float] = None,
    expiration_minutes: Optional[int] = None,
) -> None:
    """Check price, size, amount and expiration bounds for an order kind.

    Raises:
        InvalidParametersError: On any out-of-range or non-numeric value.
    """
    if kind in (OrderKind.LIMIT, OrderKind.GTD):
        price = _finite(price, "price")
        size = _finite(size, "size")
        if not MIN_PRICE <= price <= MAX_PRICE:
            raise InvalidParametersError(f"Price must be between {MIN_PRICE} and {MAX_PRICE}, got {price}")
        if size < MIN_SIZE:
            raise InvalidParametersError(f"Size must be at least {MIN_SIZE:g}, got {size}")
        if kind is OrderKind.GTD:
            if isinstance(expiration_minutes, bool) or not isinstance(expiration_minutes, int) or expiration_minutes <= 0:
                raise InvalidParametersError(
                    f"expiration_minutes must be a positive integer, got {expiration_minutes!r}"
                )
        return

    # Fill-or-kill
    if side is Side.BUY:
        amount = _finite(amount, "amount")
        if amount <= 0:
            raise InvalidParametersError(f"Amount must be positive, got {amount}")
        if price is not None:
            price = _finite(price, "price")
            if not 0 < price <= 1:
                raise InvalidParametersError(f"Worst price must be in (0, 1], got {price}")
    else:
        size = _finite(size, "size")
        if size <= 0:
            raise InvalidParametersError(f"Size must be positive, got {size}")
        if price is not None:
            price = _finite(price, "price")
            if not 0 <= price < 1:
                raise InvalidParametersError(f"Floor price must be in [0, 1), got {price}")


def check_parameters(intent: OrderIntent) -> None:
    """Reject malformed intents before any network call.

    Raises:
        InvalidParametersError: On an untradeable market or out-of-range
            price, size, amount or expiration.
    """
    if not is_tradeable_condition(intent.condition_id):
        raise InvalidParametersError(
            f"Market {intent.condition_id!r} is not tradeable: condition id must start with 0x"
        )
    if not intent.token_id:
        raise InvalidParametersError("token_id is required")
    check_order_values(
        intent.kind,
        intent.side,
        price=intent.price,
        size=intent.size,
        amount=intent.amount,
        expiration_minutes=intent.expiration_minutes,
    )


class OrderExecutor:
    """Drives one submission through UNVALIDATED -> VALIDATED -> SUBMITTED -> CONFIRMED/REJECTED.

    Nothing is retried: a rejection is terminal and needs a fresh
    validate -> submit cycle.
    """

    def __init__(self, clob: PolymarketClient, validator: Optional[RequirementValidator] = None):
        self.clob = clob
        self.validator = validator or RequirementValidator(clob)
        self.logger = engine_logger

    def _transition(self, intent: OrderIntent, src: OrderState, dst: OrderState) -> OrderState:
        self.logger.debug(f"{intent.kind.name} {intent.side.value} {intent.token_id[:20]}: {src.value} -> {dst.value}")
        return dst

    def _details(self, intent: OrderIntent, expiration: Optional[int]) -> OrderDetails:
        if intent.kind is OrderKind.MARKET and intent.side is Side.BUY:
            size = float(intent.amount)
        else:
            size = float(intent.size)
        return OrderDetails(
            token_id=intent.token_id,
            price=float(intent.price or 0),
            size=size,
            side=intent.side,
            total_value=round(intent.order_value, 6),
            order_type=intent.kind,
            expiration=expiration,
        )

    async def _check(self, intent: OrderIntent) -> OrderRequirements:
        if intent.side is Side.BUY:
            return await self.validator.check_buy(intent.order_value, intent.condition_id)
        return await self.validator.check_sell(intent.token_id, float(intent.size), intent.condition_id)

    async def _submit(self, intent: OrderIntent, expiration: Optional[int]) -> str:
        if intent.kind is OrderKind.MARKET:
            amount = intent.amount if intent.side is Side.BUY else intent.size
            return await self.clob.post_market_order(
                token_id=intent.token_id,
                side=intent.side,
                amount=float(amount),
                price=float(intent.price or 0),
            )
        return await self.clob.post_limit_order(
            token_id=intent.token_id,
            side=intent.side,
            price=float(intent.price),
            size=float(intent.size),
            kind=intent.kind,
            expiration=expiration or 0,
        )

    async def execute(self, intent: OrderIntent, now: Optional[float] = None) -> OrderResponse:
        """Validate (unless skipped) and submit one order.

        Raises:
            InvalidParametersError: Malformed intent; nothing is fetched or posted.
        """
        check_parameters(intent)

        state = OrderState.UNVALIDATED
        expiration = None
        if intent.kind is OrderKind.GTD:
            expiration = compute_expiration(intent.expiration_minutes, now)
        details = self._details(intent, expiration)

        requirements = None
        if not intent.skip_validation:
            requirements = await self._check(intent)
            if not requirements.can_place:
                self.logger.info(f"Order not submitted: {requirements.error}")
                return OrderResponse(
                    success=False,
                    state=state,
                    order_details=details,
                    error=requirements.error,
                    error_kind=ErrorKind.VALIDATION_FAILED,
                    requirements=requirements,
                )
            state = self._transition(intent, state, OrderState.VALIDATED)
        else:
            self.logger.warning("Submitting without balance/allowance validation")

        state = self._transition(intent, state, OrderState.SUBMITTED)
        try:
            order_id = await self._submit(intent, expiration)
        except ExchangeRejectedError as e:
            state = self._transition(intent, state, OrderState.REJECTED)
            return OrderResponse(
                success=False,
                state=state,
                order_details=details,
                error=e.reason,
                error_kind=ErrorKind.EXCHANGE_REJECTED,
                requirements=requirements,
            )

        state = self._transition(intent, state, OrderState.CONFIRMED)
        self.logger.info(f"Order confirmed: {order_id}")
        return OrderResponse(
            success=True,
            state=state,
            order_details=details,
            order_id=order_id,
            requirements=requirements,
        )
