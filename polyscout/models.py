"""Data models for market discovery and order validation."""

from dataclasses import dataclass, field, replace
from enum import Enum
from time import time

from .exceptions import ErrorKind, InvalidParametersError

# Every tradeable condition id is an on-chain hex identifier.
SETTLEMENT_PREFIX = "0x"

DEFAULT_OUTCOMES = ("Yes", "No")


def is_tradeable_condition(condition_id: str | None) -> bool:
    """Check a condition id carries the settlement prefix."""
    return bool(
        condition_id
        and condition_id.startswith(SETTLEMENT_PREFIX)
        and len(condition_id) > len(SETTLEMENT_PREFIX)
    )


class Side(str, Enum):
    """Order side."""
    BUY = "BUY"
    SELL = "SELL"


class OrderKind(str, Enum):
    """Order variant and the exchange order type it posts as."""
    LIMIT = "GTC"
    MARKET = "FOK"
    GTD = "GTD"


class OrderState(str, Enum):
    """Execution state of a single submission attempt."""
    UNVALIDATED = "UNVALIDATED"
    VALIDATED = "VALIDATED"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


class OrderStatus(str, Enum):
    """Open order status as reported by the exchange."""
    LIVE = "LIVE"
    OPEN = "OPEN"
    MATCHED = "MATCHED"
    CANCELLED = "CANCELLED"
    DELAYED = "DELAYED"
    UNMATCHED = "UNMATCHED"


class RankStrategy(str, Enum):
    """Ordering applied to scored markets."""
    RELEVANCE = "relevance"
    VOLUME = "volume"
    LIQUIDITY = "liquidity"
    POPULARITY = "popularity"
    RECENT = "recent"

    @classmethod
    def parse(cls, value: "str | RankStrategy") -> "RankStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidParametersError(
                f"Unknown sort strategy {value!r}. Use one of: {allowed}"
            ) from e


class KnowledgeLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


@dataclass
class Market:
    """Canonical market listing, independent of the upstream it came from."""
    id: str
    question: str
    condition_id: str = ""
    description: str = ""
    end_date: str = ""
    outcomes: list[str] = field(default_factory=lambda: list(DEFAULT_OUTCOMES))
    event_id: str = ""
    event_title: str = ""
    category: str = ""
    volume_24hr: float = 0.0
    liquidity: float = 0.0
    relevance_score: float | None = None

    @property
    def is_tradeable(self) -> bool:
        """Tradeable iff the condition id carries the settlement prefix."""
        return is_tradeable_condition(self.condition_id)

    def with_score(self, score: float) -> "Market":
        """Copy of this market carrying a query-dependent relevance score."""
        return replace(self, outcomes=list(self.outcomes), relevance_score=score)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "conditionId": self.condition_id,
            "question": self.question,
            "description": self.description,
            "endDate": self.end_date,
            "outcomes": list(self.outcomes),
            "eventId": self.event_id,
            "eventTitle": self.event_title,
            "category": self.category,
            "volume24hr": self.volume_24hr,
            "liquidity": self.liquidity,
        }
        if self.relevance_score is not None:
            data["relevanceScore"] = self.relevance_score
        return data


@dataclass
class Token:
    """One outcome's trading identifier within a market."""
    token_id: str
    outcome: str

    def to_dict(self) -> dict:
        return {"tokenId": self.token_id, "outcome": self.outcome}


@dataclass
class MarketDetail:
    """A market together with its freshly fetched outcome tokens."""
    market: Market
    tokens: list[Token]

    @property
    def available_outcomes(self) -> list[str]:
        return [t.outcome for t in self.tokens]

    def token_for(self, outcome: str) -> Token:
        """Find the token for an outcome label.

        Raises:
            InvalidParametersError: If no token carries that outcome.
        """
        for token in self.tokens:
            if token.outcome == outcome:
                return token
        wanted = outcome.strip().casefold()
        for token in self.tokens:
            if token.outcome.casefold() == wanted:
                return token
        available = ", ".join(f'"{o}"' for o in self.available_outcomes)
        raise InvalidParametersError(
            f'Invalid outcome "{outcome}". Available outcomes: {available}'
        )

    def to_dict(self) -> dict:
        data = self.market.to_dict()
        data["tokens"] = [t.to_dict() for t in self.tokens]
        return data


@dataclass
class OrderBook:
    """Orderbook snapshot for one token."""
    token_id: str
    bids: list[tuple[float, float]]  # [(price, size), ...] sorted by price desc
    asks: list[tuple[float, float]]  # [(price, size), ...] sorted by price asc
    timestamp: float = field(default_factory=time)

    @property
    def best_bid(self) -> float | None:
        """Best bid price."""
        return self.bids[0][0] if self.bids else None

    @property
    def best_ask(self) -> float | None:
        """Best ask price."""
        return self.asks[0][0] if self.asks else None

    @property
    def spread(self) -> float | None:
        """Bid-ask spread."""
        if self.best_bid is not None and self.best_ask is not None:
            return self.best_ask - self.best_bid
        return None

    @property
    def midpoint(self) -> float | None:
        if self.best_bid is not None and self.best_ask is not None:
            return (self.best_ask + self.best_bid) / 2
        return None

    def to_dict(self) -> dict:
        return {
            "tokenId": self.token_id,
            "bids": [{"price": p, "size": s} for p, s in self.bids],
            "asks": [{"price": p, "size": s} for p, s in self.asks],
            "bestBid": self.best_bid,
            "bestAsk": self.best_ask,
            "spread": self.spread,
            "timestamp": self.timestamp,
        }


@dataclass
class BalanceAllowance:
    """Account state for one asset, in decimal units."""
    balance: float
    allowance: float


@dataclass
class OrderRequirements:
    """Outcome of a pre-trade balance/allowance check."""
    can_place: bool
    balance: float = 0.0
    allowance: float = 0.0
    max_order_size: float = 0.0
    requested: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "canPlace": self.can_place,
            "balance": self.balance,
            "allowance": self.allowance,
            "maxOrderSize": self.max_order_size,
            "requested": self.requested,
            "error": self.error,
        }


@dataclass(frozen=True)
class OrderDetails:
    """Echo of what was (or would have been) submitted."""
    token_id: str
    price: float
    size: float
    side: Side
    total_value: float
    order_type: OrderKind = OrderKind.LIMIT
    expiration: int | None = None

    def to_dict(self) -> dict:
        data = {
            "tokenId": self.token_id,
            "price": self.price,
            "size": self.size,
            "side": self.side.value,
            "totalValue": self.total_value,
            "orderType": self.order_type.value,
        }
        if self.expiration is not None:
            data["expiration"] = self.expiration
        return data


@dataclass(frozen=True)
class OrderResponse:
    """Result of one submission attempt. Never mutated after creation."""
    success: bool
    state: OrderState
    order_details: OrderDetails | None = None
    order_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    requirements: OrderRequirements | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "state": self.state.value,
            "orderId": self.order_id,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "orderDetails": self.order_details.to_dict() if self.order_details else None,
            "validationDetails": self.requirements.to_dict() if self.requirements else None,
        }


@dataclass
class Order:
    """Open order information."""
    id: str
    token_id: str
    side: Side
    price: float
    size: float
    status: OrderStatus
    filled_size: float = 0.0
    market: str = ""
    outcome: str = ""
    created_at: float = field(default_factory=time)

    @property
    def remaining_size(self) -> float:
        """Remaining unfilled size."""
        return self.size - self.filled_size

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tokenId": self.token_id,
            "side": self.side.value,
            "price": self.price,
            "size": self.size,
            "filledSize": self.filled_size,
            "remainingSize": self.remaining_size,
            "status": self.status.value,
            "market": self.market,
            "outcome": self.outcome,
            "createdAt": self.created_at,
        }


@dataclass
class Position:
    """One holding reported by the positions API."""
    title: str
    size: float
    avg_price: float = 0.0
    current_value: float = 0.0
    cash_pnl: float = 0.0
    percent_pnl: float = 0.0
    redeemable: bool = False
    outcome: str = ""
    asset: str = ""
    condition_id: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "size": self.size,
            "avgPrice": self.avg_price,
            "currentValue": self.current_value,
            "cashPnl": self.cash_pnl,
            "percentPnl": self.percent_pnl,
            "redeemable": self.redeemable,
            "outcome": self.outcome,
            "asset": self.asset,
            "conditionId": self.condition_id,
        }


@dataclass
class PortfolioSummary:
    """Aggregate view over a list of positions."""
    total_value: float
    total_pnl: float
    winning_positions: int
    redeemable_positions: int
    position_count: int

    def to_dict(self) -> dict:
        return {
            "totalValue": self.total_value,
            "totalPnl": self.total_pnl,
            "winningPositions": self.winning_positions,
            "redeemablePositions": self.redeemable_positions,
            "positionCount": self.position_count,
        }


@dataclass
class OrderPreview:
    """A prospective order resolved against live market and account data."""
    market: Market
    token: Token
    side: Side
    price: float
    size: float
    requirements: OrderRequirements

    @property
    def order_value(self) -> float:
        return round(self.price * self.size, 6)

    def to_dict(self) -> dict:
        return {
            "market": self.market.to_dict(),
            "token": self.token.to_dict(),
            "side": self.side.value,
            "price": self.price,
            "size": self.size,
            "orderValue": self.order_value,
            "requirements": self.requirements.to_dict(),
        }
