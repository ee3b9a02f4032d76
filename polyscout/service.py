"""Caller-facing operations.

Every operation takes an explicit ``Session`` and returns plain models or
raises an ``EngineError`` subclass whose ``kind`` tells the caller what to
do next (try another market, try again later, fix the input...).
"""

import asyncio
from dataclasses import replace
from typing import Optional

from .clients.gamma import ListingFilter, extract_tags
from .clients.positions import PositionFilter
from .engine.executor import OrderIntent, check_order_values
from .engine.interests import expand, merge_results, parse_profile, rank_for_profile
from .engine.relevance import rank, score_and_filter
from .exceptions import InvalidParametersError, NotConnectedError, NotFoundError
from .logging import engine_logger as logger
from .models import (
    KnowledgeLevel,
    Market,
    MarketDetail,
    Order,
    OrderBook,
    OrderKind,
    OrderPreview,
    OrderRequirements,
    OrderResponse,
    PortfolioSummary,
    Position,
    RankStrategy,
    RiskTolerance,
    Side,
    Token,
    is_tradeable_condition,
)
from .normalize import normalize, normalize_all, normalize_detail
from .session import Session

OTHER_MARKETS = "Other Markets"


def parse_side(value: "Side | str") -> Side:
    if isinstance(value, Side):
        return value
    try:
        return Side(str(value).upper())
    except ValueError as e:
        raise InvalidParametersError(f"Side must be BUY or SELL, got {value!r}") from e


def _require_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidParametersError(f"limit must be a positive integer, got {limit!r}")
    return limit


async def _fetch_candidates(
    session: Session,
    query: str,
    limit: int,
    category: Optional[str],
    strategy: RankStrategy,
    min_liquidity: float,
) -> list[Market]:
    """Fetch and normalize listings, falling back to the trading API."""
    search = session.settings.search
    tags = extract_tags(query)
    if category and category not in tags:
        tags.append(category)

    listing_filter = ListingFilter.recent(
        search.listing_window_days,
        limit=search.fetch_size(limit),
        order="liquidity" if strategy is RankStrategy.LIQUIDITY else "volume24hr",
        min_liquidity=min_liquidity,
        tags=tags,
    )
    raws = await session.gamma.fetch_listings(listing_filter)
    if not raws:
        logger.info("Discovery returned no listings, falling back to trading API")
        raws = await session.clob.fetch_listings(search.fetch_size(limit))

    return normalize_all(raws)


async def search_markets(
    session: Session,
    query: str,
    limit: int = 10,
    category: Optional[str] = None,
    sort_by: "RankStrategy | str" = RankStrategy.RELEVANCE,
    risk_tolerance: "RiskTolerance | str" = RiskTolerance.MODERATE,
) -> list[Market]:
    """Search markets by free-text query.

    An upstream outage yields an empty list rather than an error. A blank
    query browses: only the risk profile's volume minimum applies.
    """
    limit = _require_limit(limit)
    strategy = RankStrategy.parse(sort_by)
    _, risk = parse_profile(KnowledgeLevel.INTERMEDIATE, risk_tolerance)
    rfilter = session.settings.search.profile(risk.value)

    markets = await _fetch_candidates(session, query, limit, category, strategy, rfilter.min_liquidity)
    relevant = score_and_filter(markets, query, rfilter, category)
    results = rank(relevant, strategy)[:limit]

    logger.info(
        f"Search {query!r}: {len(markets)} candidates, {len(relevant)} relevant, "
        f"returning {len(results)} (sort={strategy.value}, risk={risk.value})"
    )
    return results


async def search_by_interests(
    session: Session,
    interests: list[str],
    limit: int = 10,
    knowledge_level: "KnowledgeLevel | str" = KnowledgeLevel.INTERMEDIATE,
    risk_tolerance: "RiskTolerance | str" = RiskTolerance.MODERATE,
    sort_by: "RankStrategy | str" = RankStrategy.RELEVANCE,
) -> list[Market]:
    """Search markets for a set of interests.

    Interests are expanded into queries that are searched concurrently.
    A failing query is logged and contributes nothing. Results are
    merged by id (highest score wins) and ranked; relevance ranking is
    adjusted for the user's profile.
    """
    limit = _require_limit(limit)
    strategy = RankStrategy.parse(sort_by)
    level, risk = parse_profile(knowledge_level, risk_tolerance)

    queries = expand(interests, level, risk, session.settings.search.max_queries)
    if not queries:
        raise InvalidParametersError("At least one non-empty interest is required")
    logger.info(f"Interests {interests!r} expanded to {queries!r}")

    async def search_one(query: str) -> list[Market]:
        try:
            return await search_markets(session, query, limit, None, RankStrategy.RELEVANCE, risk)
        except Exception as e:
            logger.warning(f"Query {query!r} failed, skipping it: {e}")
            return []

    batches = await asyncio.gather(*(search_one(q) for q in queries))
    merged = merge_results(batches)

    if strategy is RankStrategy.RELEVANCE:
        ranked = rank_for_profile(merged, level, risk)
    else:
        ranked = rank(merged, strategy)
    return ranked[:limit]


async def get_market(session: Session, market_id: str) -> MarketDetail:
    """Fetch a market with fresh outcome tokens.

    Accepts a condition id, or a discovery id that is first resolved to its
    condition id; discovery volume and liquidity are then merged in.

    Raises:
        NotFoundError: No such market, or it has no condition id.
        InvalidParametersError: Empty id, or the market is not tradeable.
        UpstreamUnavailableError: Retries exhausted.
    """
    market_id = (market_id or "").strip()
    if not market_id:
        raise InvalidParametersError("market_id is required")

    if is_tradeable_condition(market_id):
        return normalize_detail(await session.clob.fetch_market_detail(market_id))

    summary = normalize(await session.gamma.fetch_listing(market_id))
    if not summary.condition_id:
        raise NotFoundError(f"condition id for market {market_id}")
    if not summary.is_tradeable:
        raise InvalidParametersError(
            f"Market {market_id} is not tradeable (condition id {summary.condition_id!r})"
        )

    detail = normalize_detail(await session.clob.fetch_market_detail(summary.condition_id))
    detail.market = replace(
        detail.market,
        outcomes=list(detail.market.outcomes),
        volume_24hr=summary.volume_24hr or detail.market.volume_24hr,
        liquidity=summary.liquidity or detail.market.liquidity,
        event_id=detail.market.event_id or summary.event_id,
        event_title=detail.market.event_title or summary.event_title,
        category=detail.market.category or summary.category,
        end_date=detail.market.end_date or summary.end_date,
    )
    return detail


async def get_order_book(session: Session, token_id: str) -> OrderBook:
    if not token_id:
        raise InvalidParametersError("token_id is required")
    return await session.clob.fetch_order_book(token_id)


async def check_buy_requirements(
    session: Session, order_value: float, condition_id: Optional[str] = None
) -> OrderRequirements:
    return await session.validator.check_buy(order_value, condition_id)


async def check_sell_requirements(
    session: Session, token_id: str, size: float, condition_id: Optional[str] = None
) -> OrderRequirements:
    return await session.validator.check_sell(token_id, size, condition_id)


async def _resolve_token(session: Session, market_id: str, outcome: str) -> tuple[MarketDetail, Token]:
    detail = await get_market(session, market_id)
    if not detail.market.is_tradeable:
        raise InvalidParametersError(f"Market {market_id} is not tradeable")
    return detail, detail.token_for(outcome)


async def prepare_order(
    session: Session,
    market_id: str,
    side: "Side | str",
    price: float,
    size: float,
    outcome: str = "Yes",
) -> OrderPreview:
    """Resolve a prospective limit order and check whether it can be funded."""
    side = parse_side(side)
    check_order_values(OrderKind.LIMIT, side, price=price, size=size)

    detail, token = await _resolve_token(session, market_id, outcome)
    cid = detail.market.condition_id
    if side is Side.BUY:
        requirements = await session.validator.check_buy(price * size, cid)
    else:
        requirements = await session.validator.check_sell(token.token_id, size, cid)

    return OrderPreview(
        market=detail.market,
        token=token,
        side=side,
        price=price,
        size=size,
        requirements=requirements,
    )


async def _submit(
    session: Session,
    market_id: str,
    outcome: str,
    side: Side,
    kind: OrderKind,
    price: Optional[float] = None,
    size: Optional[float] = None,
    amount: Optional[float] = None,
    expiration_minutes: Optional[int] = None,
    skip_validation: bool = False,
) -> OrderResponse:
    check_order_values(
        kind, side, price=price, size=size, amount=amount, expiration_minutes=expiration_minutes
    )
    detail, token = await _resolve_token(session, market_id, outcome)
    logger.info(
        f"{kind.name} {side.value} on {detail.market.question[:60]!r} "
        f"outcome={token.outcome} token={token.token_id[:20]}..."
    )
    intent = OrderIntent(
        condition_id=detail.market.condition_id,
        token_id=token.token_id,
        side=side,
        kind=kind,
        price=price,
        size=size,
        amount=amount,
        expiration_minutes=expiration_minutes,
        skip_validation=skip_validation,
    )
    return await session.executor.execute(intent)


async def create_buy_order(
    session: Session,
    market_id: str,
    outcome: str,
    price: float,
    size: float,
    skip_validation: bool = False,
) -> OrderResponse:
    """Place a resting (GTC) buy of `size` shares at `price`."""
    return await _submit(
        session, market_id, outcome, Side.BUY, OrderKind.LIMIT,
        price=price, size=size, skip_validation=skip_validation,
    )


async def create_sell_order(
    session: Session,
    market_id: str,
    outcome: str,
    price: float,
    size: float,
    skip_validation: bool = False,
) -> OrderResponse:
    """Place a resting (GTC) sell of `size` shares at `price`."""
    return await _submit(
        session, market_id, outcome, Side.SELL, OrderKind.LIMIT,
        price=price, size=size, skip_validation=skip_validation,
    )


async def create_market_order(
    session: Session,
    market_id: str,
    outcome: str,
    side: "Side | str",
    amount: Optional[float] = None,
    size: Optional[float] = None,
    price: Optional[float] = None,
    skip_validation: bool = False,
) -> OrderResponse:
    """Place a fill-or-kill order.

    Buys spend `amount` USD (optional worst `price`); sells sell `size`
    shares (optional floor `price`). A partial fill is a rejection.
    """
    return await _submit(
        session, market_id, outcome, parse_side(side), OrderKind.MARKET,
        price=price, size=size, amount=amount, skip_validation=skip_validation,
    )


async def create_gtd_order(
    session: Session,
    market_id: str,
    outcome: str,
    side: "Side | str",
    price: float,
    size: float,
    expiration_minutes: int,
    skip_validation: bool = False,
) -> OrderResponse:
    """Place a limit order that expires `expiration_minutes` from now."""
    return await _submit(
        session, market_id, outcome, parse_side(side), OrderKind.GTD,
        price=price, size=size, expiration_minutes=expiration_minutes,
        skip_validation=skip_validation,
    )


async def get_positions(
    session: Session,
    user: Optional[str] = None,
    position_filter: Optional[PositionFilter] = None,
) -> list[Position]:
    """Positions for `user`, defaulting to the session wallet."""
    user = user or session.wallet_address
    if not user:
        raise NotConnectedError(
            "No wallet address: pass a user or configure PM_PRIVATE_KEY / PM_PROXY_ADDRESS"
        )
    return await session.positions.fetch_positions(user, position_filter)


def summarize_positions(positions: list[Position]) -> PortfolioSummary:
    return PortfolioSummary(
        total_value=sum(p.current_value for p in positions),
        total_pnl=sum(p.cash_pnl for p in positions),
        winning_positions=sum(1 for p in positions if p.cash_pnl > 0),
        redeemable_positions=sum(1 for p in positions if p.redeemable),
        position_count=len(positions),
    )


async def get_open_orders(session: Session) -> list[Order]:
    return await session.clob.get_open_orders()


async def get_markets_by_events(session: Session, limit: int = 10) -> dict[str, list[Market]]:
    """Current markets grouped by event title, then category, then "Other Markets".

    Returns at most `limit` groups, in first-seen order.
    """
    limit = _require_limit(limit)
    markets = await _fetch_candidates(
        session, "", limit, None, RankStrategy.VOLUME,
        session.settings.search.profile(RiskTolerance.MODERATE.value).min_liquidity,
    )

    groups: dict[str, list[Market]] = {}
    for market in markets:
        key = market.event_title or market.category or OTHER_MARKETS
        groups.setdefault(key, []).append(market)

    return dict(list(groups.items())[:limit])
