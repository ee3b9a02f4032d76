"""Relevance scoring and ranking of normalized markets."""

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from ..config import RelevanceFilter
from ..logging import engine_logger as logger
from ..models import Market, RankStrategy

EXACT_MATCH_WEIGHT = 0.8
TOKEN_OVERLAP_WEIGHT = 0.5
CATEGORY_WEIGHT = 0.3
DOMAIN_BOOST = 0.15
DOMAIN_BOOST_CAP = 0.3
MAX_SCORE = 1.0

POPULARITY_VOLUME_WEIGHT = 0.6
POPULARITY_LIQUIDITY_WEIGHT = 0.4

# Upstream tags are unreliable, so a query in one of these domains earns a
# boost when the question mentions any of the domain's terms.
DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sports": (
        "sports", "nba", "nfl", "mlb", "nhl", "basketball", "football",
        "baseball", "soccer", "hockey", "tennis", "golf", "championship",
        "finals", "playoffs", "super bowl", "world cup", "olympics",
    ),
    "politics": (
        "politics", "election", "president", "presidential", "senate",
        "congress", "governor", "vote", "candidate", "primary", "democrat",
        "republican", "parliament", "prime minister",
    ),
    "crypto": (
        "crypto", "bitcoin", "btc", "ethereum", "eth", "solana", "blockchain",
        "defi", "nft", "stablecoin", "etf",
    ),
    "economics": (
        "economy", "economics", "inflation", "fed", "interest rate", "rates",
        "recession", "gdp", "unemployment", "cpi", "stock market",
    ),
}

_WORD = re.compile(r"[a-z0-9]+")


def _words(text: str) -> set[str]:
    return set(_WORD.findall(text.lower()))


def _mentions(text: str, words: set[str], term: str) -> bool:
    if " " in term:
        return term in text
    return term in words


def domain_boost(question: str, query: str) -> float:
    """Boost for each domain the query belongs to that the question also mentions."""
    query_lower = query.lower()
    query_words = _words(query_lower)
    question_lower = question.lower()
    question_words = _words(question_lower)

    boost = 0.0
    for terms in DOMAIN_KEYWORDS.values():
        if not any(_mentions(query_lower, query_words, t) for t in terms):
            continue
        if any(_mentions(question_lower, question_words, t) for t in terms):
            boost += DOMAIN_BOOST
    return min(boost, DOMAIN_BOOST_CAP)


def score(market: Market, query: str, category: str | None = None) -> float:
    """Relevance of a market to a free-text query, in [0, 1].

    Every signal is additive, so adding an exact match to a question can
    only raise its score.
    """
    query_lower = query.strip().lower()
    question = market.question.lower()
    total = 0.0

    if query_lower and query_lower in question:
        total += EXACT_MATCH_WEIGHT

    query_tokens = query_lower.split()
    if query_tokens:
        question_tokens = question.split()
        matched = sum(1 for qt in query_tokens if any(qt in t for t in question_tokens))
        total += TOKEN_OVERLAP_WEIGHT * matched / len(query_tokens)

    if category and market.category and category.strip().lower() == market.category.lower():
        total += CATEGORY_WEIGHT

    if query_lower:
        total += domain_boost(market.question, query_lower)

    return min(MAX_SCORE, max(0.0, total))


def passes(market: Market, rfilter: RelevanceFilter, browse: bool = False) -> bool:
    """Check a scored market against a relevance filter.

    In browse mode (no query) only the volume minimum applies.
    """
    if market.volume_24hr <= rfilter.min_volume:
        return False
    if browse:
        return True
    return (market.relevance_score or 0.0) > rfilter.min_score


def score_and_filter(
    markets: Iterable[Market],
    query: str,
    rfilter: RelevanceFilter,
    category: str | None = None,
) -> list[Market]:
    """Score every market and keep those passing the filter, in input order."""
    browse = not query.strip()
    scored = [m.with_score(score(m, query, category)) for m in markets]
    kept = [m for m in scored if passes(m, rfilter, browse)]
    logger.debug(
        f"Scored {len(scored)} markets for {query!r}, {len(kept)} passed "
        f"(min_score={rfilter.min_score}, min_volume={rfilter.min_volume})"
    )
    return kept


def popularity_scores(markets: Sequence[Market]) -> list[float]:
    """Volume and liquidity blended, each normalized by the batch maximum."""
    max_volume = max((m.volume_24hr for m in markets), default=0.0)
    max_liquidity = max((m.liquidity for m in markets), default=0.0)

    scores = []
    for m in markets:
        value = 0.0
        if max_volume > 0:
            value += POPULARITY_VOLUME_WEIGHT * m.volume_24hr / max_volume
        if max_liquidity > 0:
            value += POPULARITY_LIQUIDITY_WEIGHT * m.liquidity / max_liquidity
        scores.append(value)
    return scores


def parse_end_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def rank(markets: Iterable[Market], strategy: "RankStrategy | str" = RankStrategy.RELEVANCE) -> list[Market]:
    """Order markets by a strategy.

    Sorting is stable: markets with equal keys keep their fetch order, so
    ranking identical inputs always gives identical output.
    """
    strategy = RankStrategy.parse(strategy)
    markets = list(markets)

    if strategy is RankStrategy.VOLUME:
        return sorted(markets, key=lambda m: m.volume_24hr, reverse=True)
    if strategy is RankStrategy.LIQUIDITY:
        return sorted(markets, key=lambda m: m.liquidity, reverse=True)
    if strategy is RankStrategy.POPULARITY:
        scores = popularity_scores(markets)
        order = sorted(range(len(markets)), key=lambda i: scores[i], reverse=True)
        return [markets[i] for i in order]
    if strategy is RankStrategy.RECENT:
        dated = [(parse_end_date(m.end_date), m) for m in markets]
        with_date = [pair for pair in dated if pair[0] is not None]
        without_date = [m for d, m in dated if d is None]
        with_date.sort(key=lambda pair: pair[0], reverse=True)
        return [m for _, m in with_date] + without_date

    return sorted(markets, key=lambda m: m.relevance_score or 0.0, reverse=True)
