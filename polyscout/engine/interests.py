"""Expansion of user interests into search queries, and profile-aware ranking."""

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from ..exceptions import InvalidParametersError
from ..models import KnowledgeLevel, Market, RiskTolerance
from .relevance import parse_end_date

# Interest category -> fan-out keywords, most useful first.
INTEREST_KEYWORDS: dict[str, tuple[str, ...]] = {
    "politics": (
        "politics", "election", "president", "congress", "senate",
        "government", "policy", "vote", "candidate",
    ),
    "sports": (
        "sports", "nba", "nfl", "basketball", "football", "baseball",
        "soccer", "mlb", "championship", "super bowl", "olympics",
    ),
    "crypto": (
        "crypto", "bitcoin", "ethereum", "btc", "eth", "blockchain",
        "defi", "nft", "web3", "cryptocurrency",
    ),
    "entertainment": (
        "entertainment", "movie", "oscar", "box office", "netflix",
        "film", "tv", "disney", "emmy", "celebrity",
    ),
    "economics": (
        "economics", "inflation", "fed", "recession", "interest rates",
        "economy", "stock market", "gdp", "unemployment",
    ),
    "technology": (
        "technology", "ai", "tech", "artificial intelligence", "apple",
        "google", "microsoft", "tesla", "startup",
    ),
    "health": (
        "health", "covid", "vaccine", "fda", "pandemic", "medical",
        "drug", "healthcare",
    ),
    "climate": (
        "climate", "weather", "temperature", "global warming", "carbon",
        "renewable energy", "environment",
    ),
    "geopolitics": (
        "geopolitics", "war", "ukraine", "russia", "china", "nato",
        "peace", "diplomacy",
    ),
}

# Keywords added per matched interest.
FAN_OUT_BREADTH = {
    KnowledgeLevel.BEGINNER: 1,
    KnowledgeLevel.INTERMEDIATE: 3,
    KnowledgeLevel.ADVANCED: 5,
}

# Interest categories and market categories considered established.
ESTABLISHED_CATEGORIES = ("politics", "sports", "economics")

BEGINNER_TOPICS = (
    "election", "sports", "movie", "weather", "bitcoin price", "stock market",
)

LOWER_RISK_HORIZON = timedelta(days=60)

BEGINNER_BOOST = 0.5
LOWER_RISK_BOOST = 0.3


def parse_profile(knowledge_level, risk_tolerance) -> tuple[KnowledgeLevel, RiskTolerance]:
    """Parse profile values given as enums or strings."""
    try:
        level = KnowledgeLevel(
            knowledge_level.value if isinstance(knowledge_level, KnowledgeLevel) else str(knowledge_level).lower()
        )
        risk = RiskTolerance(
            risk_tolerance.value if isinstance(risk_tolerance, RiskTolerance) else str(risk_tolerance).lower()
        )
    except ValueError as e:
        raise InvalidParametersError(f"Unknown profile value: {e}") from e
    return level, risk


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}s?\b", text) is not None


def match_interest(interest: str) -> str | None:
    """First interest category whose keywords the interest mentions (or is part of)."""
    lowered = interest.strip().lower()
    if not lowered:
        return None
    for category, keywords in INTEREST_KEYWORDS.items():
        for keyword in keywords:
            if _contains_phrase(lowered, keyword) or _contains_phrase(keyword, lowered):
                return category
    return None


def expand(
    interests: Iterable[str],
    knowledge_level: "KnowledgeLevel | str" = KnowledgeLevel.INTERMEDIATE,
    risk_tolerance: "RiskTolerance | str" = RiskTolerance.MODERATE,
    max_queries: int = 8,
) -> list[str]:
    """Turn interests into search queries.

    Each interest is kept verbatim, followed by keywords from the first
    matching category. Duplicates are removed case-sensitively, keeping
    first occurrence, and the result is capped at `max_queries`.
    """
    level, risk = parse_profile(knowledge_level, risk_tolerance)
    breadth = FAN_OUT_BREADTH[level]

    queries: list[str] = []
    for interest in interests:
        text = interest.strip()
        if not text:
            continue
        queries.append(text)

        category = match_interest(text)
        if category is None:
            continue
        if risk is RiskTolerance.CONSERVATIVE and category not in ESTABLISHED_CATEGORIES:
            continue
        queries.extend(INTEREST_KEYWORDS[category][:breadth])

    return list(dict.fromkeys(queries))[:max_queries]


def merge_results(batches: Iterable[Iterable[Market]]) -> list[Market]:
    """Merge per-query results by id, keeping the highest-scoring duplicate.

    Markets keep the position of their first appearance.
    """
    best: dict[str, Market] = {}
    for batch in batches:
        for market in batch:
            existing = best.get(market.id)
            if existing is None or (market.relevance_score or 0.0) > (existing.relevance_score or 0.0):
                best[market.id] = market
    return list(best.values())


def is_beginner_friendly(market: Market) -> bool:
    text = f"{market.question} {market.description}".lower()
    return any(topic in text for topic in BEGINNER_TOPICS)


def is_lower_risk(market: Market, now: datetime | None = None) -> bool:
    """Long-dated markets and established categories count as lower risk."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    end = parse_end_date(market.end_date)
    if end is not None and end - now > LOWER_RISK_HORIZON:
        return True
    return market.category.lower() in ESTABLISHED_CATEGORIES


def rank_for_profile(
    markets: Sequence[Market],
    knowledge_level: "KnowledgeLevel | str" = KnowledgeLevel.INTERMEDIATE,
    risk_tolerance: "RiskTolerance | str" = RiskTolerance.MODERATE,
    now: datetime | None = None,
) -> list[Market]:
    """Sort by relevance adjusted for the user's profile.

    Adjustments only affect ordering; stored scores are left untouched.
    """
    level, risk = parse_profile(knowledge_level, risk_tolerance)

    def adjusted(market: Market) -> float:
        value = market.relevance_score or 0.0
        if level is KnowledgeLevel.BEGINNER and is_beginner_friendly(market):
            value += BEGINNER_BOOST
        if risk is RiskTolerance.CONSERVATIVE and is_lower_risk(market, now):
            value += LOWER_RISK_BOOST
        return value

    return sorted(markets, key=adjusted, reverse=True)
