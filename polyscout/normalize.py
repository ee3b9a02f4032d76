"""Normalization of raw upstream market records into canonical Markets.

Two upstreams describe the same markets with different schemas:

- the discovery API (camelCase: ``conditionId``, ``endDateIso``,
  ``volume24hr``, ``liquidityNum``, ``events[0].ticker``, outcomes often a
  JSON-encoded string), and
- the trading API (snake_case: ``condition_id``, ``end_date_iso``,
  ``tokens[{token_id, outcome}]``).

Records are tagged with their source and fed through a single
``normalize`` function so that scoring and ranking never care where a
market came from. Normalizing is pure and idempotent.
"""

import json
import math
import re
from collections.abc import Iterable
from enum import Enum
from typing import Any

from .exceptions import MalformedRecordError
from .logging import engine_logger as logger
from .models import DEFAULT_OUTCOMES, Market, MarketDetail, Token

# Query/ticker term -> upstream tag. Also used to infer a category from an event ticker.
TAG_MAPPINGS: dict[str, str] = {
    "politics": "Politics",
    "election": "Politics",
    "president": "Politics",
    "senate": "Politics",
    "congress": "Politics",
    "biden": "Politics",
    "trump": "Politics",
    "sports": "Sports",
    "nba": "Sports",
    "basketball": "Sports",
    "football": "Sports",
    "nfl": "Sports",
    "soccer": "Sports",
    "mlb": "Sports",
    "nhl": "Sports",
    "crypto": "Crypto",
    "bitcoin": "Crypto",
    "btc": "Crypto",
    "ethereum": "Crypto",
    "eth": "Crypto",
    "tech": "Tech",
    "ai": "Tech",
    "technology": "Tech",
    "fed": "Economics",
    "inflation": "Economics",
    "recession": "Economics",
}


class RawSource(str, Enum):
    """Which upstream schema a raw record follows."""
    DISCOVERY = "discovery"
    TRADING = "trading"


def detect_source(raw: dict) -> RawSource:
    """Tag a raw record with the schema it follows."""
    if "condition_id" in raw or "tokens" in raw or "end_date_iso" in raw:
        return RawSource.TRADING
    return RawSource.DISCOVERY


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _number(value: Any, name: str) -> float:
    """Parse a numeric field supplied as str, int, float or absent (0)."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise MalformedRecordError(f"{name} is not numeric: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(f"{name} is not numeric: {value!r}") from e
    if math.isnan(number) or math.isinf(number):
        raise MalformedRecordError(f"{name} is not finite: {value!r}")
    return max(0.0, number)


def _first_number(raw: dict, *keys: str) -> float:
    """First present, non-empty numeric field among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return _number(value, key)
    return 0.0


def parse_outcomes(value: Any) -> list[str]:
    """Outcome labels from a list, a JSON-encoded list, or nothing."""
    if value is None or value == "":
        return list(DEFAULT_OUTCOMES)
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise MalformedRecordError(f"outcomes is not valid JSON: {value!r}") from e
    if isinstance(value, tuple):
        value = list(value)
    if not isinstance(value, list):
        raise MalformedRecordError(f"outcomes is not a list: {value!r}")
    if not value:
        return list(DEFAULT_OUTCOMES)

    outcomes = [_text(o) for o in value]
    if len(outcomes) < 2 or any(not o for o in outcomes):
        raise MalformedRecordError(f"need at least two named outcomes, got {value!r}")
    return outcomes


def infer_category(ticker: str) -> str:
    """Category from an event ticker such as ``nba-finals-2025``."""
    for part in re.split(r"[^a-z0-9]+", ticker.lower()):
        if part in TAG_MAPPINGS:
            return TAG_MAPPINGS[part]
    return ticker


def _first_event(raw: dict) -> dict:
    events = raw.get("events")
    if isinstance(events, list) and events and isinstance(events[0], dict):
        return events[0]
    event = raw.get("event")
    if isinstance(event, dict):
        return event
    return {}


def _normalize_discovery(raw: dict) -> Market:
    event = _first_event(raw)

    category = _text(raw.get("category"))
    if not category:
        ticker = _text(event.get("ticker"))
        if ticker:
            category = infer_category(ticker)

    condition_id = _text(raw.get("conditionId"))
    return Market(
        id=_text(raw.get("id")) or condition_id,
        condition_id=condition_id,
        question=_text(raw.get("question")),
        description=_text(raw.get("description")),
        end_date=_text(raw.get("endDateIso") or raw.get("endDate")),
        outcomes=parse_outcomes(raw.get("outcomes")),
        event_id=_text(event.get("id") or raw.get("eventId")),
        event_title=_text(event.get("title") or raw.get("eventTitle")),
        category=category,
        volume_24hr=_first_number(raw, "volume24hr", "volume"),
        liquidity=_first_number(raw, "liquidityNum", "liquidity"),
    )


def _normalize_trading(raw: dict) -> Market:
    tokens = parse_tokens(raw)
    if tokens:
        outcomes = [t.outcome for t in tokens]
        if len(outcomes) < 2:
            raise MalformedRecordError(f"need at least two outcomes, got {outcomes!r}")
    else:
        outcomes = parse_outcomes(raw.get("outcomes"))

    tags = raw.get("tags")
    category = _text(raw.get("category"))
    if not category and isinstance(tags, list) and tags:
        category = _text(tags[0])

    condition_id = _text(raw.get("condition_id"))
    event = _first_event(raw)
    return Market(
        id=condition_id or _text(raw.get("id")),
        condition_id=condition_id,
        question=_text(raw.get("question")),
        description=_text(raw.get("description")),
        end_date=_text(raw.get("end_date_iso") or raw.get("endDate")),
        outcomes=outcomes,
        event_id=_text(event.get("id") or raw.get("event_id")),
        event_title=_text(event.get("title") or raw.get("event_title")),
        category=category,
        volume_24hr=_first_number(raw, "volume24hr", "volume_24hr", "volume"),
        liquidity=_first_number(raw, "liquidity", "liquidityNum"),
    )


def normalize(raw: "dict | Market") -> Market:
    """Convert a raw upstream record to a canonical Market.

    Raises:
        MalformedRecordError: If the record cannot be ranked or traded
            (empty question, unparseable outcomes or numbers, no id).
    """
    if isinstance(raw, Market):
        return raw
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"expected a mapping, got {type(raw).__name__}")

    if detect_source(raw) is RawSource.TRADING:
        market = _normalize_trading(raw)
    else:
        market = _normalize_discovery(raw)

    if not market.question:
        raise MalformedRecordError(f"record {market.id or '?'} has an empty question")
    if not market.id:
        raise MalformedRecordError(f"record {market.question[:40]!r} has no id")

    if raw.get("relevanceScore") is not None:
        market.relevance_score = min(1.0, _number(raw["relevanceScore"], "relevanceScore"))
    return market


def normalize_all(raws: Iterable[Any]) -> list[Market]:
    """Normalize a batch, dropping malformed records and keeping order."""
    markets = []
    dropped = 0
    for raw in raws:
        try:
            markets.append(normalize(raw))
        except MalformedRecordError as e:
            dropped += 1
            logger.debug(f"Dropped listing: {e}")
    if dropped:
        logger.info(f"Dropped {dropped} malformed listings, kept {len(markets)}")
    return markets


def parse_tokens(raw: dict) -> list[Token]:
    """Outcome tokens from ``tokens[]`` or from ``clobTokenIds`` + ``outcomes``.

    Raises:
        MalformedRecordError: On duplicate outcome labels or mismatched lengths.
    """
    tokens: list[Token] = []
    raw_tokens = raw.get("tokens")

    if isinstance(raw_tokens, list) and raw_tokens:
        for t in raw_tokens:
            if not isinstance(t, dict):
                raise MalformedRecordError(f"token entry is not a mapping: {t!r}")
            token_id = _text(t.get("token_id") or t.get("tokenId"))
            outcome = _text(t.get("outcome"))
            if not token_id or not outcome:
                raise MalformedRecordError(f"token entry missing id or outcome: {t!r}")
            tokens.append(Token(token_id=token_id, outcome=outcome))
    else:
        clob_ids = raw.get("clobTokenIds")
        if clob_ids in (None, "", []):
            return []
        if isinstance(clob_ids, str):
            try:
                clob_ids = json.loads(clob_ids)
            except json.JSONDecodeError as e:
                raise MalformedRecordError(f"clobTokenIds is not valid JSON: {clob_ids!r}") from e
        outcomes = parse_outcomes(raw.get("outcomes"))
        if not isinstance(clob_ids, list) or len(clob_ids) != len(outcomes):
            raise MalformedRecordError("clobTokenIds and outcomes differ in length")
        tokens = [Token(token_id=_text(tid), outcome=o) for tid, o in zip(clob_ids, outcomes)]

    labels = [t.outcome for t in tokens]
    if len(set(labels)) != len(labels):
        raise MalformedRecordError(f"duplicate outcome labels: {labels!r}")
    return tokens


def normalize_detail(raw: dict) -> MarketDetail:
    """Market plus its outcome tokens from a trading-API detail record."""
    market = normalize(raw)
    return MarketDetail(market=market, tokens=parse_tokens(raw))
