"""Discovery API client - public market listings."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..config import RetryConfig
from ..exceptions import NotFoundError, UpstreamError
from ..logging import gateway_logger as logger
from ..normalize import TAG_MAPPINGS
from .base import BaseClient
from .retry import get_json


@dataclass
class ListingFilter:
    """Query parameters for GET /markets.

    Attributes:
        limit: Page size
        offset: Page offset
        active: Only active listings
        closed: Include closed listings
        order: Field the upstream sorts by (e.g. volume24hr, liquidity)
        min_liquidity: Liquidity floor
        tags: Upstream tag filter
        start_date_min: Only listings started after this (None = no filter)
    """

    limit: int = 20
    offset: int = 0
    active: bool = True
    closed: bool = False
    order: str = "volume24hr"
    min_liquidity: float = 100.0
    tags: list[str] = field(default_factory=list)
    start_date_min: datetime | None = None

    @classmethod
    def recent(cls, window_days: int, **kwargs) -> "ListingFilter":
        """Filter for listings that started within the last `window_days`."""
        start = datetime.now(timezone.utc) - timedelta(days=window_days)
        return cls(start_date_min=start, **kwargs)

    def to_params(self) -> dict[str, str]:
        params = {
            "limit": str(self.limit),
            "offset": str(self.offset),
            "active": str(self.active).lower(),
            "closed": str(self.closed).lower(),
            "order": self.order,
            "min_liquidity": str(self.min_liquidity),
        }
        if self.tags:
            params["tags"] = ",".join(self.tags)
        if self.start_date_min is not None:
            params["start_date_min"] = self.start_date_min.isoformat()
        return params


def extract_tags(query: str) -> list[str]:
    """Map query terms to upstream tags, e.g. "nba finals" -> ["Sports"]."""
    query_lower = query.lower()
    tags: list[str] = []
    for term, tag in TAG_MAPPINGS.items():
        if tag not in tags and re.search(rf"\b{re.escape(term)}s?\b", query_lower):
            tags.append(tag)
    return tags


def unwrap_listing_payload(payload: Any) -> list[dict]:
    """Accept either `{data: [...]}` or a bare array."""
    if isinstance(payload, dict):
        payload = payload.get("data") or []
    if not isinstance(payload, list):
        return []
    return [r for r in payload if isinstance(r, dict)]


class GammaClient(BaseClient):
    """Discovery API client (read-only, unauthenticated)."""

    name = "discovery"

    def __init__(self, host: str = "https://gamma-api.polymarket.com", retry: RetryConfig | None = None):
        super().__init__(host, retry)

    async def fetch_listings(self, listing_filter: ListingFilter | None = None) -> list[dict]:
        """Fetch raw market listings.

        Any upstream failure (outage, 404, non-JSON body) degrades to an
        empty list: "no markets found" is a valid outcome for a search.
        """
        self._ensure_connected()
        listing_filter = listing_filter or ListingFilter()
        params = listing_filter.to_params()

        try:
            payload = await get_json(
                self._http,
                f"{self.host}/markets",
                self.policy,
                params=params,
                limiter=self._limiter,
                label="discovery listings",
            )
        except UpstreamError as e:
            logger.warning(f"Discovery listings unavailable, returning no markets: {e}")
            return []

        listings = unwrap_listing_payload(payload)
        logger.debug(f"Fetched {len(listings)} listings (tags={listing_filter.tags})")
        return listings

    async def fetch_listing(self, listing_id: str) -> dict:
        """Fetch one raw listing by its discovery id.

        Raises:
            NotFoundError: No such listing.
            UpstreamUnavailableError: Retries exhausted.
        """
        self._ensure_connected()
        payload = await get_json(
            self._http,
            f"{self.host}/markets/{listing_id}",
            self.policy,
            limiter=self._limiter,
            label=f"discovery listing {listing_id}",
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict) or not payload:
            raise NotFoundError(f"discovery listing {listing_id}")
        return payload
