"""Positions API client - holdings and P&L for a wallet."""

from dataclasses import dataclass

from ..config import RetryConfig
from ..exceptions import InvalidParametersError
from ..logging import gateway_logger as logger
from ..models import Position
from .base import BaseClient
from .gamma import unwrap_listing_payload
from .retry import get_json


@dataclass
class PositionFilter:
    """Query parameters for GET /positions.

    Attributes:
        limit: Maximum positions returned
        size_threshold: Ignore holdings smaller than this
        sort_by: CURRENT, INITIAL, TOKENS, CASHPNL, PERCENTPNL, ...
        sort_direction: ASC or DESC
        event_id: Restrict to one event
        redeemable: Only (True) or never (False) redeemable positions
        market: Restrict to one condition id
    """

    limit: int = 50
    size_threshold: float = 1.0
    sort_by: str = "CURRENT"
    sort_direction: str = "DESC"
    event_id: str | None = None
    redeemable: bool | None = None
    market: str | None = None

    def to_params(self, user: str) -> dict[str, str]:
        params = {
            "user": user,
            "limit": str(self.limit),
            "sizeThreshold": str(self.size_threshold),
            "sortBy": self.sort_by,
            "sortDirection": self.sort_direction,
        }
        if self.event_id:
            params["eventId"] = self.event_id
        if self.redeemable is not None:
            params["redeemable"] = str(self.redeemable).lower()
        if self.market:
            params["market"] = self.market
        return params


def parse_position(raw: dict) -> Position:
    return Position(
        title=str(raw.get("title") or ""),
        size=float(raw.get("size") or 0),
        avg_price=float(raw.get("avgPrice") or 0),
        current_value=float(raw.get("currentValue") or 0),
        cash_pnl=float(raw.get("cashPnl") or 0),
        percent_pnl=float(raw.get("percentPnl") or 0),
        redeemable=bool(raw.get("redeemable", False)),
        outcome=str(raw.get("outcome") or ""),
        asset=str(raw.get("asset") or ""),
        condition_id=str(raw.get("conditionId") or ""),
    )


class PositionsClient(BaseClient):
    """Positions API client (read-only, unauthenticated)."""

    name = "positions"

    def __init__(self, host: str = "https://data-api.polymarket.com", retry: RetryConfig | None = None):
        super().__init__(host, retry)

    async def fetch_positions(self, user: str, position_filter: PositionFilter | None = None) -> list[Position]:
        """Fetch a wallet's positions.

        Raises:
            InvalidParametersError: No wallet address given.
            UpstreamUnavailableError: Retries exhausted.
        """
        self._ensure_connected()
        if not user:
            raise InvalidParametersError("A wallet address is required to fetch positions")

        position_filter = position_filter or PositionFilter()
        payload = await get_json(
            self._http,
            f"{self.host}/positions",
            self.policy,
            params=position_filter.to_params(user),
            limiter=self._limiter,
            label=f"positions {user[:10]}",
        )

        positions = [parse_position(r) for r in unwrap_listing_payload(payload)]
        logger.debug(f"Fetched {len(positions)} positions for {user[:10]}...")
        return positions
