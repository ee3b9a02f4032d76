"""Clients for the discovery, trading and positions APIs."""

from dotenv import load_dotenv

load_dotenv()

from .base import BaseClient
from .gamma import GammaClient, ListingFilter
from .polymarket import PolymarketClient
from .positions import PositionFilter, PositionsClient
from .retry import RetryPolicy

__all__ = [
    "BaseClient",
    "GammaClient",
    "ListingFilter",
    "PolymarketClient",
    "PositionFilter",
    "PositionsClient",
    "RetryPolicy",
]
