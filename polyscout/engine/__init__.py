"""Discovery and order engine components."""

from .executor import OrderExecutor, OrderIntent, compute_expiration
from .interests import expand, merge_results, rank_for_profile
from .relevance import rank, score, score_and_filter
from .validator import RequirementValidator

__all__ = [
    "OrderExecutor",
    "OrderIntent",
    "RequirementValidator",
    "compute_expiration",
    "expand",
    "merge_results",
    "rank",
    "rank_for_profile",
    "score",
    "score_and_filter",
]
