"""Prediction market discovery, ranking and pre-trade order validation."""

from .config import Settings
from .exceptions import EngineError, ErrorKind
from .session import Session

__version__ = "0.1.0"

__all__ = ["EngineError", "ErrorKind", "Session", "Settings", "__version__"]
