"""Base client class for the upstream APIs."""

from __future__ import annotations

from abc import ABC

import httpx
from aiolimiter import AsyncLimiter

from ..config import RetryConfig
from ..exceptions import NotConnectedError
from ..logging import gateway_logger as logger
from .retry import RetryPolicy


class BaseClient(ABC):
    """Shared lifecycle for clients of one upstream HTTP API.

    Owns an httpx.AsyncClient, a request pacer and a retry policy.
    Supports async context manager for automatic resource cleanup.

    Usage:
        async with GammaClient(host) as gamma:
            raws = await gamma.fetch_listings(ListingFilter(limit=20))
    """

    name = "upstream"

    def __init__(self, host: str, retry: RetryConfig | None = None):
        """Initialize client.

        Args:
            host: Base URL of the API.
            retry: Retry/timeout settings. Defaults to RetryConfig().
        """
        self.host = host.rstrip("/")
        self._retry_config = retry or RetryConfig()
        self.policy = RetryPolicy.from_config(self._retry_config)
        self._limiter = AsyncLimiter(max(1.0, self._retry_config.rate_limit), 1)
        self._http: httpx.AsyncClient | None = None

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._http is not None

    async def connect(self) -> None:
        """Open the HTTP client."""
        if self._http is not None:
            return
        timeout = self._retry_config.timeout
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={"Accept": "application/json"},
        )
        logger.debug(f"{self.name} client opened ({self.host})")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http:
            await self._http.aclose()
            self._http = None
            logger.debug(f"{self.name} client closed")

    def _ensure_connected(self) -> None:
        """Raise if not connected."""
        if not self.is_connected:
            raise NotConnectedError(f"{self.name} client not connected. Call connect() first.")

    async def __aenter__(self) -> "BaseClient":
        """Enter async context manager."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()
