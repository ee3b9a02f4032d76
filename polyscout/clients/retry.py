"""Bounded fixed-delay retry for upstream reads."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from aiolimiter import AsyncLimiter

from ..config import RetryConfig
from ..exceptions import NotFoundError, UpstreamUnavailableError
from ..logging import gateway_logger as logger

T = TypeVar("T")

# Failures worth another attempt. 404 is excluded: it is a NotFound, not an outage.
TRANSIENT_ERRORS = (httpx.TransportError, httpx.HTTPStatusError)


@dataclass(frozen=True)
class RetryPolicy:
    """At most `retries` re-attempts, `delay` seconds apart."""

    retries: int = 2
    delay: float = 1.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(retries=config.retries, delay=config.delay)

    @property
    def max_attempts(self) -> int:
        return max(0, self.retries) + 1

    async def run(self, call: Callable[[], Awaitable[T]], *, label: str = "request") -> T:
        """Run `call` under the policy.

        Raises:
            NotFoundError: Raised by `call`; never retried.
            UpstreamUnavailableError: Every attempt failed transiently.
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await call()
            except TRANSIENT_ERRORS as e:
                last_error = e
                if attempt < self.max_attempts:
                    logger.warning(
                        f"{label} failed ({attempt}/{self.max_attempts}): {e}; "
                        f"retrying in {self.delay}s"
                    )
                    await asyncio.sleep(self.delay)

        logger.error(f"{label} failed after {self.max_attempts} attempts: {last_error}")
        raise UpstreamUnavailableError(
            f"{label} failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error


async def get_json(
    http: httpx.AsyncClient,
    url: str,
    policy: RetryPolicy,
    *,
    params: dict[str, Any] | None = None,
    limiter: AsyncLimiter | None = None,
    label: str = "GET",
) -> Any:
    """GET a JSON document under a retry policy.

    A 404 raises NotFoundError at once; other non-2xx statuses and
    transport errors are retried. A body that is not JSON raises
    UpstreamUnavailableError without a retry.
    """

    async def attempt() -> Any:
        if limiter is not None:
            async with limiter:
                resp = await http.get(url, params=params)
        else:
            resp = await http.get(url, params=params)
        if resp.status_code == 404:
            raise NotFoundError(label)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamUnavailableError(f"{label}: response is not JSON") from e

    return await policy.run(attempt, label=label)
