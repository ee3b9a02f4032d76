"""Pytest configuration and fixtures for client tests."""

import asyncio
import os

import httpx
import pytest
from dotenv import load_dotenv

from polyscout.config import PolymarketConfig, RetryConfig

# Load environment variables
load_dotenv()


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring live API connection"
    )


@pytest.fixture(autouse=True)
def _check_live_credentials(request):
    """Auto-skip live tests unless enabled."""
    if not any(m.name == "live" for m in request.node.iter_markers()):
        return

    if not os.getenv("PM_LIVE_TESTS"):
        pytest.skip("PM_LIVE_TESTS not set - skipping live test")

    if "trading" in request.node.name and not os.getenv("PM_PRIVATE_KEY"):
        pytest.skip("PM_PRIVATE_KEY not set - skipping live trading test")


def _response(status_code: int = 200, json_body=None, url: str = "https://test.invalid/markets") -> httpx.Response:
    """Build an httpx.Response bound to a request, so raise_for_status works."""
    return httpx.Response(status_code, json=json_body, request=httpx.Request("GET", url))


@pytest.fixture
def make_response():
    """Factory for httpx responses: make_response(status, body)."""
    return _response


@pytest.fixture
def fast_retry():
    """Retry settings with no delay between attempts."""
    return RetryConfig(retries=2, delay=0.0, timeout=5.0, rate_limit=1000.0)


@pytest.fixture
def read_only_config():
    """Config with no private key."""
    return PolymarketConfig(
        clob_host="https://clob.test.invalid",
        gamma_host="https://gamma.test.invalid",
        data_host="https://data.test.invalid",
    )


@pytest.fixture
def inline_to_thread():
    """Patch asyncio.to_thread to call the function inline."""
    async def _call(f, *args, **kwargs):
        return f(*args, **kwargs)
    return _call


@pytest.fixture(scope="session")
def pm_live_market():
    """Get a live (condition_id, token_id) pair for testing."""
    async def fetch():
        async with httpx.AsyncClient() as http:
            resp = await http.get(
                "https://clob.polymarket.com/sampling-markets", timeout=10
            )
            markets = resp.json().get("data", [])
            for m in markets[:20]:
                if m.get("closed"):
                    continue
                tokens = m.get("tokens", [])
                if tokens and tokens[0].get("token_id"):
                    return m.get("condition_id"), tokens[0]["token_id"]
        return None, None

    if not os.getenv("PM_LIVE_TESTS"):
        return None, None
    return asyncio.run(fetch())
