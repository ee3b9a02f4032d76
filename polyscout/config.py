"""Configuration classes for the discovery and order engine."""

import os
from dataclasses import dataclass, field


@dataclass
class PolymarketConfig:
    """Configuration for the exchange clients.

    Attributes:
        private_key: Wallet private key for signing (empty = read-only mode)
        proxy_address: Proxy/funder address (optional, for GNOSIS_SAFE)
        api_key: API key (optional, will derive if not set)
        api_secret: API secret
        api_passphrase: API passphrase
        signature_type: 0 = EOA, 1 = POLY_PROXY, 2 = POLY_GNOSIS_SAFE
        chain_id: Chain the exchange settles on (137 = Polygon)
        clob_host: Trading API base URL
        gamma_host: Discovery API base URL
        data_host: Positions API base URL
    """

    private_key: str = ""
    proxy_address: str = ""
    api_key: str = ""
    api_secret: str = ""
    api_passphrase: str = ""
    signature_type: int = 2
    chain_id: int = 137
    clob_host: str = "https://clob.polymarket.com"
    gamma_host: str = "https://gamma-api.polymarket.com"
    data_host: str = "https://data-api.polymarket.com"

    @classmethod
    def from_env(cls) -> "PolymarketConfig":
        """Load configuration from environment variables.

        Environment variables:
            PM_PRIVATE_KEY: Wallet private key
            PM_PROXY_ADDRESS: Proxy/funder address
            PM_API_KEY: API key
            PM_API_SECRET: API secret
            PM_API_PASSPHRASE: API passphrase
            PM_SIGNATURE_TYPE: Signature type (default 2)
            PM_CLOB_HOST / PM_GAMMA_HOST / PM_DATA_HOST: API base URLs
        """
        defaults = cls()
        return cls(
            private_key=os.getenv("PM_PRIVATE_KEY", ""),
            proxy_address=os.getenv("PM_PROXY_ADDRESS", ""),
            api_key=os.getenv("PM_API_KEY", ""),
            api_secret=os.getenv("PM_API_SECRET", ""),
            api_passphrase=os.getenv("PM_API_PASSPHRASE", ""),
            signature_type=int(os.getenv("PM_SIGNATURE_TYPE", str(defaults.signature_type))),
            clob_host=os.getenv("PM_CLOB_HOST", defaults.clob_host).rstrip("/"),
            gamma_host=os.getenv("PM_GAMMA_HOST", defaults.gamma_host).rstrip("/"),
            data_host=os.getenv("PM_DATA_HOST", defaults.data_host).rstrip("/"),
        )

    @property
    def can_trade(self) -> bool:
        """Whether a signing key is configured."""
        return bool(self.private_key)

    @property
    def has_api_creds(self) -> bool:
        return bool(self.api_key and self.api_secret and self.api_passphrase)

    def validate(self) -> None:
        """Validate configuration for trading.

        Raises:
            ValueError: If required fields are missing.
        """
        if not self.private_key:
            raise ValueError("private_key is required")
        if self.signature_type not in (0, 1, 2):
            raise ValueError(f"Unknown signature_type: {self.signature_type}")


@dataclass
class RetryConfig:
    """Bounded fixed-delay retry policy for upstream reads.

    Attributes:
        retries: Re-attempts after the first try
        delay: Fixed delay between attempts in seconds
        timeout: HTTP timeout in seconds
        rate_limit: Requests per second per public client
    """

    retries: int = 2
    delay: float = 1.0
    timeout: float = 10.0
    rate_limit: float = 10.0

    @classmethod
    def from_env(cls) -> "RetryConfig":
        """Load retry settings from PM_RETRIES, PM_RETRY_DELAY, PM_HTTP_TIMEOUT, PM_RATE_LIMIT."""
        return cls(
            retries=int(os.getenv("PM_RETRIES", "2")),
            delay=float(os.getenv("PM_RETRY_DELAY", "1.0")),
            timeout=float(os.getenv("PM_HTTP_TIMEOUT", "10.0")),
            rate_limit=float(os.getenv("PM_RATE_LIMIT", "10.0")),
        )


@dataclass(frozen=True)
class RelevanceFilter:
    """Thresholds a scored market must exceed to be returned.

    Attributes:
        min_score: Relevance score must be strictly greater than this
        min_volume: 24h volume must be strictly greater than this
        min_liquidity: Liquidity floor forwarded to the discovery API
    """

    min_score: float = 0.1
    min_volume: float = 100.0
    min_liquidity: float = 500.0


RISK_PROFILES: dict[str, RelevanceFilter] = {
    "conservative": RelevanceFilter(min_score=0.1, min_volume=1000.0, min_liquidity=1000.0),
    "moderate": RelevanceFilter(min_score=0.1, min_volume=100.0, min_liquidity=500.0),
    "aggressive": RelevanceFilter(min_score=0.01, min_volume=0.0, min_liquidity=100.0),
}


@dataclass
class SearchConfig:
    """Search tuning.

    Attributes:
        profiles: Risk tolerance -> relevance filter
        fetch_multiplier: Listings fetched per requested result
        max_fetch: Upper bound on listings fetched per query
        listing_window_days: Only listings started within this window
        max_queries: Cap on expanded interest queries
    """

    profiles: dict[str, RelevanceFilter] = field(default_factory=lambda: dict(RISK_PROFILES))
    fetch_multiplier: int = 3
    max_fetch: int = 100
    listing_window_days: int = 30
    max_queries: int = 8

    def profile(self, risk_tolerance: str) -> RelevanceFilter:
        """Get the filter for a risk tolerance, falling back to moderate."""
        return self.profiles.get(risk_tolerance, self.profiles["moderate"])

    def fetch_size(self, limit: int) -> int:
        return max(1, min(limit * self.fetch_multiplier, self.max_fetch))


@dataclass
class Settings:
    """All engine settings."""

    polymarket: PolymarketConfig = field(default_factory=PolymarketConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            polymarket=PolymarketConfig.from_env(),
            retry=RetryConfig.from_env(),
        )
