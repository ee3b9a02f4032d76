"""Trading API client: market detail, order books, balances and order submission."""

import asyncio
from time import time

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import (
    ApiCreds,
    AssetType,
    BalanceAllowanceParams,
    MarketOrderArgs,
    OrderArgs,
    OrderType,
)
from py_clob_client.order_builder.constants import BUY, SELL

from ..config import PolymarketConfig, RetryConfig
from ..exceptions import (
    ExchangeRejectedError,
    InsufficientBalanceError,
    NotConnectedError,
    NotFoundError,
    UpstreamError,
    UpstreamUnavailableError,
)
from ..logging import gateway_logger as logger
from ..models import BalanceAllowance, Order, OrderBook, OrderKind, OrderStatus, Side
from .base import BaseClient
from .gamma import unwrap_listing_payload
from .retry import get_json

# Balances and allowances are reported in base units (6 decimals).
UNIT_SCALE = 1e6

ORDER_TYPES = {
    OrderKind.LIMIT: OrderType.GTC,
    OrderKind.MARKET: OrderType.FOK,
    OrderKind.GTD: OrderType.GTD,
}


def parse_balance_allowance(result: dict | None) -> BalanceAllowance:
    """Scale a balance-allowance response, summing every allowance entry."""
    result = result or {}
    balance = float(result.get("balance") or 0) / UNIT_SCALE

    allowances = result.get("allowances")
    if isinstance(allowances, dict):
        allowance = sum(float(v or 0) for v in allowances.values()) / UNIT_SCALE
    else:
        allowance = float(result.get("allowance") or 0) / UNIT_SCALE

    return BalanceAllowance(balance=balance, allowance=allowance)


def parse_order_book(token_id: str, book: dict) -> OrderBook:
    """Build a sorted OrderBook from a raw `{bids, asks}` payload.

    Raises:
        UpstreamUnavailableError: A level is missing its price or size, or
            either is not a number.
    """
    try:
        bids = [(float(b["price"]), float(b["size"])) for b in book.get("bids") or []]
        asks = [(float(a["price"]), float(a["size"])) for a in book.get("asks") or []]
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamUnavailableError(f"malformed order book for {token_id}: {e!r}") from e

    # Sort: bids descending (highest first), asks ascending (lowest first)
    bids.sort(key=lambda x: x[0], reverse=True)
    asks.sort(key=lambda x: x[0])

    return OrderBook(token_id=token_id, bids=bids, asks=asks, timestamp=time())


class PolymarketClient(BaseClient):
    """Trading API client.

    Public reads (market detail, order book, listings) go through httpx with
    the shared retry policy. Signing and authenticated calls go through
    py_clob_client, which acts as the wallet. Without a private key the
    client runs read-only and every signing call raises NotConnectedError.
    """

    name = "trading"

    def __init__(self, config: PolymarketConfig | None = None, retry: RetryConfig | None = None):
        """Initialize trading client.

        Args:
            config: Configuration object. If None, loads from environment.
            retry: Retry/timeout settings for public reads.
        """
        self._config = config or PolymarketConfig.from_env()
        super().__init__(self._config.clob_host, retry)
        self._client: ClobClient | None = None

    @property
    def can_trade(self) -> bool:
        """Check if a signing wallet is ready."""
        return self._client is not None

    @property
    def wallet_address(self) -> str | None:
        """Address holding funds: the proxy/funder if set, else the signer."""
        if self._config.proxy_address:
            return self._config.proxy_address
        if self._client is not None:
            return self._client.get_address()
        return None

    async def connect(self) -> None:
        """Open HTTP client and, when a key is configured, authenticate."""
        await super().connect()

        if not self._config.can_trade:
            logger.info("No private key configured - trading client is read-only")
            return

        try:
            self._config.validate()
        except ValueError as e:
            logger.error(f"Configuration validation failed: {e}")
            await self.close()
            raise NotConnectedError(str(e)) from e

        try:
            client = ClobClient(
                host=self.host,
                key=self._config.private_key,
                chain_id=self._config.chain_id,
                signature_type=self._config.signature_type,
                funder=self._config.proxy_address or None,
            )

            if self._config.has_api_creds:
                creds = ApiCreds(
                    api_key=self._config.api_key,
                    api_secret=self._config.api_secret,
                    api_passphrase=self._config.api_passphrase,
                )
                logger.debug("Using provided API credentials")
            else:
                creds = await asyncio.to_thread(client.create_or_derive_api_creds)
                logger.debug("Derived API credentials")
            client.set_api_creds(creds)
            self._client = client

            logger.info("Trading client authenticated")

        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            await self.close()
            raise NotConnectedError(f"Failed to authenticate: {e}") from e

    async def close(self) -> None:
        """Close HTTP client and drop the signer."""
        await super().close()
        self._client = None

    def _ensure_trading(self) -> ClobClient:
        """Raise unless a signing wallet is configured."""
        self._ensure_connected()
        if self._client is None:
            raise NotConnectedError("Wallet not configured - trading is unavailable")
        return self._client

    # ---- public reads ----

    async def fetch_market_detail(self, condition_id: str) -> dict:
        """Fetch the raw trading-API record for a condition id.

        Raises:
            NotFoundError: No market with that condition id.
            UpstreamUnavailableError: Retries exhausted.
        """
        self._ensure_connected()
        payload = await get_json(
            self._http,
            f"{self.host}/markets/{condition_id}",
            self.policy,
            limiter=self._limiter,
            label=f"market {condition_id[:20]}",
        )
        if not isinstance(payload, dict) or not payload.get("condition_id"):
            raise NotFoundError(f"market {condition_id}")
        return payload

    async def fetch_order_book(self, token_id: str) -> OrderBook:
        """Fetch the order book for one token.

        Raises:
            NotFoundError: No order book exists for the token.
            UpstreamUnavailableError: Retries exhausted.
        """
        self._ensure_connected()
        book = await get_json(
            self._http,
            f"{self.host}/book",
            self.policy,
            params={"token_id": token_id},
            limiter=self._limiter,
            label=f"order book {token_id[:20]}",
        )
        if not isinstance(book, dict):
            raise NotFoundError(f"order book {token_id}")
        return parse_order_book(token_id, book)

    async def fetch_listings(self, limit: int = 100) -> list[dict]:
        """Fetch raw listings from the trading API (fallback discovery source)."""
        self._ensure_connected()
        try:
            payload = await get_json(
                self._http,
                f"{self.host}/markets",
                self.policy,
                limiter=self._limiter,
                label="trading listings",
            )
        except UpstreamError as e:
            logger.warning(f"Trading listings unavailable, returning no markets: {e}")
            return []
        return unwrap_listing_payload(payload)[:limit]

    # ---- authenticated ----

    async def get_collateral_balance(self) -> BalanceAllowance:
        """Get collateral (USDC) balance and summed allowance."""
        client = self._ensure_trading()
        params = BalanceAllowanceParams(asset_type=AssetType.COLLATERAL)
        result = await asyncio.to_thread(client.get_balance_allowance, params)
        state = parse_balance_allowance(result)
        logger.debug(f"Collateral: balance={state.balance:.2f} allowance={state.allowance:.2f}")
        return state

    async def get_token_balance(self, token_id: str) -> BalanceAllowance:
        """Get held shares and allowance for one outcome token."""
        client = self._ensure_trading()
        params = BalanceAllowanceParams(
            asset_type=AssetType.CONDITIONAL,
            token_id=token_id,
        )
        result = await asyncio.to_thread(client.get_balance_allowance, params)
        state = parse_balance_allowance(result)
        logger.debug(f"Token {token_id[:20]}...: balance={state.balance:.2f}")
        return state

    async def post_limit_order(
        self,
        token_id: str,
        side: Side,
        price: float,
        size: float,
        kind: OrderKind = OrderKind.LIMIT,
        expiration: int = 0,
    ) -> str:
        """Sign and post a resting (GTC) or good-till-date (GTD) order.

        Returns:
            The exchange's order id.

        Raises:
            NotConnectedError: No wallet configured.
            ExchangeRejectedError: Exchange refused the order.
        """
        client = self._ensure_trading()
        order_type = ORDER_TYPES[kind]

        logger.info(f"Posting order: {side.value} {size} @ {price} ({order_type})")

        order_args = OrderArgs(
            token_id=token_id,
            price=price,
            size=size,
            side=BUY if side == Side.BUY else SELL,
            expiration=expiration,
        )

        try:
            signed_order = await asyncio.to_thread(client.create_order, order_args)
            resp = await asyncio.to_thread(client.post_order, signed_order, order_type)
        except Exception as e:
            logger.error(f"Limit order failed: {e}")
            logger.error(
                f"Order params: token_id={token_id[:20]}..., side={side.value}, "
                f"price={price}, size={size}, order_type={order_type}"
            )
            raise self._rejection(e) from e

        return self._order_id(resp)

    async def post_market_order(
        self,
        token_id: str,
        side: Side,
        amount: float,
        price: float = 0.0,
    ) -> str:
        """Sign and post a fill-or-kill market order.

        Note: the SDK's MarketOrderArgs.amount means:
          - BUY: USD amount to spend (price = worst acceptable price)
          - SELL: shares to sell (price = floor price)
        A price of 0 lets the SDK derive it from the current book.

        Returns:
            The exchange's order id.
        """
        client = self._ensure_trading()

        logger.info(f"Posting market {side.value}: amount={amount} price={price or 'book'}")

        order_args = MarketOrderArgs(
            token_id=token_id,
            amount=amount,
            side=BUY if side == Side.BUY else SELL,
            price=price,
            order_type=OrderType.FOK,
        )

        try:
            signed_order = await asyncio.to_thread(client.create_market_order, order_args)
            resp = await asyncio.to_thread(client.post_order, signed_order, OrderType.FOK)
        except Exception as e:
            logger.error(f"Market order failed: {e}")
            logger.error(
                f"Order params: token_id={token_id[:20]}..., side={side.value}, "
                f"amount={amount}, price={price}"
            )
            raise self._rejection(e) from e

        return self._order_id(resp)

    async def get_open_orders(self) -> list[Order]:
        """Get list of open orders."""
        client = self._ensure_trading()

        result = await asyncio.to_thread(client.get_orders)
        orders = []

        for o in result or []:
            side_str = o.get("side", "BUY")
            status_str = str(o.get("status", "OPEN")).upper()
            created = o.get("created_at")

            orders.append(
                Order(
                    id=o.get("id", ""),
                    token_id=o.get("asset_id", ""),
                    side=Side.BUY if side_str == "BUY" else Side.SELL,
                    price=float(o.get("price", 0)),
                    size=float(o.get("original_size", 0)),
                    status=OrderStatus(status_str)
                    if status_str in OrderStatus.__members__
                    else OrderStatus.OPEN,
                    filled_size=float(o.get("size_matched", 0)),
                    market=o.get("market", ""),
                    outcome=o.get("outcome", ""),
                    created_at=float(created) if created else time(),
                )
            )

        logger.debug(f"Retrieved {len(orders)} open orders")
        return orders

    @staticmethod
    def _rejection(error: Exception) -> ExchangeRejectedError:
        """Translate an SDK failure into the rejection taxonomy."""
        message = getattr(error, "error_msg", None) or str(error)
        if isinstance(message, dict):
            message = message.get("error") or str(message)
        message = str(message)
        lowered = message.lower()
        if "insufficient" in lowered or "not enough balance" in lowered:
            return InsufficientBalanceError(message)
        return ExchangeRejectedError(message)

    @staticmethod
    def _order_id(resp) -> str:
        """Extract the order id, treating an unsuccessful post as a rejection."""
        if not isinstance(resp, dict):
            raise ExchangeRejectedError(f"Unexpected exchange response: {resp!r}")

        order_id = resp.get("orderID") or resp.get("id") or ""
        error_msg = resp.get("errorMsg") or resp.get("error") or ""
        if resp.get("success") is False or not order_id:
            raise ExchangeRejectedError(error_msg or "Exchange did not return an order id")

        logger.info(f"Order accepted: id={order_id[:20]}... status={resp.get('status', '')}")
        return order_id
