"""Explicit session object holding the connected upstream clients."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .clients.gamma import GammaClient
from .clients.polymarket import PolymarketClient
from .clients.positions import PositionsClient
from .config import Settings
from .engine.executor import OrderExecutor
from .engine.validator import RequirementValidator
from .logging import engine_logger as logger


class Session:
    """Connected clients plus settings, passed to every service operation.

    Build one per process with ``Session.open``; tests can construct one
    directly around fake clients.

    Usage:
        async with Session.open() as session:
            markets = await search_markets(session, "bitcoin")
    """

    def __init__(
        self,
        settings: Settings,
        gamma: GammaClient,
        clob: PolymarketClient,
        positions: PositionsClient,
    ):
        self.settings = settings
        self.gamma = gamma
        self.clob = clob
        self.positions = positions
        self.validator = RequirementValidator(clob)
        self.executor = OrderExecutor(clob, self.validator)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Session":
        """Create an unconnected session from settings (environment if None)."""
        settings = settings or Settings.from_env()
        pm = settings.polymarket
        return cls(
            settings=settings,
            gamma=GammaClient(pm.gamma_host, settings.retry),
            clob=PolymarketClient(pm, settings.retry),
            positions=PositionsClient(pm.data_host, settings.retry),
        )

    @property
    def can_trade(self) -> bool:
        return self.clob.can_trade

    @property
    def wallet_address(self) -> Optional[str]:
        return self.clob.wallet_address

    async def connect(self) -> None:
        """Connect all clients; on failure, close whatever was opened."""
        try:
            await self.gamma.connect()
            await self.positions.connect()
            await self.clob.connect()
        except BaseException:
            await self.close()
            raise
        logger.info(f"Session ready (trading={'on' if self.can_trade else 'off'})")

    async def close(self) -> None:
        await self.clob.close()
        await self.positions.close()
        await self.gamma.close()

    @classmethod
    @asynccontextmanager
    async def open(cls, settings: Optional[Settings] = None) -> AsyncIterator["Session"]:
        """Connect a session for the duration of the block."""
        session = cls.from_settings(settings)
        await session.connect()
        try:
            yield session
        finally:
            await session.close()
