"""
Durable store facade: one atomic unit of work per logical operation.

``Store.with_transaction(fn)`` opens a session, begins a transaction,
hands *fn* a ``UnitOfWork`` exposing every repository bound to that
session, and commits only if *fn* returns.  Any exception rolls the whole
unit back, so no partial ride/wallet/ledger state is ever visible.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repositories import (
    RideRepository,
    TransactionRepository,
    UserRepository,
    WalletRepository,
    WithdrawalRepository,
)
from src.domain.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection-level failures worth retrying; integrity errors are bugs, not outages
_TRANSIENT_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
)


class UnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rides = RideRepository(session)
        self.wallets = WalletRepository(session)
        self.transactions = TransactionRepository(session)
        self.withdrawals = WithdrawalRepository(session)
        self.users = UserRepository(session)


class Store:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 10.0,
    ):
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds

    async def with_transaction(self, fn: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run *fn* atomically; map transient failures to ``StoreUnavailableError``."""
        try:
            return await asyncio.wait_for(self._run(fn), timeout=self.timeout_seconds)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("Store unavailable: %s", exc, exc_info=True)
            raise StoreUnavailableError(
                "Service temporarily unavailable, please retry"
            ) from exc

    async def _run(self, fn: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            async with session.begin():
                return await fn(UnitOfWork(session))

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await asyncio.wait_for(
                    session.execute(text("SELECT 1")), timeout=self.timeout_seconds
                )
            return True
        except _TRANSIENT_ERRORS:
            logger.warning("Database ping failed", exc_info=True)
            return False
