"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  State-changing writes on contended fields
(ride status, wallet balance, withdrawal status) are conditional updates
keyed on the expected prior value; they report whether they won instead
of overwriting blindly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    RideModel,
    TransactionModel,
    UserModel,
    WalletModel,
    WithdrawalModel,
)
from src.domain.enums import RideStatus, TransactionType, WithdrawalStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: str, *, refresh: bool = False) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id, populate_existing=refresh)

    async def transition(
        self,
        ride_id: str,
        expected: RideStatus,
        new: RideStatus,
        **values: Any,
    ) -> bool:
        """Compare-and-swap the status column.

        Returns ``False`` when the row no longer holds *expected* (another
        writer got there first); nothing is written in that case.
        """
        now = _utcnow()
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == expected)
            .values(status=new, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_pending(
        self, *, city: str | None, offset: int, limit: int
    ) -> list[RideModel]:
        query = select(RideModel).where(RideModel.status == RideStatus.PENDING)
        if city:
            query = query.where(RideModel.city == city)
        result = await self.session.execute(
            query.order_by(RideModel.created_at.desc(), RideModel.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_requester(
        self, requester_id: str, *, offset: int, limit: int
    ) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.requester_id == requester_id)
            .order_by(RideModel.created_at.desc(), RideModel.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_driver(
        self, driver_id: str, *, offset: int, limit: int
    ) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_id == driver_id)
            .order_by(RideModel.created_at.desc(), RideModel.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def completed_totals(self, driver_id: str) -> tuple[int, Decimal]:
        """Number of completed rides and the sum of their prices."""
        result = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(RideModel.price), 0))
            .select_from(RideModel)
            .where(
                RideModel.driver_id == driver_id,
                RideModel.status == RideStatus.COMPLETED,
            )
        )
        count, total = result.one()
        return int(count or 0), Decimal(str(total or 0)).quantize(Decimal("0.01"))


class WalletRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, driver_id: str) -> Optional[WalletModel]:
        return await self.session.get(WalletModel, driver_id, populate_existing=True)

    async def ensure(self, driver_id: str) -> None:
        """Create a zero-balance wallet unless one already exists."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            if await self.get(driver_id) is None:
                self.session.add(WalletModel(driver_id=driver_id, balance=Decimal("0.00")))
                await self.session.flush()
            return
        await self.session.execute(
            insert(WalletModel)
            .values(driver_id=driver_id, balance=Decimal("0.00"), updated_at=_utcnow())
            .on_conflict_do_nothing(index_elements=["driver_id"])
        )

    async def apply_delta(self, driver_id: str, delta: Decimal) -> Optional[Decimal]:
        """Atomically add *delta* to the balance unless it would go negative.

        The guard and the write are one statement, so two concurrent debits
        cannot both pass the check.  Returns the new balance, or ``None`` if
        the wallet is missing or the guard rejected the change.
        """
        # round() keeps backends without exact NUMERIC (SQLite) on cents
        new_value = func.round(WalletModel.balance + delta, 2)
        result = await self.session.execute(
            update(WalletModel)
            .where(WalletModel.driver_id == driver_id, new_value >= 0)
            .values(balance=new_value, updated_at=_utcnow())
            .returning(WalletModel.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            return None
        return Decimal(str(new_balance)).quantize(Decimal("0.01"))


class TransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: TransactionModel) -> TransactionModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_driver(
        self,
        driver_id: str,
        *,
        type: TransactionType | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[TransactionModel]:
        query = select(TransactionModel).where(TransactionModel.driver_id == driver_id)
        if type is not None:
            query = query.where(TransactionModel.type == type)
        if start is not None:
            query = query.where(TransactionModel.created_at >= start)
        if end is not None:
            query = query.where(TransactionModel.created_at <= end)
        result = await self.session.execute(
            query.order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_withdrawal(self, withdrawal_id: str) -> list[TransactionModel]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.withdrawal_id == withdrawal_id)
            .order_by(TransactionModel.id)
        )
        return list(result.scalars().all())

    async def sum_for_driver(self, driver_id: str) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(TransactionModel.amount), 0)).where(
                TransactionModel.driver_id == driver_id
            )
        )
        return Decimal(str(result.scalar() or 0)).quantize(Decimal("0.01"))


class WithdrawalRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, withdrawal: WithdrawalModel) -> WithdrawalModel:
        self.session.add(withdrawal)
        await self.session.flush()
        return withdrawal

    async def get_by_id(
        self, withdrawal_id: str, *, refresh: bool = False
    ) -> Optional[WithdrawalModel]:
        return await self.session.get(
            WithdrawalModel, withdrawal_id, populate_existing=refresh
        )

    async def mark_cancelled(self, withdrawal_id: str) -> bool:
        """pending -> cancelled, only if still pending."""
        result = await self.session.execute(
            update(WithdrawalModel)
            .where(
                WithdrawalModel.id == withdrawal_id,
                WithdrawalModel.status == WithdrawalStatus.PENDING,
            )
            .values(status=WithdrawalStatus.CANCELLED, cancelled_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user
