"""
SQLAlchemy ORM models  (maps to PostgreSQL; SQLite in tests).

Tables
------
* ``users``         -- actor profiles (role, status, contact fields)
* ``rides``         -- transport requests and their lifecycle
* ``wallets``       -- one balance per driver
* ``transactions``  -- append-only ledger of balance deltas
* ``withdrawals``   -- driver withdrawal requests

Indexes
-------
* **B-Tree** on ``rides.status``, ``requester_id``, ``driver_id`` and
  ``created_at`` for the listing queries.
* **B-Tree** on ``transactions.driver_id`` / ``created_at`` and
  ``withdrawals.driver_id``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from .database import Base
from src.domain.enums import (
    ActorRole,
    ActorStatus,
    RideStatus,
    TransactionType,
    WithdrawalStatus,
)

MONEY = Numeric(12, 2)
# Running totals outgrow any single amount
BALANCE = Numeric(18, 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _str_enum(enum_cls):
    """Store enum *values* ("in_progress") as plain strings."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=40,
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)  # identity-provider uid
    role = Column(_str_enum(ActorRole), nullable=False)
    status = Column(_str_enum(ActorStatus), default=ActorStatus.ACTIVE, nullable=False)
    name = Column(String(120), nullable=False)
    phone = Column(String(40), nullable=True)
    email = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(32), primary_key=True, default=_new_id)

    requester_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    requester_name = Column(String(120), nullable=True)
    requester_phone = Column(String(40), nullable=True)

    origin_address = Column(String(500), nullable=False)
    destination_address = Column(String(500), nullable=False)
    city = Column(String(120), nullable=True)
    price = Column(MONEY, nullable=False)

    is_product = Column(Boolean, default=False, nullable=False)
    product_description = Column(String(500), nullable=True)
    product_size = Column(String(60), nullable=True)
    product_weight = Column(Numeric(10, 3), nullable=True)

    status = Column(_str_enum(RideStatus), default=RideStatus.PENDING, nullable=False)

    driver_id = Column(String(128), ForeignKey("users.id"), nullable=True)
    driver_name = Column(String(120), nullable=True)
    driver_phone = Column(String(40), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_rides_status_created", "status", "created_at"),
        Index("idx_rides_requester", "requester_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_city", "city"),
        CheckConstraint("price > 0", name="ck_rides_price_positive"),
    )


class WalletModel(Base):
    __tablename__ = "wallets"

    driver_id = Column(String(128), ForeignKey("users.id"), primary_key=True)
    balance = Column(BALANCE, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )


class TransactionModel(Base):
    __tablename__ = "transactions"

    # Monotonic id doubles as the ordering tie-break for equal timestamps
    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    type = Column(_str_enum(TransactionType), nullable=False)
    amount = Column(MONEY, nullable=False)  # +credit / -debit
    balance = Column(BALANCE, nullable=False)  # wallet balance after this entry
    description = Column(String(255), nullable=False)
    ride_id = Column(String(32), ForeignKey("rides.id"), nullable=True)
    withdrawal_id = Column(String(32), ForeignKey("withdrawals.id"), nullable=True)
    status = Column(_str_enum(WithdrawalStatus), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_transactions_driver_created", "driver_id", "created_at"),
        Index("idx_transactions_withdrawal", "withdrawal_id"),
    )


class WithdrawalModel(Base):
    __tablename__ = "withdrawals"

    id = Column(String(32), primary_key=True, default=_new_id)
    driver_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    driver_name = Column(String(120), nullable=True)
    amount = Column(MONEY, nullable=False)
    bank = Column(String(120), nullable=False)
    agency = Column(String(40), nullable=False)
    account = Column(String(40), nullable=False)
    status = Column(
        _str_enum(WithdrawalStatus), default=WithdrawalStatus.PENDING, nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_withdrawals_driver", "driver_id"),
        CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )
