"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from src.domain.enums import RideStatus, TransactionType, WithdrawalStatus

T = TypeVar("T")


# ── Envelope ──────────────────────────────────────────────────────────


class Envelope(BaseModel, Generic[T]):
    """Every response body: ``{success, message?, data?}``."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PageResponse(BaseModel, Generic[T]):
    items: list[T] = []
    offset: int = 0
    next_offset: Optional[int] = None


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    origin_address: str = Field(..., min_length=1, max_length=500)
    destination_address: str = Field(..., min_length=1, max_length=500)
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    is_product: bool
    city: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=500)
    size: Optional[str] = Field(None, max_length=60)
    weight: Optional[Decimal] = Field(None, gt=0)


class RideStatusUpdateRequest(BaseModel):
    status: RideStatus


class BankAccount(BaseModel):
    bank: str = Field(..., min_length=1, max_length=120)
    agency: str = Field(..., min_length=1, max_length=40)
    account: str = Field(..., min_length=1, max_length=40)


class WithdrawalCreateRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    bank_account: BankAccount


# ── Responses ─────────────────────────────────────────────────────────


class ProductResponse(BaseModel):
    description: str
    size: str
    weight: Decimal


class RideResponse(BaseModel):
    id: str
    requester_id: str
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None
    origin_address: str
    destination_address: str
    city: Optional[str] = None
    price: Decimal
    is_product: bool
    product: Optional[ProductResponse] = None
    status: RideStatus
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, ride) -> "RideResponse":
        product = None
        if ride.is_product:
            product = ProductResponse(
                description=ride.product_description,
                size=ride.product_size,
                weight=ride.product_weight,
            )
        return cls(
            id=ride.id,
            requester_id=ride.requester_id,
            requester_name=ride.requester_name,
            requester_phone=ride.requester_phone,
            origin_address=ride.origin_address,
            destination_address=ride.destination_address,
            city=ride.city,
            price=ride.price,
            is_product=ride.is_product,
            product=product,
            status=ride.status,
            driver_id=ride.driver_id,
            driver_name=ride.driver_name,
            driver_phone=ride.driver_phone,
            created_at=ride.created_at,
            updated_at=ride.updated_at,
            accepted_at=ride.accepted_at,
            started_at=ride.started_at,
            completed_at=ride.completed_at,
            cancelled_at=ride.cancelled_at,
        )


class BalanceResponse(BaseModel):
    balance: Decimal


class TransactionResponse(BaseModel):
    id: int
    type: TransactionType
    amount: Decimal
    balance: Decimal
    description: str
    ride_id: Optional[str] = None
    withdrawal_id: Optional[str] = None
    status: Optional[WithdrawalStatus] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WithdrawalResponse(BaseModel):
    id: str
    amount: Decimal
    bank: str
    agency: str
    account: str
    status: WithdrawalStatus
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WithdrawalDetailResponse(WithdrawalResponse):
    """A withdrawal with its debit and, once cancelled, the reversing credit."""

    transactions: list[TransactionResponse] = []


class DriverStatsResponse(BaseModel):
    total_rides: int
    total_earnings: Decimal


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"
    redis: str = "ok"
