"""
Domain value objects and the rules the engines enforce on records.

Patterns used
-------------
- **State Pattern** on rides: ``check_transition`` enforces the lifecycle
  (PENDING -> ACCEPTED -> IN_PROGRESS -> COMPLETED | CANCELLED).
- Value objects validate themselves on construction, so an engine never
  sees a half-filled product block or bank account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Generic, Optional, Protocol, TypeVar

from .enums import ActorRole, ActorStatus, RideStatus, RIDE_TRANSITIONS
from .errors import ConflictError, ForbiddenError, ValidationError


class InvalidStateTransition(ConflictError):
    """Raised when a ride status change violates the state machine."""


def check_transition(current: RideStatus, new: RideStatus) -> None:
    """Raise unless *current* -> *new* is a legal ride transition."""
    allowed = RIDE_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition ride from {current.value} to {new.value}"
        )


def _required(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Actor:
    """An authenticated identity together with its profile."""

    id: str
    role: ActorRole
    status: ActorStatus = ActorStatus.ACTIVE
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ActorStatus.ACTIVE

    def require_active(self) -> None:
        if not self.is_active:
            raise ForbiddenError("User is inactive")

    def require_role(self, role: ActorRole) -> None:
        if self.role != role:
            raise ForbiddenError(f"Only {role.value}s may perform this operation")


@dataclass(frozen=True)
class ProductDetail:
    description: str
    size: str
    weight: Decimal

    @classmethod
    def build(
        cls,
        description: Optional[str],
        size: Optional[str],
        weight: Optional[Decimal | int | str],
    ) -> "ProductDetail":
        if weight is None or isinstance(weight, bool):
            raise ValidationError("Product weight is required")
        try:
            weight_value = Decimal(str(weight))
        except InvalidOperation:
            raise ValidationError("Product weight must be a number") from None
        if not weight_value.is_finite() or weight_value <= 0:
            raise ValidationError("Product weight must be greater than zero")
        return cls(
            description=_required(description, "Product description"),
            size=_required(size, "Product size"),
            weight=weight_value,
        )


@dataclass(frozen=True)
class BankDetails:
    bank: str
    agency: str
    account: str

    @classmethod
    def build(
        cls, bank: Optional[str], agency: Optional[str], account: Optional[str]
    ) -> "BankDetails":
        try:
            return cls(
                bank=_required(bank, "bank"),
                agency=_required(agency, "agency"),
                account=_required(account, "account"),
            )
        except ValidationError:
            raise ValidationError("Incomplete bank details") from None


# ── Ride access rules ─────────────────────────────────────────────────


class RideRecord(Protocol):
    requester_id: str
    driver_id: Optional[str]
    status: RideStatus


def can_view_ride(ride: RideRecord, actor_id: str, role: ActorRole) -> bool:
    """Requester, accepting driver, or any driver before acceptance."""
    if role == ActorRole.REQUESTER:
        return ride.requester_id == actor_id
    return ride.driver_id is None or ride.driver_id == actor_id


def can_update_ride(ride: RideRecord, actor_id: str, role: ActorRole) -> bool:
    if role == ActorRole.DRIVER:
        return ride.driver_id == actor_id
    return ride.requester_id == actor_id


# ── Listings ──────────────────────────────────────────────────────────

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One bounded slice of a newest-first listing.

    Callers restart from ``next_offset``; it is ``None`` once the listing
    is exhausted.
    """

    items: list[T] = field(default_factory=list)
    offset: int = 0
    next_offset: Optional[int] = None

    @classmethod
    def build(cls, items: list[T], offset: int, limit: int) -> "Page[T]":
        next_offset = offset + len(items) if len(items) == limit else None
        return cls(items=items, offset=offset, next_offset=next_offset)


def check_offset(offset: int) -> int:
    if offset < 0:
        raise ValidationError("offset must be zero or greater")
    return offset
