"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# Targets reachable through the generic status-update operation
# (acceptance has its own operation because it stamps the driver).
UPDATABLE_STATUSES: frozenset[RideStatus] = frozenset(
    {RideStatus.IN_PROGRESS, RideStatus.COMPLETED, RideStatus.CANCELLED}
)


class ActorRole(str, enum.Enum):
    DRIVER = "driver"
    REQUESTER = "requester"


class ActorStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransactionType(str, enum.Enum):
    RIDE_CREDIT = "ride_credit"
    WITHDRAWAL_DEBIT = "withdrawal_debit"
    WITHDRAWAL_CANCELLATION_CREDIT = "withdrawal_cancellation_credit"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
