"""
Ride State Machine
==================

Lifecycle::

    pending -> accepted -> in_progress -> completed
       \\           \\            \\
        +-----------+------------+-> cancelled

Concurrency safety
------------------
* Every transition is a compare-and-swap on ``rides.status`` keyed on the
  status read at the start of the unit of work.  A writer that loses the
  race affects zero rows and gets ``ConflictError``; the winner's driver
  fields are never overwritten.
* ``in_progress -> completed`` and the wallet credit share one unit of
  work.  The credit only runs after the CAS succeeds, so a ride can be
  paid out at most once, and a failed credit rolls the status back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from src.domain.entities import (
    Actor,
    Page,
    ProductDetail,
    can_update_ride,
    can_view_ride,
    check_offset,
    check_transition,
)
from src.domain.enums import ActorRole, RideStatus, UPDATABLE_STATUSES
from src.domain.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from src.domain.money import positive_money
from src.infrastructure.models import RideModel
from src.infrastructure.store import Store, UnitOfWork
from src.services.wallet_engine import WalletEngine

logger = logging.getLogger(__name__)

# Lifecycle stamp written alongside each status (each set at most once)
_STAMPS: dict[RideStatus, str] = {
    RideStatus.ACCEPTED: "accepted_at",
    RideStatus.IN_PROGRESS: "started_at",
    RideStatus.COMPLETED: "completed_at",
    RideStatus.CANCELLED: "cancelled_at",
}


@dataclass(frozen=True)
class DriverStats:
    total_rides: int
    total_earnings: Decimal


class RideStateMachine:
    def __init__(self, store: Store, wallet: WalletEngine, page_size: int = 50):
        self.store = store
        self.wallet = wallet
        self.page_size = page_size

    async def create(
        self,
        requester: Actor,
        *,
        origin_address: str,
        destination_address: str,
        price: Decimal | int | str,
        is_product: bool,
        product: Optional[ProductDetail] = None,
        city: Optional[str] = None,
    ) -> RideModel:
        """Create a ``pending`` ride for *requester*."""
        price = positive_money(price, "price")
        origin = (origin_address or "").strip()
        destination = (destination_address or "").strip()
        if not origin or not destination:
            raise ValidationError("Origin and destination addresses are required")
        if is_product and product is None:
            raise ValidationError("Product details are required")
        if not is_product and product is not None:
            raise ValidationError("Product details are only allowed for product rides")

        now = datetime.now(timezone.utc)
        ride = RideModel(
            requester_id=requester.id,
            requester_name=requester.name,
            requester_phone=requester.phone,
            origin_address=origin,
            destination_address=destination,
            city=(city or "").strip() or None,
            price=price,
            is_product=bool(is_product),
            product_description=product.description if product else None,
            product_size=product.size if product else None,
            product_weight=product.weight if product else None,
            status=RideStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        async def _op(uow: UnitOfWork) -> RideModel:
            return await uow.rides.create(ride)

        ride = await self.store.with_transaction(_op)
        logger.info("Ride %s created by requester %s", ride.id, requester.id)
        return ride

    async def accept(self, ride_id: str, driver: Actor) -> RideModel:
        """``pending -> accepted``; first writer wins."""

        async def _op(uow: UnitOfWork) -> RideModel:
            ride = await self._get_or_404(uow, ride_id)
            if RideStatus(ride.status) != RideStatus.PENDING:
                raise ConflictError("Ride is no longer available")

            won = await uow.rides.transition(
                ride_id,
                RideStatus.PENDING,
                RideStatus.ACCEPTED,
                driver_id=driver.id,
                driver_name=driver.name,
                driver_phone=driver.phone,
                accepted_at=datetime.now(timezone.utc),
            )
            if not won:
                logger.warning("Driver %s lost accept race on ride %s", driver.id, ride_id)
                raise ConflictError("Ride is no longer available")
            return await uow.rides.get_by_id(ride_id, refresh=True)

        ride = await self.store.with_transaction(_op)
        logger.info("Ride %s accepted by driver %s", ride_id, driver.id)
        return ride

    async def update_status(
        self,
        ride_id: str,
        actor_id: str,
        actor_role: ActorRole,
        new_status: RideStatus | str,
    ) -> RideModel:
        try:
            target = RideStatus(new_status)
        except ValueError:
            raise ValidationError("Invalid status") from None
        if target not in UPDATABLE_STATUSES:
            raise ValidationError("Invalid status")

        async def _op(uow: UnitOfWork) -> RideModel:
            ride = await self._get_or_404(uow, ride_id)
            if not can_update_ride(ride, actor_id, actor_role):
                raise ForbiddenError("Not authorized to update this ride")

            current = RideStatus(ride.status)
            check_transition(current, target)

            won = await uow.rides.transition(
                ride_id,
                current,
                target,
                **{_STAMPS[target]: datetime.now(timezone.utc)},
            )
            if not won:
                logger.warning(
                    "Concurrent update on ride %s (%s -> %s)", ride_id, current.value, target.value
                )
                raise ConflictError("Ride status changed, reload and try again")

            if target == RideStatus.COMPLETED:
                await self.wallet.credit_ride_earning(
                    ride.driver_id, Decimal(ride.price), ride_id, uow=uow
                )
            return await uow.rides.get_by_id(ride_id, refresh=True)

        ride = await self.store.with_transaction(_op)
        logger.info("Ride %s moved to %s by %s %s", ride_id, target.value, actor_role.value, actor_id)
        return ride

    async def get(self, ride_id: str, actor_id: str, actor_role: ActorRole) -> RideModel:
        async def _op(uow: UnitOfWork) -> RideModel:
            ride = await self._get_or_404(uow, ride_id)
            if not can_view_ride(ride, actor_id, actor_role):
                raise ForbiddenError("Not authorized to view this ride")
            return ride

        return await self.store.with_transaction(_op)

    async def list_available(
        self, city: Optional[str] = None, offset: int = 0
    ) -> Page[RideModel]:
        offset = check_offset(offset)

        async def _op(uow: UnitOfWork) -> list[RideModel]:
            return await uow.rides.list_pending(
                city=city, offset=offset, limit=self.page_size
            )

        items = await self.store.with_transaction(_op)
        return Page.build(items, offset, self.page_size)

    async def list_history(
        self, actor_id: str, actor_role: ActorRole, offset: int = 0
    ) -> Page[RideModel]:
        offset = check_offset(offset)

        async def _op(uow: UnitOfWork) -> list[RideModel]:
            if actor_role == ActorRole.DRIVER:
                return await uow.rides.list_for_driver(
                    actor_id, offset=offset, limit=self.page_size
                )
            return await uow.rides.list_for_requester(
                actor_id, offset=offset, limit=self.page_size
            )

        items = await self.store.with_transaction(_op)
        return Page.build(items, offset, self.page_size)

    async def driver_stats(self, driver_id: str) -> DriverStats:
        """Completed-ride count and total earnings for *driver_id*."""

        async def _op(uow: UnitOfWork) -> DriverStats:
            count, total = await uow.rides.completed_totals(driver_id)
            return DriverStats(total_rides=count, total_earnings=total)

        return await self.store.with_transaction(_op)

    @staticmethod
    async def _get_or_404(uow: UnitOfWork, ride_id: str) -> RideModel:
        ride = await uow.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride
