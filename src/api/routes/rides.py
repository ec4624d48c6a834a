"""
Ride endpoints
==============

POST /api/v1/rides                 -- create a ride request (requester, 201)
GET  /api/v1/rides/available       -- pending rides, newest first (driver)
GET  /api/v1/rides/history         -- caller's rides as requester or driver
GET  /api/v1/rides/{ride_id}       -- ride details
POST /api/v1/rides/{ride_id}/accept -- accept a pending ride (driver)
PUT  /api/v1/rides/{ride_id}/status -- in_progress / completed / cancelled
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import (
    get_active_actor,
    get_active_driver,
    get_active_requester,
    get_current_actor,
    get_driver,
    get_rides,
)
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    Envelope,
    PageResponse,
    RideCreateRequest,
    RideResponse,
    RideStatusUpdateRequest,
)
from src.domain.entities import Actor, ProductDetail
from src.services.ride_state_machine import RideStateMachine

router = APIRouter(prefix="/rides", tags=["rides"])


def _page(page) -> PageResponse[RideResponse]:
    return PageResponse[RideResponse](
        items=[RideResponse.from_model(r) for r in page.items],
        offset=page.offset,
        next_offset=page.next_offset,
    )


@router.post(
    "",
    status_code=201,
    response_model=Envelope[RideResponse],
    summary="Create a ride request",
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    actor: Actor = Depends(get_active_requester),
    rides: RideStateMachine = Depends(get_rides),
):
    product = None
    if body.is_product:
        product = ProductDetail.build(body.description, body.size, body.weight)
    ride = await rides.create(
        actor,
        origin_address=body.origin_address,
        destination_address=body.destination_address,
        price=body.price,
        is_product=body.is_product,
        product=product,
        city=body.city,
    )
    return Envelope[RideResponse](
        message="Ride request created", data=RideResponse.from_model(ride)
    )


@router.get(
    "/available",
    response_model=Envelope[PageResponse[RideResponse]],
    summary="List pending rides available to drivers",
)
@limiter.limit(RATE_LIMIT)
async def list_available_rides(
    request: Request,
    city: Optional[str] = None,
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_driver),
    rides: RideStateMachine = Depends(get_rides),
):
    page = await rides.list_available(city=city, offset=offset)
    return Envelope[PageResponse[RideResponse]](data=_page(page))


@router.get(
    "/history",
    response_model=Envelope[PageResponse[RideResponse]],
    summary="List the caller's ride history",
)
@limiter.limit(RATE_LIMIT)
async def list_ride_history(
    request: Request,
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    rides: RideStateMachine = Depends(get_rides),
):
    page = await rides.list_history(actor.id, actor.role, offset=offset)
    return Envelope[PageResponse[RideResponse]](data=_page(page))


@router.get(
    "/{ride_id}",
    response_model=Envelope[RideResponse],
    summary="Get ride details",
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: str,
    actor: Actor = Depends(get_current_actor),
    rides: RideStateMachine = Depends(get_rides),
):
    ride = await rides.get(ride_id, actor.id, actor.role)
    return Envelope[RideResponse](data=RideResponse.from_model(ride))


@router.post(
    "/{ride_id}/accept",
    response_model=Envelope[RideResponse],
    summary="Accept a pending ride",
    responses={409: {"description": "Ride already accepted or cancelled"}},
)
@limiter.limit(RATE_LIMIT)
async def accept_ride(
    request: Request,
    ride_id: str,
    actor: Actor = Depends(get_active_driver),
    rides: RideStateMachine = Depends(get_rides),
):
    ride = await rides.accept(ride_id, actor)
    return Envelope[RideResponse](
        message="Ride accepted", data=RideResponse.from_model(ride)
    )


@router.put(
    "/{ride_id}/status",
    response_model=Envelope[RideResponse],
    summary="Move a ride to in_progress, completed or cancelled",
    description=(
        "Only the ride's requester or accepting driver may update it. "
        "Completing a ride credits the driver's wallet with the ride price "
        "in the same transaction."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_ride_status(
    request: Request,
    ride_id: str,
    body: RideStatusUpdateRequest,
    actor: Actor = Depends(get_active_actor),
    rides: RideStateMachine = Depends(get_rides),
):
    ride = await rides.update_status(ride_id, actor.id, actor.role, body.status)
    return Envelope[RideResponse](
        message="Status updated", data=RideResponse.from_model(ride)
    )
