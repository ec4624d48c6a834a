"""
Driver endpoints
================

GET /api/v1/drivers/me/stats -- completed rides and total earnings
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_driver, get_rides
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import DriverStatsResponse, Envelope
from src.domain.entities import Actor
from src.services.ride_state_machine import RideStateMachine

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/me/stats",
    response_model=Envelope[DriverStatsResponse],
    summary="Completed rides and earnings for the calling driver",
)
@limiter.limit(RATE_LIMIT)
async def get_stats(
    request: Request,
    actor: Actor = Depends(get_driver),
    rides: RideStateMachine = Depends(get_rides),
):
    stats = await rides.driver_stats(actor.id)
    return Envelope[DriverStatsResponse](
        data=DriverStatsResponse(
            total_rides=stats.total_rides, total_earnings=stats.total_earnings
        )
    )
