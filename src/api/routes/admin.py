"""
Observability endpoints
=======================

GET /api/v1/health -- database and Redis reachability
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.api.schemas import Envelope, HealthResponse
from src.infrastructure.redis_client import redis_healthy

router = APIRouter(tags=["admin"])


@router.get("/health", response_model=Envelope[HealthResponse], summary="Health check")
async def health(request: Request):
    db_ok = await request.app.state.store.ping()
    redis_ok = await redis_healthy(request.app.state.redis)
    report = HealthResponse(
        status="ok" if db_ok else "degraded",
        database="ok" if db_ok else "unavailable",
        redis="ok" if redis_ok else "unavailable",
    )
    body = Envelope[HealthResponse](success=db_ok, data=report)
    return JSONResponse(status_code=200 if db_ok else 503, content=body.model_dump(mode="json"))
