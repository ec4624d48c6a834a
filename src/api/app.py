"""
FastAPI application factory.

* Registers routes for rides, wallet, drivers and health.
* Builds per-process handles (DB engine, store, engines, identity client,
  Redis) in the lifespan and stores them on ``app.state``.
* Applies rate limiting and request logging.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
import redis.asyncio as aioredis

from src.api.errors import register_error_handlers
from src.api.middleware import RequestLoggingMiddleware, limiter
from src.api.routes import admin, drivers, rides, wallet
from src.config import Settings, settings as default_settings
from src.infrastructure.database import create_engine, create_session_factory
from src.infrastructure.identity import FirebaseIdentityService, IdentityService
from src.infrastructure.redis_client import create_redis
from src.infrastructure.store import Store
from src.services.ride_state_machine import RideStateMachine
from src.services.wallet_engine import WalletEngine

logger = logging.getLogger(__name__)


def install_services(
    app: FastAPI,
    store: Store,
    identity: IdentityService,
    redis: aioredis.Redis,
    settings: Settings,
) -> None:
    """Wire the engines onto ``app.state`` for the dependencies to find."""
    wallet_engine = WalletEngine(store, page_size=settings.page_size)
    app.state.store = store
    app.state.identity = identity
    app.state.redis = redis
    app.state.wallet = wallet_engine
    app.state.rides = RideStateMachine(store, wallet_engine, page_size=settings.page_size)


def create_app(
    settings: Settings = default_settings,
    *,
    store: Optional[Store] = None,
    identity: Optional[IdentityService] = None,
    redis: Optional[aioredis.Redis] = None,
) -> FastAPI:
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build process-scoped clients on startup; close them on shutdown."""
        engine = None
        if not hasattr(app.state, "store"):
            engine = create_engine(settings)
            install_services(
                app,
                Store(create_session_factory(engine), settings.store_timeout_seconds),
                FirebaseIdentityService(settings.firebase_project_id),
                create_redis(settings),
                settings,
            )
            logger.info("Services started")
        yield
        if engine is not None:
            await app.state.redis.aclose()
            await engine.dispose()
            logger.info("Services stopped")

    app = FastAPI(
        title="Transport App API",
        description=(
            "Riders and shippers post transport requests, drivers accept and "
            "complete them, and each driver's wallet tracks earnings and "
            "withdrawal requests through an append-only ledger."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    if store is not None:
        install_services(
            app,
            store,
            identity or FirebaseIdentityService(settings.firebase_project_id),
            redis if redis is not None else create_redis(settings),
            settings,
        )

    # Rate limiter
    app.state.limiter = limiter

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(wallet.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        return {"success": True, "message": "Transport App API is running"}

    return app
