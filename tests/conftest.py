"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so the suite
runs without Docker / PostgreSQL / Redis.  A file (rather than
``:memory:``) gives every session its own connection, so concurrent units
of work contend on real locks the way they would in PostgreSQL.
"""

import os

# Must be set before src.config is imported
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT", "10000/minute")

from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.api.app import create_app
from src.domain.entities import Actor
from src.domain.enums import ActorRole, ActorStatus, RideStatus
from src.domain.errors import AuthError
from src.infrastructure.database import Base, create_session_factory
from src.infrastructure.models import UserModel
from src.infrastructure.store import Store
from src.services.ride_state_machine import RideStateMachine
from src.services.wallet_engine import WalletEngine


ACTORS = {
    "requester": Actor(id="req-rita", role=ActorRole.REQUESTER, name="Rita", phone="111"),
    "other_requester": Actor(id="req-otto", role=ActorRole.REQUESTER, name="Otto", phone="222"),
    "driver_a": Actor(id="drv-ana", role=ActorRole.DRIVER, name="Ana", phone="333"),
    "driver_b": Actor(id="drv-bia", role=ActorRole.DRIVER, name="Bia", phone="444"),
    "inactive_driver": Actor(
        id="drv-ivo",
        role=ActorRole.DRIVER,
        status=ActorStatus.INACTIVE,
        name="Ivo",
        phone="555",
    ),
}

# bearer token -> actor id ("ghost" is verified but has no profile)
TOKENS = {f"token-{key}": actor.id for key, actor in ACTORS.items()}
TOKENS["token-ghost"] = "uid-without-profile"


class FakeIdentity:
    """Stands in for the identity provider: known tokens map to uids."""

    def __init__(self, tokens: dict[str, str]):
        self.tokens = tokens

    async def authenticate(self, token: str) -> str:
        if token not in self.tokens:
            raise AuthError("Invalid token")
        return self.tokens[token]


# ── Store / engines ───────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, yield, then dispose."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(db_engine) -> Store:
    store = Store(create_session_factory(db_engine), timeout_seconds=10)

    async def _seed(uow):
        for actor in ACTORS.values():
            await uow.users.create(
                UserModel(
                    id=actor.id,
                    role=actor.role,
                    status=actor.status,
                    name=actor.name,
                    phone=actor.phone,
                )
            )

    await store.with_transaction(_seed)
    return store


@pytest.fixture
def actors() -> dict[str, Actor]:
    return ACTORS


@pytest.fixture
def wallet(store) -> WalletEngine:
    return WalletEngine(store)


@pytest.fixture
def rides(store, wallet) -> RideStateMachine:
    return RideStateMachine(store, wallet)


@pytest.fixture
def ledger(wallet):
    """Return ``(balance, sum of ledger amounts)`` for a driver."""

    async def _read(driver_id: str) -> tuple[Decimal, Decimal]:
        check = await wallet.check_ledger(driver_id)
        return check.balance, check.ledger_total

    return _read


@pytest.fixture
def ride_in_progress(rides):
    """Factory: create a ride, accept it and start it."""

    async def _make(
        price: str = "35.00",
        requester: Actor = ACTORS["requester"],
        driver: Actor = ACTORS["driver_a"],
    ):
        ride = await rides.create(
            requester,
            origin_address="Rua A, 1",
            destination_address="Rua B, 2",
            price=Decimal(price),
            is_product=False,
        )
        await rides.accept(ride.id, driver)
        return await rides.update_status(
            ride.id, driver.id, ActorRole.DRIVER, RideStatus.IN_PROGRESS
        )

    return _make


# ── HTTP client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by the SQLite store and a fake identity provider."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)

    app = create_app(store=store, identity=FakeIdentity(TOKENS), redis=redis)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth():
    def _headers(actor_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer token-{actor_key}"}

    return _headers
