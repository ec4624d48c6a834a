"""FastAPI dependency injection helpers.

Per-process handles (store, engines, identity client) live on
``app.state``; they are created in the app lifespan and handed to routes
through these dependencies.
"""

from __future__ import annotations

from fastapi import Depends, Request

from src.domain.entities import Actor
from src.domain.enums import ActorRole, ActorStatus
from src.domain.errors import AuthError, NotFoundError
from src.infrastructure.identity import IdentityService
from src.infrastructure.store import Store, UnitOfWork
from src.services.ride_state_machine import RideStateMachine
from src.services.wallet_engine import WalletEngine


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_identity(request: Request) -> IdentityService:
    return request.app.state.identity


def get_rides(request: Request) -> RideStateMachine:
    return request.app.state.rides


def get_wallet(request: Request) -> WalletEngine:
    return request.app.state.wallet


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthError("Authentication token not provided")
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Authentication token not provided")
    return token


async def get_current_actor(
    request: Request,
    identity: IdentityService = Depends(get_identity),
    store: Store = Depends(get_store),
) -> Actor:
    """Verify the bearer token and load the caller's profile."""
    actor_id = await identity.authenticate(_bearer_token(request))

    async def _load(uow: UnitOfWork) -> Actor:
        user = await uow.users.get_by_id(actor_id)
        if user is None:
            raise NotFoundError("User not found")
        return Actor(
            id=user.id,
            role=ActorRole(user.role),
            status=ActorStatus(user.status),
            name=user.name,
            phone=user.phone,
            email=user.email,
        )

    return await store.with_transaction(_load)


async def get_active_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Callers of mutating operations must be active."""
    actor.require_active()
    return actor


async def get_driver(actor: Actor = Depends(get_current_actor)) -> Actor:
    actor.require_role(ActorRole.DRIVER)
    return actor


async def get_active_driver(actor: Actor = Depends(get_active_actor)) -> Actor:
    actor.require_role(ActorRole.DRIVER)
    return actor


async def get_active_requester(actor: Actor = Depends(get_active_actor)) -> Actor:
    actor.require_role(ActorRole.REQUESTER)
    return actor
