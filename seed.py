"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 4 sample requesters and 3 sample drivers
  - 6 sample rides (mix of pending, accepted, in_progress, completed)
  - wallet credits for the completed rides, posted through the wallet
    engine so every balance matches its ledger
"""

import asyncio
from decimal import Decimal

from sqlalchemy import text

from src.config import settings
from src.domain.entities import Actor, ProductDetail
from src.domain.enums import ActorRole, ActorStatus, RideStatus
from src.infrastructure.database import create_engine, create_session_factory
from src.infrastructure.models import UserModel
from src.infrastructure.store import Store
from src.services.ride_state_machine import RideStateMachine
from src.services.wallet_engine import WalletEngine

REQUESTERS = [
    {"id": "seed-requester-ana", "name": "Ana Souza", "phone": "+55 11 90000-0001"},
    {"id": "seed-requester-bruno", "name": "Bruno Lima", "phone": "+55 11 90000-0002"},
    {"id": "seed-requester-carla", "name": "Carla Dias", "phone": "+55 21 90000-0003"},
    {"id": "seed-requester-davi", "name": "Davi Rocha", "phone": "+55 31 90000-0004"},
]

DRIVERS = [
    {"id": "seed-driver-eva", "name": "Eva Martins", "phone": "+55 11 98000-0001"},
    {"id": "seed-driver-felipe", "name": "Felipe Alves", "phone": "+55 21 98000-0002"},
    {"id": "seed-driver-gabi", "name": "Gabi Nunes", "phone": "+55 31 98000-0003"},
]

# (requester index, origin, destination, city, price, product, driver index, final status)
RIDES = [
    (0, "Av. Paulista, 1000", "Rua Augusta, 200", "Sao Paulo", "35.00", None, None, RideStatus.PENDING),
    (1, "Rua Oscar Freire, 50", "Av. Faria Lima, 3000", "Sao Paulo", "42.50", ("Box of books", "medium", "8.5"), None, RideStatus.PENDING),
    (2, "Av. Atlantica, 10", "Rua Visconde de Piraja, 400", "Rio de Janeiro", "28.00", None, 1, RideStatus.ACCEPTED),
    (3, "Praca da Liberdade, 1", "Av. Afonso Pena, 900", "Belo Horizonte", "19.90", None, 2, RideStatus.IN_PROGRESS),
    (0, "Rua da Consolacao, 300", "Av. Reboucas, 1200", "Sao Paulo", "50.00", None, 0, RideStatus.COMPLETED),
    (1, "Av. Brigadeiro, 700", "Rua Vergueiro, 1500", "Sao Paulo", "64.00", ("Office chair", "large", "12"), 0, RideStatus.COMPLETED),
]


def _actor(data: dict, role: ActorRole) -> Actor:
    return Actor(id=data["id"], role=role, name=data["name"], phone=data["phone"])


async def seed():
    engine = create_engine(settings)
    store = Store(create_session_factory(engine), settings.store_timeout_seconds)
    wallet = WalletEngine(store)
    rides = RideStateMachine(store, wallet)

    try:
        async with engine.begin() as conn:
            for table in ("transactions", "withdrawals", "wallets", "rides", "users"):
                await conn.execute(text(f"DELETE FROM {table}"))

        async def _users(uow):
            for data in REQUESTERS:
                await uow.users.create(
                    UserModel(role=ActorRole.REQUESTER, status=ActorStatus.ACTIVE, **data)
                )
            for data in DRIVERS:
                await uow.users.create(
                    UserModel(role=ActorRole.DRIVER, status=ActorStatus.ACTIVE, **data)
                )

        await store.with_transaction(_users)
        print(f"  Created {len(REQUESTERS)} requesters, {len(DRIVERS)} drivers")

        for req_idx, origin, dest, city, price, product, drv_idx, final in RIDES:
            requester = _actor(REQUESTERS[req_idx], ActorRole.REQUESTER)
            detail = None
            if product:
                detail = ProductDetail.build(*product)
            ride = await rides.create(
                requester,
                origin_address=origin,
                destination_address=dest,
                price=Decimal(price),
                is_product=detail is not None,
                product=detail,
                city=city,
            )
            if drv_idx is None:
                continue
            driver = _actor(DRIVERS[drv_idx], ActorRole.DRIVER)
            await rides.accept(ride.id, driver)
            for step in (RideStatus.IN_PROGRESS, RideStatus.COMPLETED):
                if final == RideStatus.ACCEPTED:
                    break
                await rides.update_status(ride.id, driver.id, ActorRole.DRIVER, step)
                if step == final:
                    break
        print(f"  Created {len(RIDES)} rides")

        for data in DRIVERS:
            check = await wallet.check_ledger(data["id"])
            status = "ok" if check.consistent else f"MISMATCH (ledger {check.ledger_total})"
            print(f"  Wallet {data['id']}: {check.balance} [{status}]")

        print("\nSeed complete!")
    finally:
        await engine.dispose()


async def main():
    print("Seeding database...")
    await seed()


if __name__ == "__main__":
    asyncio.run(main())
