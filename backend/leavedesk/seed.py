"""Seed script for development data.

Run with:  python -m leavedesk.seed

Creates the demo employees if they are missing. Sign-in credentials live in
the in-memory identity provider, so they are registered by the API process
itself at startup when ``LEAVEDESK_SEED_DEMO_DATA`` is on.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from leavedesk.models.employee import Employee
from leavedesk.models.enums import EmployeeRole
from leavedesk.services.store import LeaveStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leavedesk.services.identity import IdentityProvider

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "leave-desk-demo"

# Well-known employee UUIDs
ANA_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
BEN_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")
MARTA_ID = uuid.UUID("00000000-0000-0000-0000-000000000004")

EMPLOYEES = [
    {
        "id": ANA_ID,
        "name": "Ana Torres",
        "email": "ana.torres@example.com",
        "role": EmployeeRole.EMPLOYEE,
        "vacation_balance": 10,
        "sick_balance": 5,
    },
    {
        "id": BEN_ID,
        "name": "Ben Okafor",
        "email": "ben.okafor@example.com",
        "role": EmployeeRole.EMPLOYEE,
        "vacation_balance": 15,
        "sick_balance": 2,
    },
    {
        "id": MARTA_ID,
        "name": "Marta Lindqvist",
        "email": "marta.lindqvist@example.com",
        "role": EmployeeRole.MANAGER,
        "vacation_balance": 20,
        "sick_balance": 10,
    },
]


async def seed_employees(store: LeaveStore) -> int:
    """Insert any demo employee that does not exist yet. Returns how many were added."""
    added = 0
    for data in EMPLOYEES:
        if await store.get_employee_by_email(str(data["email"])) is not None:
            logger.info("  exists: %s", data["email"])
            continue
        await store.insert_employee(Employee(**{**data, "role": str(data["role"])}))
        logger.info("  created: %s (%s)", data["name"], data["role"])
        added += 1
    await store.commit()
    return added


def register_demo_identities(provider: IdentityProvider) -> None:
    """Give every demo employee a sign-in on the in-memory provider."""
    register = getattr(provider, "register", None)
    if register is None:
        logger.warning("Identity provider %s cannot register accounts, skipping", type(provider).__name__)
        return
    for data in EMPLOYEES:
        register(str(data["email"]), DEMO_PASSWORD, data["id"])


async def seed_demo_data(
    session_factory: async_sessionmaker[AsyncSession],
    provider: IdentityProvider,
) -> None:
    """Seed demo employees and their sign-ins."""
    logger.info("Seeding demo employees...")
    async with session_factory() as session:
        added = await seed_employees(LeaveStore(session))
    register_demo_identities(provider)
    logger.info("Seeded %d new employees; demo password is %r", added, DEMO_PASSWORD)


async def main() -> None:
    from leavedesk.db import dispose_engine, get_session_factory

    async with get_session_factory()() as session:
        added = await seed_employees(LeaveStore(session))
    await dispose_engine()
    logger.info("Done: %d employees added", added)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(main())
