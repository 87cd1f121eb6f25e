from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leavedesk.config import Settings, get_settings
from leavedesk.db import get_session
from leavedesk.main import app
from leavedesk.models import SQLModel
from leavedesk.models.employee import Employee
from leavedesk.models.enums import EmployeeRole
from leavedesk.services.identity import InMemoryIdentityProvider, get_identity_provider
from leavedesk.services.store import LeaveStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

PASSWORD = "correct horse battery"


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory SQLite database per test, shared across one connection."""
    _engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> LeaveStore:
    return LeaveStore(db_session)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, database_url="sqlite+aiosqlite://")  # type: ignore[call-arg]


@pytest.fixture
def identity_provider() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider(session_ttl=timedelta(minutes=30), hash_rounds=4)


@pytest.fixture
def make_employee(store: LeaveStore) -> Callable[..., Awaitable[Employee]]:
    """Factory that inserts and commits an employee."""

    async def _make(
        name: str,
        role: EmployeeRole = EmployeeRole.EMPLOYEE,
        vacation_balance: int = 10,
        sick_balance: int = 5,
    ) -> Employee:
        employee = Employee(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            role=role.value,
            vacation_balance=vacation_balance,
            sick_balance=sick_balance,
        )
        await store.insert_employee(employee)
        await store.commit()
        return employee

    return _make


@pytest.fixture
async def ana(make_employee: Callable[..., Awaitable[Employee]]) -> Employee:
    return await make_employee("Ana", vacation_balance=10, sick_balance=5)


@pytest.fixture
async def ben(make_employee: Callable[..., Awaitable[Employee]]) -> Employee:
    return await make_employee("Ben", vacation_balance=4, sick_balance=2)


@pytest.fixture
async def manager(make_employee: Callable[..., Awaitable[Employee]]) -> Employee:
    return await make_employee("Marta", role=EmployeeRole.MANAGER, vacation_balance=20, sick_balance=10)


@pytest.fixture
async def second_manager(make_employee: Callable[..., Awaitable[Employee]]) -> Employee:
    return await make_employee("Omar", role=EmployeeRole.MANAGER)


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    settings: Settings,
    identity_provider: InMemoryIdentityProvider,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the session, settings and identity provider overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login(
    async_client: AsyncClient,
    identity_provider: InMemoryIdentityProvider,
) -> Callable[[Employee], Awaitable[dict[str, str]]]:
    """Register an employee with the identity stub and return bearer headers."""

    async def _login(employee: Employee) -> dict[str, str]:
        identity_provider.register(employee.email, PASSWORD, employee.id)
        resp = await async_client.post("/auth/login", json={"email": employee.email, "password": PASSWORD})
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
