"""
Pytest configuration and fixtures for async database testing.

Each test gets its own SQLite database file, so tests never share rows.
Every HTTP request opens its own session, the way production does, which
lets concurrent requests run against the same database.
"""
import os

# Must be set before guidebook is imported: settings are read once
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["TENANT_RATE_LIMIT"] = "1000"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from guidebook.core.db import Base, enable_sqlite_foreign_keys, get_session
from guidebook.core.request_context import create_access_token
from guidebook.main import app
from guidebook.models import Outfitter, OutfitterSettings, User, UserRole
from guidebook.rate_limiter import get_rate_limiter
from guidebook.tenancy.context import TenantContext


@pytest.fixture(scope="function")
async def async_engine(tmp_path):
    """
    Create async SQLAlchemy engine for a fresh test database.

    Engine is created per test to ensure clean state.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'guidebook_test.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_session(session_factory):
    """Session for arranging data and inspecting results outside of requests."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    get_rate_limiter().clear()
    yield
    get_rate_limiter().clear()


@pytest.fixture(scope="function")
async def client(session_factory):
    """
    Create FastAPI AsyncClient with database session override.

    Each request gets its own session from the per-test engine.
    """
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


# ────────────────────────────────────────────────────────────────
# Two outfitters, each with an admin and a guide
# ────────────────────────────────────────────────────────────────

async def _make_outfitter(session: AsyncSession, name: str) -> Outfitter:
    outfitter = Outfitter(name=name, email=f"office@{name.lower().replace(' ', '-')}.test")
    session.add(outfitter)
    await session.flush()
    session.add(OutfitterSettings(outfitter_id=outfitter.id, company_name=name))
    return outfitter


async def _make_user(session: AsyncSession, user_id: str, outfitter: Outfitter, role: UserRole) -> User:
    user = User(
        id=user_id,
        outfitter_id=outfitter.id,
        email=f"{user_id}@example.test",
        first_name=user_id.split("_")[0].title(),
        last_name="Tester",
        role=role.value,
    )
    session.add(user)
    return user


@pytest.fixture
async def tenants(async_session: AsyncSession) -> dict:
    """
    Outfitter A (id 1) and outfitter B (id 2).

    Returns a dict with outfitters, users and bearer tokens keyed by name.
    """
    outfitter_a = await _make_outfitter(async_session, "Ridge Line Outfitters")
    outfitter_b = await _make_outfitter(async_session, "Blue Water Guides")

    users = {
        "admin_a": await _make_user(async_session, "admin_a", outfitter_a, UserRole.ADMIN),
        "guide_a": await _make_user(async_session, "guide_a", outfitter_a, UserRole.GUIDE),
        "guide2_a": await _make_user(async_session, "guide2_a", outfitter_a, UserRole.GUIDE),
        "admin_b": await _make_user(async_session, "admin_b", outfitter_b, UserRole.ADMIN),
        "guide_b": await _make_user(async_session, "guide_b", outfitter_b, UserRole.GUIDE),
    }
    await async_session.commit()

    return {
        "a": outfitter_a,
        "b": outfitter_b,
        "users": users,
        "tokens": {name: create_access_token(name) for name in users},
    }


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(tenants) -> dict:
    """Authorization headers per user name."""
    return {name: auth(token) for name, token in tenants["tokens"].items()}


@pytest.fixture
def ctx_a(tenants) -> TenantContext:
    return TenantContext(outfitter_id=tenants["a"].id, user_id="admin_a", role=UserRole.ADMIN.value)


@pytest.fixture
def ctx_b(tenants) -> TenantContext:
    return TenantContext(outfitter_id=tenants["b"].id, user_id="admin_b", role=UserRole.ADMIN.value)


# ────────────────────────────────────────────────────────────────
# Sample data helpers
# ────────────────────────────────────────────────────────────────

CUSTOMER_BODY = {
    "first_name": "Sam",
    "last_name": "Thompson",
    "email": "sam@example.test",
    "phone": "555-0100",
}

LOCATION_BODY = {
    "name": "North Ridge Camp",
    "city": "Bozeman",
    "state": "MT",
}

EXPERIENCE_BODY = {
    "name": "3-Day Elk Hunt",
    "description": "Guided archery elk hunt",
    "duration": 3,
    "price": "1500.00",
    "capacity": 4,
    "category": "elk_hunting",
}


@pytest.fixture
def make_customer(client):
    async def _make(headers: dict, **overrides) -> dict:
        response = await client.post("/api/customers", json={**CUSTOMER_BODY, **overrides}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_location(client):
    async def _make(headers: dict, **overrides) -> dict:
        response = await client.post("/api/locations", json={**LOCATION_BODY, **overrides}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_experience(client):
    async def _make(headers: dict, **overrides) -> dict:
        response = await client.post("/api/experiences", json={**EXPERIENCE_BODY, **overrides}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_booking(client, make_customer, make_experience):
    async def _make(headers: dict, start: str = "2030-10-01T08:00:00Z", end: str = "2030-10-03T17:00:00Z", **overrides) -> dict:
        customer = await make_customer(headers)
        experience = await make_experience(headers)
        body = {
            "experience_id": experience["id"],
            "customer_id": customer["id"],
            "start_date": start,
            "end_date": end,
            **overrides,
        }
        response = await client.post("/api/bookings", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
