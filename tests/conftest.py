"""
Shared fixtures: a fresh SQLite schema per test, the three system roles,
one user per role with a bearer token, and an httpx client bound to the app.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_rentals.db"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest

from rentals.core.security import create_access_token
from rentals.database import Base, engine, async_session_factory
from rentals.database_init import seed_roles
from rentals.main import app
from rentals.models.room import Room
from rentals.models.tenant import Tenant
from rentals.services.auth_service import AuthService


PASSWORD = "Secret@123"


@pytest.fixture(autouse=True)
async def database():
    from rentals import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        await seed_roles(session)

    yield

    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session


@pytest.fixture
async def users(db):
    service = AuthService(db)
    return {
        role: await service.register_user(
            email=f"{role.lower()}@rental.com",
            password=PASSWORD,
            first_name=role.title(),
            last_name="User",
            roles=[role],
        )
        for role in ("ADMIN", "MANAGER", "STAFF")
    }


def _headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(users):
    return _headers(users["ADMIN"])


@pytest.fixture
def manager_headers(users):
    return _headers(users["MANAGER"])


@pytest.fixture
def staff_headers(users):
    return _headers(users["STAFF"])


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def room(db):
    room = Room(room_number="101", type="SINGLE", monthly_rent=Decimal("1000.00"), floor=1)
    db.add(room)
    await db.commit()
    await db.refresh(room)
    return room


@pytest.fixture
async def tenant(db, room):
    """Active tenant living in room 101 on a one-year contract."""
    today = date.today()
    tenant = Tenant(
        first_name="Jane",
        last_name="Doe",
        email="jane.doe@example.com",
        phone_number="0900000001",
        room_id=room.id,
        contract_start_date=today - timedelta(days=30),
        contract_end_date=today + timedelta(days=335),
        monthly_rent=room.monthly_rent,
        security_deposit=Decimal("500.00"),
        is_active=True,
    )
    room.status = "RENTED"
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


@pytest.fixture
async def invoice(client, staff_headers, tenant):
    """ISSUED invoice: rent 1000 + charges 200 = 1200."""
    response = await client.post(
        "/api/v1/invoices",
        json={
            "tenant_id": str(tenant.id),
            "billing_period": date.today().replace(day=1).isoformat(),
            "due_date": (date.today() + timedelta(days=15)).isoformat(),
            "additional_charges": "200.00",
            "additional_charges_description": "Electricity",
        },
        headers=staff_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
