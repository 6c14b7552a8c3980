"""
ISP Manager - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read at import time; configure them before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("PUBLIC_BASE_URL", "https://isp.example.com")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.customer import Customer, CustomerStatus, ISPPackage
from app.models.leave import LeaveType
from app.models.network import OLT, ONU
from app.models.payment import PaymentGatewaySetting, TenantPaymentGateway
from app.models.payroll import Staff
from app.models.tenant import Tenant
from app.utils.security import create_access_token, create_customer_token
from main import app


# In-memory SQLite by default; point TEST_DATABASE_URL at a throwaway
# PostgreSQL database (postgresql+asyncpg://...) to run against a server
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create fresh tables and a session for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, **_engine_options(TEST_DATABASE_URL))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def tenant(db_session: AsyncSession) -> Tenant:
    """Create a test ISP tenant."""
    tenant = Tenant(
        id=uuid4(),
        name="Dhaka Fiber Net",
        slug="dhaka-fiber",
        email="billing@dhakafiber.example",
        phone="01711000000",
        address="House 12, Road 5, Dhanmondi, Dhaka",
    )
    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)
    return tenant


@pytest_asyncio.fixture
async def other_tenant(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(id=uuid4(), name="Chittagong Link", slug="ctg-link")
    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)
    return tenant


@pytest.fixture
def admin_headers(tenant: Tenant) -> Dict[str, str]:
    """Authorization header for a dashboard admin of `tenant`."""
    token = create_access_token({"sub": str(uuid4()), "tenant_id": str(tenant.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def staff(db_session: AsyncSession, tenant: Tenant) -> Staff:
    """Create a staff member on a 30,000 monthly salary."""
    staff = Staff(
        id=uuid4(),
        tenant_id=tenant.id,
        name="Rahim Uddin",
        employee_code="EMP-001",
        designation="Line Technician",
        department="Field Operations",
        phone="01811000000",
        salary=Decimal("30000"),
        join_date=date(2023, 1, 1),
    )
    db_session.add(staff)
    await db_session.commit()
    await db_session.refresh(staff)
    return staff


@pytest_asyncio.fixture
async def leave_type(db_session: AsyncSession, tenant: Tenant) -> LeaveType:
    leave_type = LeaveType(
        id=uuid4(),
        tenant_id=tenant.id,
        name="Annual Leave",
        code="AL",
        max_days_per_year=14,
    )
    db_session.add(leave_type)
    await db_session.commit()
    await db_session.refresh(leave_type)
    return leave_type


@pytest_asyncio.fixture
async def package(db_session: AsyncSession, tenant: Tenant) -> ISPPackage:
    package = ISPPackage(
        id=uuid4(),
        tenant_id=tenant.id,
        name="Home 20 Mbps",
        download_speed=20,
        upload_speed=20,
        price=Decimal("1000"),
        validity_days=30,
        sort_order=2,
    )
    db_session.add(package)
    await db_session.commit()
    await db_session.refresh(package)
    return package


@pytest_asyncio.fixture
async def onu(db_session: AsyncSession, tenant: Tenant) -> ONU:
    olt = OLT(id=uuid4(), tenant_id=tenant.id, name="OLT-Dhanmondi", ip_address="10.0.0.2")
    db_session.add(olt)
    await db_session.flush()
    onu = ONU(
        id=uuid4(),
        tenant_id=tenant.id,
        olt_id=olt.id,
        name="ONU-0001",
        pon_port="0/1",
        onu_index=1,
        mac_address="AA:BB:CC:00:00:01",
        serial_number="HWTC00000001",
        router_name="Rahim-Home",
        pppoe_username="rahim01",
        rx_power=Decimal("-19.50"),
        tx_power=Decimal("2.10"),
        status="online",
        alive_time="3d 4h 10m",
    )
    db_session.add(onu)
    await db_session.commit()
    await db_session.refresh(onu)
    return onu


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession, tenant: Tenant, package: ISPPackage) -> Customer:
    """Create an active subscriber on `package` with 1,000 due."""
    customer = Customer(
        id=uuid4(),
        tenant_id=tenant.id,
        customer_code="C-1001",
        name="Karim Ahmed",
        phone="01911000000",
        email="karim@example.com",
        address="Flat 3B, Mirpur 10, Dhaka",
        pppoe_username="karim1001",
        package_id=package.id,
        status=CustomerStatus.ACTIVE,
        monthly_bill=Decimal("1000"),
        due_amount=Decimal("1000"),
        connection_date=date.today() - timedelta(days=200),
        expiry_date=date.today() + timedelta(days=5),
    )
    db_session.add(customer)
    await db_session.commit()
    await db_session.refresh(customer)
    return customer


@pytest.fixture
def customer_headers(customer: Customer) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_customer_token(customer.id)}"}


@pytest_asyncio.fixture
async def sslcommerz_config(db_session: AsyncSession, tenant: Tenant) -> TenantPaymentGateway:
    """Enabled SSLCommerz sandbox credentials for `tenant`."""
    row = TenantPaymentGateway(
        tenant_id=tenant.id,
        gateway="sslcommerz",
        display_name="SSLCommerz",
        is_enabled=True,
        sandbox_mode=True,
        config={"store_id": "testbox", "store_password": "qwerty"},
    )
    db_session.add(row)
    await db_session.commit()
    await db_session.refresh(row)
    return row


@pytest_asyncio.fixture
async def manual_config(db_session: AsyncSession) -> PaymentGatewaySetting:
    """Platform-wide manual payment setting."""
    row = PaymentGatewaySetting(
        gateway="manual",
        display_name="Manual Payment",
        is_enabled=True,
        sandbox_mode=False,
        config={},
    )
    db_session.add(row)
    await db_session.commit()
    await db_session.refresh(row)
    return row
