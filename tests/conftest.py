"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.

All sessions share one in-memory connection (StaticPool) and BEGIN is
emitted explicitly so SAVEPOINTs behave as on PostgreSQL. Consequently a
test must commit its ``db`` session before calling the HTTP client.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leave_engine.common.constants import UserRole
from leave_engine.config import settings
from leave_engine.database import Base, get_db
from leave_engine.main import create_app

# Import ALL model modules so every table is on Base.metadata
import leave_engine.common.audit  # noqa: F401
import leave_engine.core_hr.models  # noqa: F401
import leave_engine.leave.models  # noqa: F401
import leave_engine.notifications.models  # noqa: F401
import leave_engine.schedules.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _configure_sqlite(dbapi_conn, connection_record):
    """Register NOW()/uuid_generate_v4() and take over transaction control."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )
    # Stop the driver from issuing its own BEGIN so SAVEPOINT works
    dbapi_conn.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _do_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leave_engine.common.rate_limit import limiter
    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Dates ───────────────────────────────────────────────────────────

def next_weekday(weekday: int, *, weeks_ahead: int = 1) -> date:
    """A future date falling on *weekday* (0=Monday) at least a week out."""
    start = date.today() + timedelta(days=7 * weeks_ahead)
    return start + timedelta(days=(weekday - start.weekday()) % 7)


# ── Model factories ─────────────────────────────────────────────────

def _make_department(
    *,
    name: str = "Engineering",
    manager_id: Optional[uuid.UUID] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        manager_id=manager_id,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    full_name: str = "Test User",
    role: UserRole = UserRole.user,
    department_id: Optional[uuid.UUID] = None,
    birth_date: Optional[date] = None,
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{code}",
        full_name=full_name,
        email=email or f"user.{code.lower()}@example.com",
        role=role,
        department_id=department_id,
        birth_date=birth_date,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def _seed_department(db: AsyncSession, **kwargs):
    from leave_engine.core_hr.models import Department

    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def _seed_employee(db: AsyncSession, **kwargs):
    from leave_engine.core_hr.models import Employee

    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


@pytest.fixture
async def test_department(db):
    """Insert a department (no manager yet)."""
    dept = await _seed_department(db)
    await db.commit()
    return dept


@pytest.fixture
async def test_employee(db, test_department):
    """Insert an active regular employee in test_department."""
    emp = await _seed_employee(
        db,
        email="test.user@example.com",
        department_id=test_department.id,
    )
    await db.commit()
    return emp


@pytest.fixture
async def admin_employee(db):
    """Insert an active admin with no department."""
    admin = await _seed_employee(
        db,
        email="admin@example.com",
        full_name="Admin User",
        role=UserRole.admin,
    )
    await db.commit()
    return admin


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    *,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(employee_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id)}"}


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    return bearer(test_employee.id)


@pytest.fixture
async def admin_headers(admin_employee) -> dict[str, str]:
    return bearer(admin_employee.id)
