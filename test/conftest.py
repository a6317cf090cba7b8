"""
Pytest configuration and fixtures for the salon backend tests
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

# Settings are read once; configure the environment before importing salon
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SERVICE_TOKEN"] = "test-service-token"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_xxx"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_xxx"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import salon.database as database_module  # noqa: E402
from salon import models  # noqa: E402, F401
from salon.config import Settings, get_settings  # noqa: E402
from salon.database import Base  # noqa: E402
from salon.main import create_app  # noqa: E402
from salon.middleware.rate_limit import limiter  # noqa: E402
from salon.models.tenant import Tenant  # noqa: E402
from salon.models.user import User  # noqa: E402
from salon.plans import PlanCatalog, get_plan_catalog  # noqa: E402


@pytest.fixture(scope="function")
async def session_factory(monkeypatch) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh in-memory database per test.

    The application's engine and session maker are swapped for the test
    ones so get_db and the scheduler jobs use the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    monkeypatch.setattr(database_module, "engine", engine)
    monkeypatch.setattr(database_module, "AsyncSessionLocal", factory)

    yield factory

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Environment settings with backups written under the test's tmp dir."""
    return get_settings().model_copy(update={"backup_dir": str(tmp_path / "backups")})


@pytest.fixture
def catalog() -> PlanCatalog:
    return get_plan_catalog()


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
async def test_user(test_db: AsyncSession) -> User:
    user = User(email="owner@barbearia.com", phone="+5511999990000")
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
def make_tenant(test_db: AsyncSession):
    """Factory creating tenants with the given plan columns."""
    counter = {"n": 0}

    async def _make(**overrides) -> Tenant:
        counter["n"] += 1
        values = {
            "name": f"Barbearia {counter['n']}",
            "slug": f"barbearia-{counter['n']}",
            "plan_tier": "essential",
            "plan_status": "pending",
            "payment_completed": False,
        }
        values.update(overrides)
        tenant = Tenant(**values)
        test_db.add(tenant)
        await test_db.commit()
        return tenant

    return _make


@pytest.fixture
async def premium_tenant(make_tenant, test_user) -> Tenant:
    return await make_tenant(
        owner_id=test_user.id,
        plan_tier="premium",
        plan_status="active",
        payment_completed=True,
        current_period_end=datetime(2099, 1, 1, tzinfo=timezone.utc),
        stripe_customer_id="cus_premium",
        stripe_subscription_id="sub_premium",
    )


@pytest.fixture
async def expired_tenant(make_tenant) -> Tenant:
    return await make_tenant(
        plan_tier="professional",
        plan_status="active",
        payment_completed=True,
        current_period_end=datetime.now(timezone.utc) - timedelta(days=1),
    )


@pytest.fixture
def app(session_factory, settings):
    """Application wired to the test database and settings."""
    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
