"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.dependencies import get_notifier
from backend.app.core.reliability import notification_circuit_breaker
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.models.project import Project
from backend.app.models.plot import Plot, PlotStatus
from backend.app.models.commission_rule import CommissionRule
from backend.app.models.finance_enums import CommissionRuleType

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


class RecordingNotifier:
    """Notifier double that records every sale it is told about."""

    def __init__(self):
        self.calls = []

    async def sale_completed(self, **kwargs):
        self.calls.append(kwargs)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def apply_overrides(notifier):
    """Route the app at the test database and the recording notifier."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    notification_circuit_breaker.reset_state()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


# --- Reference data ---

@pytest.fixture
async def people(db_session):
    """One user per role, keyed by role name."""
    users = {
        "admin": User(email="admin@test.com", name="Admin", role=UserRole.ADMIN),
        "buyer": User(email="buyer@test.com", name="Buyer", role=UserRole.BUYER),
        "seller": User(email="seller@test.com", name="Seller", role=UserRole.SELLER),
        "agent": User(email="agent@test.com", name="Agent", role=UserRole.AGENT),
    }
    db_session.add_all(users.values())
    await db_session.commit()
    return users


@pytest.fixture
async def project(db_session):
    project = Project(name="Green Valley", code="GV", city="Lahore")
    db_session.add(project)
    await db_session.commit()
    return project


@pytest.fixture
def make_plot(db_session, project, people):
    """Factory for plots in the test project."""

    async def _make_plot(
        plot_no="PL-202",
        size_marla="7",
        price="10000000",
        status=PlotStatus.AVAILABLE,
        with_seller=True,
        with_agent=True
    ):
        plot = Plot(
            project_id=project.id,
            plot_no=plot_no,
            size_marla=Decimal(size_marla),
            price=Decimal(price),
            status=status,
            seller_id=people["seller"].id if with_seller else None,
            booked_by_agent_id=people["agent"].id if with_agent else None,
            booking_date=datetime.utcnow() if with_agent else None,
        )
        db_session.add(plot)
        await db_session.commit()
        return plot

    return _make_plot


@pytest.fixture
async def tiered_rules(db_session):
    """Two adjacent global 2% / 2.5% tiers at equal priority."""
    rules = [
        CommissionRule(min_size=Decimal("0"), max_size=Decimal("5"),
                       rule_type=CommissionRuleType.PERCENT, value=Decimal("2"), priority=1),
        CommissionRule(min_size=Decimal("5"), max_size=Decimal("10"),
                       rule_type=CommissionRuleType.PERCENT, value=Decimal("2.5"), priority=1),
    ]
    db_session.add_all(rules)
    await db_session.commit()
    return rules
