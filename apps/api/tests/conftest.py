"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database with the full schema,
so nothing leaks between tests and no Postgres server is needed.
"""
import os
import sys

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Must be set before core.config is first imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("RICH_PROVIDER", "anthropic")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from core.database import Base
from models import Member
from services.yoga_plan.service import YogaPlanService
from services.yoga_plan.store import SqlAlchemyPlanStore

from fixtures.yoga_fixtures import TENANT, make_orchestrator


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh database per test.

    StaticPool shares the single in-memory connection with TestClient's
    worker thread.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def member(db_session):
    """A member in TENANT with an empty progress ledger."""
    m = Member(
        id="member-1",
        tenant_id=TENANT,
        name="Test Member",
        email="member1@example.com",
        role="member",
    )
    db_session.add(m)
    db_session.commit()
    return m


@pytest.fixture
def orchestrator():
    return make_orchestrator()


@pytest.fixture
def store(db_session):
    return SqlAlchemyPlanStore(db_session)


@pytest.fixture
def plan_service(store, orchestrator):
    return YogaPlanService(store, orchestrator)
