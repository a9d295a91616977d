"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created fresh per test
- Organization / user / client factories
- JWT token minting and HTTPX AsyncClient for router tests
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Must be set before coachcrm.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from coachcrm.core.deps import COOKIE_NAME, get_db
from coachcrm.core.security import create_session_token
from coachcrm.db.base import Base
from coachcrm.db.enums import Role, SubscriptionPlan, SubscriptionStatus
from coachcrm.db.models import Client, Organization, User
from coachcrm.db.session import SessionLocal
from coachcrm.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """Single-connection in-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine: Engine) -> Generator[Session, None, None]:
    """Session bound to the per-test engine; app code may commit freely."""
    session = SessionLocal(bind=db_engine)
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_org(db: Session) -> Callable[..., Organization]:
    def _make_org(
        plan: SubscriptionPlan | str = SubscriptionPlan.STANDARD,
        status: SubscriptionStatus | str = SubscriptionStatus.ACTIVE,
        name: str = "Test Coaching",
    ) -> Organization:
        org = Organization(
            name=name,
            slug=f"org-{uuid.uuid4().hex[:8]}",
            subscription_plan=getattr(plan, "value", plan),
            subscription_status=getattr(status, "value", status),
        )
        db.add(org)
        db.commit()
        return org
    return _make_org


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make_user(
        org: Organization,
        role: Role | str = Role.COACH,
        is_biller: bool = False,
        is_supervisor: bool = False,
    ) -> User:
        role_value = getattr(role, "value", role)
        user = User(
            organization_id=org.id,
            email=f"{role_value}-{uuid.uuid4().hex[:8]}@test.com",
            display_name=f"Test {role_value.title()}",
            role=role_value,
            is_biller=is_biller,
            is_supervisor=is_supervisor,
        )
        db.add(user)
        db.commit()
        return user
    return _make_user


@pytest.fixture
def make_client(db: Session) -> Callable[..., Client]:
    def _make_client(org: Organization, name: str = "Client") -> Client:
        client = Client(organization_id=org.id, name=name)
        db.add(client)
        db.commit()
        return client
    return _make_client


@pytest.fixture
def test_org(make_org) -> Organization:
    """Active organization on the standard plan."""
    return make_org()


@pytest.fixture
def owner_user(make_user, test_org) -> User:
    return make_user(test_org, Role.OWNER)


@pytest.fixture
def coach_user(make_user, test_org) -> User:
    return make_user(test_org, Role.COACH)


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def mint_auth(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient using the test database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def authed_client(db: Session) -> Callable[[User], AsyncClient]:
    """
    Factory for an AsyncClient carrying a session cookie for ``user``.

    Use as ``async with authed_client(user) as c:``.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    def _client(user: User) -> AsyncClient:
        auth = mint_auth(user)
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={auth.cookie_name: auth.token},
        )

    yield _client

    app.dependency_overrides.clear()
