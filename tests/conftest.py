# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["RBAC_SEED_ON_STARTUP"] = "false"
os.environ["RBAC_RECONCILE_ON_STARTUP"] = "false"

from src.api.deps import get_current_principal
from src.database import get_db
from src.events import AppEvent, event_bus
from src.main import app
from src.models import User
from src.models.base import Base
from src.models.enums import LegacyRole
from src.rbac.guards import Principal
from src.rbac.roles import ADMIN_ROLE, USER_ROLE
from src.services import rbac_service
from src.services.rbac_seed_service import seed_rbac_data

# Test database setup
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _make_user(
    db_session,
    username: str,
    role: LegacyRole = LegacyRole.USER,
    is_active: bool = True,
) -> User:
    """Create a user with the given legacy role and no RBAC roles."""
    user = User(
        username=username,
        email=f"{username}@example.com",
        role=role.value,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded(db_session):
    """Database with the core permission catalog and default roles."""
    seed_rbac_data(db_session)
    return db_session


@pytest.fixture
def make_user(db_session):
    """Return a function creating users in the test database."""

    def _factory(username: str, role: LegacyRole = LegacyRole.USER, is_active: bool = True):
        return _make_user(db_session, username, role=role, is_active=is_active)

    return _factory


@pytest.fixture
def events():
    """Record every audit event published during the test."""
    received = []

    def handler(payload):
        received.append(payload)

    for event_type in AppEvent:
        event_bus.subscribe(event_type, handler, "test-recorder")
    yield received
    for event_type in AppEvent:
        event_bus.unsubscribe(event_type, handler, "test-recorder")


@pytest.fixture
def test_user(seeded) -> User:
    """Create a regular user holding the default user role."""
    user = _make_user(seeded, "testuser")
    role = rbac_service.get_role_by_name(seeded, USER_ROLE)
    rbac_service.assign_role_to_user(seeded, user.id, role.id)
    return user


@pytest.fixture
def admin_user(seeded) -> User:
    """Create a legacy admin user holding the admin role."""
    user = _make_user(seeded, "admin", role=LegacyRole.ADMIN)
    role = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
    rbac_service.assign_role_to_user(seeded, user.id, role.id)
    return user


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Return a function that makes the client act on behalf of a user.

    Authentication itself happens upstream; the tests only attach the
    principal the middleware would have put on the request.
    """

    def _login_as(user: User | None):
        if user is None:
            app.dependency_overrides[get_current_principal] = lambda: None
        else:
            principal = Principal(id=user.id, legacy_role=user.role)
            app.dependency_overrides[get_current_principal] = lambda: principal
        return client

    return _login_as


@pytest.fixture
def authenticated_client(login_as, test_user):
    """Create a client acting as a regular user."""
    return login_as(test_user)


@pytest.fixture
def admin_client(login_as, admin_user):
    """Create a client acting as an admin."""
    return login_as(admin_user)
