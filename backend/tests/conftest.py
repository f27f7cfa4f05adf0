"""
Test configuration and fixtures for task tracker tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Common fixtures for users of every role, tasks and comments
"""

import os
import sys
import logging
from datetime import timedelta
from typing import Dict, Generator, Optional

# The app's own engine must never touch a real database during tests
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from main import app
import models
from auth.security import password_hasher, token_service

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "Passw0rd!"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")

    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def client(test_db: Session) -> TestClient:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(
    db: Session,
    email: str,
    role: models.Role = models.Role.MEMBER,
    first_name: str = "Test",
    last_name: str = "User",
    is_active: bool = True,
    password: str = TEST_PASSWORD,
) -> models.User:
    user = models.User(
        email=email,
        password_hash=password_hasher.hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created {role.value} user with ID: {user.id}")
    return user


@pytest.fixture(scope="function")
def admin_user(test_db: Session) -> models.User:
    return make_user(test_db, "admin@test.com", models.Role.ADMIN, "Ada", "Admin")


@pytest.fixture(scope="function")
def manager_user(test_db: Session) -> models.User:
    return make_user(test_db, "manager@test.com", models.Role.MANAGER, "Max", "Manager")


@pytest.fixture(scope="function")
def member_user(test_db: Session) -> models.User:
    return make_user(test_db, "member@test.com", models.Role.MEMBER, "Mia", "Member")


@pytest.fixture(scope="function")
def another_member(test_db: Session) -> models.User:
    """A second MEMBER for multi-user scenarios."""
    return make_user(test_db, "another@test.com", models.Role.MEMBER, "Otto", "Other")


@pytest.fixture(scope="function")
def inactive_user(test_db: Session) -> models.User:
    return make_user(test_db, "inactive@test.com", models.Role.MEMBER, "Ina", "Inactive", is_active=False)


def create_auth_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token for a test user."""
    return token_service.sign(user.id, email=user.email, role=models.Role(user.role).value, expires_delta=expires_delta)


def auth_headers_for(user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(user)}"}


@pytest.fixture(scope="function")
def admin_headers(admin_user: models.User) -> Dict[str, str]:
    return auth_headers_for(admin_user)


@pytest.fixture(scope="function")
def manager_headers(manager_user: models.User) -> Dict[str, str]:
    return auth_headers_for(manager_user)


@pytest.fixture(scope="function")
def member_headers(member_user: models.User) -> Dict[str, str]:
    return auth_headers_for(member_user)


@pytest.fixture(scope="function")
def another_headers(another_member: models.User) -> Dict[str, str]:
    return auth_headers_for(another_member)


def make_task(
    db: Session,
    creator: models.User,
    title: str = "Write report",
    assignee: Optional[models.User] = None,
    status: models.TaskStatus = models.TaskStatus.TODO,
    **fields,
) -> models.Task:
    task = models.Task(
        title=title,
        creator_id=creator.id,
        assignee_id=assignee.id if assignee else None,
        status=status,
        **fields,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@pytest.fixture(scope="function")
def member_task(test_db: Session, member_user: models.User) -> models.Task:
    """A task created by member_user, unassigned."""
    return make_task(test_db, member_user, title="Member task")
