# tests/conftest.py
import pytest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from bona.main import app
from bona.db.database import Base
from bona.auth.permissions import Role
from bona.models.project_member import ProjectMember

# Import models so metadata knows about all tables
import bona.models  # noqa: F401

PROJECT_ID = "project-1"


@pytest.fixture(scope="session")
def engine():
    """Create an in-memory SQLite database shared across tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clean_db(engine):
    """Reset all tables before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture()
def db(engine):
    """Return a new SQLAlchemy session for each test."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_member(db, project_id=PROJECT_ID, user_id="user-1", role=Role.MEMBER):
    """Insert a membership row directly, bypassing the service checks."""
    member = ProjectMember(
        project_id=project_id,
        user_id=user_id,
        role=Role(role).value,
        created_by_user_id="seed",
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@pytest.fixture
def make_member(db):
    """Factory inserting memberships directly."""
    def _make(user_id, role=Role.MEMBER, project_id=PROJECT_ID):
        return create_member(db, project_id=project_id, user_id=user_id, role=role)
    return _make


@pytest.fixture
def project(db):
    """A project with one member of every role."""
    return {
        "id": PROJECT_ID,
        "owner": create_member(db, user_id="owner-1", role=Role.OWNER),
        "admin": create_member(db, user_id="admin-1", role=Role.ADMIN),
        "member": create_member(db, user_id="member-1", role=Role.MEMBER),
        "viewer": create_member(db, user_id="viewer-1", role=Role.VIEWER),
    }


@pytest.fixture
def current_user():
    """Mutable identity used by the mocked authentication dependency."""
    return {"user_id": "owner-1"}


@pytest.fixture
def override_auth(current_user):
    """Mock Clerk authentication to return the current test user."""
    async def mock_get_current_user_id():
        return current_user["user_id"]
    return mock_get_current_user_id


@pytest.fixture
def client(db, override_auth):
    """FastAPI test client that routes all DB deps to the test session."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    from bona.db.database import get_db as db_get_db
    from bona.auth.clerk import get_current_user_id

    app.dependency_overrides[db_get_db] = override_get_db
    app.dependency_overrides[get_current_user_id] = override_auth

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
