"""Shared test fixtures."""

import os
from datetime import datetime, timedelta

# Keep the app's module-level engine and storage away from real data
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VOICE_HISTORY_DELAY_MS", "0")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.storage.database import Base, enable_sqlite_foreign_keys, get_db
from app.core.storage.file_storage import LocalFileStorage, get_file_storage
from app.core.tools import McpClientsManager, WorkflowRegistry
from app.models.database import ChatThread, User, UserSession
from app.models.schemas.project import ProjectCreate
from app.repositories import ProjectRepository

TEST_SESSION_TOKEN = "test-session-token"
OTHER_SESSION_TOKEN = "other-session-token"


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session for a test."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


async def _create_user(db_session, name: str, email: str, token: str) -> User:
    user = User(name=name, email=email, preferences={})
    db_session.add(user)
    await db_session.flush()
    db_session.add(
        UserSession(token=token, user_id=user.id, expires_at=datetime.utcnow() + timedelta(days=1))
    )
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def sample_user(db_session):
    """User with a live session token."""
    return await _create_user(db_session, "Test User", "test@example.com", TEST_SESSION_TOKEN)


@pytest_asyncio.fixture
async def other_user(db_session):
    """Second user, for ownership checks."""
    return await _create_user(db_session, "Other User", "other@example.com", OTHER_SESSION_TOKEN)


@pytest.fixture
def auth_headers(sample_user):
    return {"Authorization": f"Bearer {TEST_SESSION_TOKEN}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {OTHER_SESSION_TOKEN}"}


@pytest_asyncio.fixture
async def sample_project(db_session, sample_user):
    """Project (with its default V1 version) owned by sample_user."""
    return await ProjectRepository(db_session).create_project(
        sample_user.id,
        ProjectCreate(name="Test Project", description="A test project", tech_stack=["Python", "FastAPI"]),
    )


@pytest_asyncio.fixture
async def sample_thread(db_session, sample_user):
    """Empty thread owned by sample_user."""
    thread = ChatThread(id="thread-1", user_id=sample_user.id, title="Test Thread")
    db_session.add(thread)
    await db_session.commit()
    await db_session.refresh(thread)
    return thread


@pytest.fixture
def file_storage(tmp_path):
    """Object storage rooted in a temporary directory."""
    return LocalFileStorage(base_path=str(tmp_path / "storage"), prefix="uploads")


@pytest.fixture
def mcp_manager():
    return McpClientsManager()


@pytest.fixture
def app(db_session, file_storage, mcp_manager):
    """Application wired to the test database and storage."""
    from app.main import app as fastapi_app

    async def get_test_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = get_test_db
    fastapi_app.dependency_overrides[get_file_storage] = lambda: file_storage
    fastapi_app.state.mcp_manager = mcp_manager
    fastapi_app.state.workflow_registry = WorkflowRegistry()

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app, auth_headers):
    """HTTP client authenticated as sample_user."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as c:
        yield c


@pytest_asyncio.fixture
async def anonymous_client(app):
    """HTTP client without a session."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
