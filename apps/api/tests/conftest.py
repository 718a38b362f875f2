"""Shared pytest fixtures for Project Memory API tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings
from db.database import build_engine, create_tables
from services.embeddings import EmbeddingService
from tests.factories import ProjectFactory
from tests.mocks import MockEmbeddingProvider, MockLLMProvider

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database with all tables created."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Async session on the in-memory database.

    Example:
        async def test_create_task(db_session, project):
            reconciler = TaskReconciler(db_session)
            await reconciler.reconcile(project.id, ["Ship it"])
    """
    session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def project(db_session):
    """A committed project to attach decisions and tasks to."""
    project = await ProjectFactory.create(db_session, name="Test Project")
    await db_session.commit()
    return project


@pytest.fixture
def mock_postgres_session():
    """Mock async session for tests that only check call patterns."""
    session = MagicMock()

    result = MagicMock()
    result.scalars = MagicMock(return_value=MagicMock(all=MagicMock(return_value=[])))

    session.execute = AsyncMock(return_value=result)
    session.get = AsyncMock(return_value=None)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session


# ============================================================================
# Provider Fixtures
# ============================================================================


@pytest.fixture
def mock_embedding_provider():
    """Four-dimensional mock embedding provider."""
    return MockEmbeddingProvider(dimensions=4)


@pytest.fixture
def embedding_service(mock_embedding_provider):
    return EmbeddingService(mock_embedding_provider)


@pytest.fixture
def mock_llm():
    """Mock text generation provider.

    Example:
        def test_answer(mock_llm):
            mock_llm.set_default_response("Because of latency.")
    """
    return MockLLMProvider()


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        openai_api_key="sk-test",
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_embedding():
    """Unit vector along the first axis."""
    return [1.0, 0.0, 0.0, 0.0]


@pytest.fixture
def sample_task_entries():
    """Raw entries as they arrive from an extraction run."""
    return [
        {"title": "Fix login bug", "priority": "high"},
        {"title": "Write release notes", "priority": "low"},
        "Update the onboarding docs",
    ]
