"""Application wiring: settings, logging, database and AI providers.

Everything the services depend on is built once at startup and injected;
nothing is created lazily behind a global. An HTTP layer opens a session per
request and asks the container for the service it needs:

    async with lifespan() as container:
        async with container.session() as session:
            response = await container.search_service(session).search(1, "why redis?")
"""

import platform
from contextlib import asynccontextmanager
from typing import AsyncIterator

from openai import AsyncOpenAI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import db.database as database
from config import Settings, get_settings
from services.assistant import AssistantService
from services.embeddings import EmbeddingService
from services.llm_providers import (
    BaseEmbeddingProvider,
    BaseLLMProvider,
    BaseTranscriptionProvider,
    build_client,
    build_embedding_provider,
    build_llm_provider,
    build_transcription_provider,
)
from services.reconciler import TaskReconciler
from services.search import DecisionSearchService
from services.task_extractor import TaskExtractor
from services.transcription import RecordingTranscriber
from utils.logging import configure_logging, get_logger

APP_VERSION = "0.1.0"
APP_NAME = "Project Memory API"

logger = get_logger(__name__)


class AppContainer:
    """Holds the long-lived collaborators and builds per-session services."""

    def __init__(
        self,
        settings: Settings,
        embedding_provider: BaseEmbeddingProvider | None = None,
        llm_provider: BaseLLMProvider | None = None,
        transcription_provider: BaseTranscriptionProvider | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.settings = settings
        self.client = client
        self.embedding_provider = embedding_provider
        self.llm_provider = llm_provider
        self.transcription_provider = transcription_provider
        self.embeddings = (
            EmbeddingService(embedding_provider) if embedding_provider else None
        )

    def session(self):
        """Context manager for a session bound to the application database."""
        return database.session_scope()

    def search_service(self, session: AsyncSession) -> DecisionSearchService:
        return DecisionSearchService(
            session,
            embeddings=self.embeddings,
            llm=self.llm_provider,
            similarity_threshold=self.settings.search_similarity_threshold,
            default_limit=self.settings.search_default_limit,
            text_search_limit=self.settings.text_search_limit,
            answer_temperature=self.settings.answer_temperature,
            answer_max_tokens=self.settings.answer_max_tokens,
        )

    def task_reconciler(self, session: AsyncSession) -> TaskReconciler:
        return TaskReconciler(session, atomic=self.settings.reconcile_atomic)

    def task_extractor(self) -> TaskExtractor:
        return TaskExtractor(
            self.llm_provider,
            temperature=self.settings.task_extraction_temperature,
            max_tokens=self.settings.task_extraction_max_tokens,
        )

    def assistant_service(self, session: AsyncSession) -> AssistantService:
        return AssistantService(
            session,
            self.llm_provider,
            temperature=self.settings.assistant_temperature,
            max_tokens=self.settings.assistant_max_tokens,
            task_max_tokens=self.settings.assistant_task_max_tokens,
        )

    def recording_transcriber(self) -> RecordingTranscriber:
        return RecordingTranscriber(
            self.transcription_provider, self.settings.uploads_dir
        )


async def check_database_connection() -> bool:
    """Verify the database connection is healthy."""
    if database.engine is None:
        return False
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def log_startup_banner(container: AppContainer):
    """Log structured startup information."""
    settings = container.settings
    environment = "development" if settings.debug else "production"

    logger.info(
        "Application startup complete",
        extra={
            "event": "startup",
            "app_name": APP_NAME,
            "app_version": APP_VERSION,
            "environment": environment,
            "python_version": platform.python_version(),
            "config": {
                "ai_enabled": settings.ai_enabled,
                "embedding_model": settings.embedding_model,
                "chat_model": settings.chat_model,
                "transcription_model": settings.transcription_model,
                "similarity_threshold": settings.search_similarity_threshold,
                "search_limit": settings.search_default_limit,
                "reconcile_atomic": settings.reconcile_atomic,
            },
        },
    )
    logger.info(f"App: {APP_NAME} v{APP_VERSION} ({environment})")
    if not settings.ai_enabled:
        logger.warning("AI provider not configured; search runs in text mode")


async def startup(settings: Settings | None = None) -> AppContainer:
    """Configure logging, open the database and build the providers."""
    settings = settings or get_settings()
    json_format = settings.log_json
    if json_format is None:
        json_format = not settings.debug
    configure_logging(level=settings.log_level, json_format=json_format)

    logger.info(f"{APP_NAME} v{APP_VERSION} starting up...")
    try:
        await database.init_database(settings)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    client = build_client(settings)
    container = AppContainer(
        settings,
        embedding_provider=build_embedding_provider(settings, client),
        llm_provider=build_llm_provider(settings, client),
        transcription_provider=build_transcription_provider(settings, client),
        client=client,
    )
    log_startup_banner(container)
    return container


async def shutdown(container: AppContainer | None = None) -> None:
    logger.info("Shutting down gracefully...", extra={"event": "shutdown"})
    if container is not None and container.client is not None:
        try:
            await container.client.close()
        except Exception as e:
            logger.error(f"Failed to close AI provider client: {e}")
    await database.close_database()
    logger.info("Graceful shutdown complete")


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[AppContainer]:
    """Startup on enter, shutdown on exit."""
    container = await startup(settings)
    try:
        yield container
    finally:
        await shutdown(container)
