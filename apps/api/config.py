"""Application configuration with secure handling of sensitive values."""

import re
from functools import lru_cache
from typing import Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment and ``.env``.

    Sensitive fields use SecretStr so they never show up in logs, error
    messages or repr() output.
    """

    # Database - sqlite+aiosqlite for local use, postgresql+asyncpg in production
    database_url: str = "sqlite+aiosqlite:///./data/project_memory.db"

    @field_validator("database_url", mode="after")
    @classmethod
    def ensure_async_driver(cls, v: str) -> str:
        """Convert plain postgresql:// and sqlite:// URLs to their async drivers."""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    postgres_pool_min_size: int = 2
    postgres_pool_max_size: int = 10
    postgres_pool_recycle: int = 3600  # seconds

    # AI provider (OpenAI-compatible). Empty key = AI features disabled.
    openai_api_key: SecretStr = SecretStr("")
    openai_base_url: Optional[str] = None

    # Embedding model. Dimensions are stored with every vector so a model
    # change can be detected and re-embedded.
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Text generation
    chat_model: str = "gpt-4o-mini"
    answer_temperature: float = 0.5
    answer_max_tokens: int = 500
    task_extraction_temperature: float = 0.3
    task_extraction_max_tokens: int = 1000
    assistant_temperature: float = 0.7
    assistant_max_tokens: int = 500
    assistant_task_max_tokens: int = 800

    # Speech-to-text for recordings; audio files live under uploads_dir
    transcription_model: str = "whisper-1"
    uploads_dir: str = "./data/uploads"

    # Search tuning
    search_similarity_threshold: float = 0.3  # results must score strictly above
    search_default_limit: int = 5
    text_search_limit: Optional[int] = None  # None = return every match

    @field_validator("search_similarity_threshold")
    @classmethod
    def threshold_in_range(cls, v: float) -> float:
        """Cosine scores above the threshold must fit a 0..1 relevance score."""
        if not 0.0 <= v < 1.0:
            raise ValueError("search_similarity_threshold must be in [0, 1)")
        return v

    # Task import: False commits each write on its own, True wraps the batch
    reconcile_atomic: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: Optional[bool] = None  # None = JSON unless debug

    # App
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def ai_enabled(self) -> bool:
        """True when an API key for the AI provider is configured."""
        return bool(self.get_openai_api_key())

    def __repr__(self) -> str:
        """Custom repr that masks sensitive values."""
        safe_fields = {
            "database_url": self._mask_url(self.database_url),
            "openai_base_url": self.openai_base_url,
            "embedding_model": self.embedding_model,
            "embedding_dimensions": self.embedding_dimensions,
            "chat_model": self.chat_model,
            "search_similarity_threshold": self.search_similarity_threshold,
            "search_default_limit": self.search_default_limit,
            "ai_enabled": self.ai_enabled,
            "debug": self.debug,
        }
        fields_str = ", ".join(f"{k}={v!r}" for k, v in safe_fields.items())
        return f"Settings({fields_str})"

    @staticmethod
    def _mask_url(url: str) -> str:
        """Mask password in database URLs."""
        if not url:
            return url
        return re.sub(r":([^:@/]+)@", ":***@", url)

    def get_openai_api_key(self) -> str:
        """Safely get the AI provider API key value."""
        return self.openai_api_key.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    return Settings()
