"""Configuration for the FastAPI service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    # Document store (Postgres JSONB)
    DATABASE_URL: str

    # Auth
    WORKER_API_KEY: str

    # Create the documents table on startup
    SETUP_SCHEMA: bool = False


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
