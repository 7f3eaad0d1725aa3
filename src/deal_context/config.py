"""
Configuration for the deal context engine.

Values come from the environment, optionally seeded from a ``.env`` file
at the project root. Read once at import time.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

_env_file = Path(__file__).resolve().parents[2] / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Settings loaded from the environment."""

    # Document store (Postgres JSONB)
    DATABASE_URL: str = os.getenv('DATABASE_URL', '')

    # Aggregation: 0 disables the deadline
    CONTEXT_TIMEOUT_SECONDS: float = float(os.getenv('CONTEXT_TIMEOUT_SECONDS', '0'))
    MAX_CONCURRENT_FETCHES: int = int(os.getenv('MAX_CONCURRENT_FETCHES', '16'))

    # Prompt assembly: 0 disables the KEY INSIGHTS cap
    INSIGHT_CHAR_BUDGET: int = int(os.getenv('INSIGHT_CHAR_BUDGET', '0'))

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_JSON: bool = _env_bool('LOG_JSON')

    @classmethod
    def validate(cls) -> list[str]:
        """Names of required settings that are missing."""
        required = {'DATABASE_URL': cls.DATABASE_URL}
        return [name for name, value in required.items() if not value]


config = Config()
