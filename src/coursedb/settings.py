"""
coursedb.settings

Process configuration read from the environment (`COURSEDB_*`).
The connection string is read once at start-up and never reloaded.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COURSEDB_", case_sensitive=False
    )

    # Holds credentials, so it stays out of repr and logs
    dsn: str = Field(default="sqlite:///courses.db", repr=False)
    log_level: str = "INFO"

    # Seconds a unit of work may run before it is rolled back
    transaction_timeout: Optional[float] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
