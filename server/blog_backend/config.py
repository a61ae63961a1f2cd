"""
Configuration and settings for the blog backend.
"""

from __future__ import annotations

from datetime import tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Backend selection: relational (MySQL) when true, in-memory otherwise.
    use_mysql: bool = Field(default=False)

    # Full SQLAlchemy URL; overrides the DB_* parts below when set.
    database_url: Optional[str] = Field(default=None)
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=3306)
    db_user: str = Field(default="root")
    db_password: str = Field(default="")
    db_name: str = Field(default="triphita_blog")
    db_pool_size: int = Field(default=10, ge=1)

    # IANA zone used to decide the "current month" for stats; server local
    # time when unset.
    timezone: Optional[str] = Field(default=None)

    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return URL.create(
            "mysql+aiomysql",
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        ).render_as_string(hide_password=False)

    def zone(self) -> Optional[tzinfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
