"""Configuration and engine helpers for the metadata store."""

from __future__ import annotations

from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

__all__ = ["SyncSettings", "MetadataDatabase", "init_engine", "normalize_database_url"]


class SyncSettings(BaseSettings):
    """Workspace sync settings"""

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Metadata store
    DATABASE_URL: str = Field(
        default="sqlite:///./metadata.db",
        validation_alias=AliasChoices("WORKSPACE_SYNC_DATABASE_URL", "DATABASE_URL"),
    )
    DB_ECHO: bool = False

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs/workspace-sync")  # dry-run diff logs

    # Sync behaviour
    DEFAULT_FEATURE_FLAGS: List[str] = Field(default_factory=list)
    APPLY_DDL: bool = True


def normalize_database_url(database_url: str) -> str:
    """Rewrite Postgres URLs to the psycopg 3 driver."""

    if database_url.startswith("postgres://"):
        return "postgresql+psycopg://" + database_url[len("postgres://") :]
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return database_url


def init_engine(settings: SyncSettings) -> Engine:
    """Create an SQLAlchemy engine for the metadata store."""

    database_url = normalize_database_url(settings.DATABASE_URL)

    engine_kwargs = {"future": True, "echo": settings.DB_ECHO}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            from sqlalchemy.pool import StaticPool

            engine_kwargs["poolclass"] = StaticPool
    return create_engine(database_url, pool_pre_ping=True, **engine_kwargs)


class MetadataDatabase:
    """Session factory wrapper for the metadata store."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def session(self) -> Session:
        return self._session_factory()

    def create_all(self) -> None:
        """Create metadata tables (development and tests)."""
        Base.metadata.create_all(self.engine)
