"""Runtime configuration helpers shared by command handlers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from sqlalchemy.engine import Engine

from packages.env import load_env
from packages.workspace_sync.config import SyncSettings, init_engine


@dataclass(frozen=True)
class RuntimeConfig:
    """Resolved configuration for command handlers."""

    settings: SyncSettings
    log_level: str

    def engine(self) -> Engine:
        return init_engine(self.settings)


def bootstrap(env_files: Iterable[str] = ()) -> List[Path]:
    """Load environment files, explicit ones first."""

    return load_env(extra_paths=env_files)


def build_runtime_config(
    *,
    log_level: Optional[str] = None,
    database_url: Optional[str] = None,
    log_dir: Optional[str] = None,
) -> RuntimeConfig:
    """Construct a :class:`RuntimeConfig` honoring CLI overrides.

    Flags win over the environment; an unset ``log_level`` falls back to
    ``SyncSettings.LOG_LEVEL``.
    """

    overrides = {}
    if database_url:
        overrides["DATABASE_URL"] = database_url
    if log_dir:
        overrides["LOG_DIR"] = Path(log_dir)
    settings = SyncSettings(**overrides)
    level = (log_level or settings.LOG_LEVEL).upper()
    return RuntimeConfig(settings=settings, log_level=level)
