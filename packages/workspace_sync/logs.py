"""Persist dry-run diffs for inspection."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Protocol, Union

import structlog

from .models import WorkspaceMigration
from .storage import WorkspaceSyncStorage

__all__ = ["LogSink", "WorkspaceLogsService"]

logger = structlog.get_logger(__name__)


class LogSink(Protocol):
    def save_logs(
        self, storage: WorkspaceSyncStorage, migrations: Iterable[WorkspaceMigration]
    ) -> Path:
        ...


class WorkspaceLogsService:
    """Write one JSON document per non-empty diff collection.

    Files land in ``<log_dir>/<workspace_id>/<UTC timestamp>/`` next to a
    ``workspace-migrations.json`` holding the migrations that would have been
    queued.
    """

    def __init__(self, log_dir: Union[str, Path]) -> None:
        self._log_dir = Path(log_dir)

    def save_logs(
        self, storage: WorkspaceSyncStorage, migrations: Iterable[WorkspaceMigration]
    ) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        directory = self._log_dir / str(storage.workspace_id) / stamp
        directory.mkdir(parents=True, exist_ok=True)

        written = []
        for name, entries in storage.collections().items():
            if not entries:
                continue
            filename = f"{name.replace('_', '-')}.json"
            self._write(directory / filename, [entry.model_dump(mode="json") for entry in entries])
            written.append(filename)

        self._write(
            directory / "workspace-migrations.json",
            [migration.to_dict() for migration in migrations],
        )
        written.append("workspace-migrations.json")

        logger.info(
            "workspace_sync_logs_saved",
            workspace_id=str(storage.workspace_id),
            directory=str(directory),
            files=written,
        )
        return directory

    @staticmethod
    def _write(path: Path, payload) -> None:
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
