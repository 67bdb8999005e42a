"""Top-level coordinator of a workspace metadata sync run."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.engine import Engine

from .config import MetadataDatabase, SyncSettings, init_engine
from .context import WorkspaceSyncContext
from .exceptions import MigrationExecutionError
from .feature_flags import FeatureFlagResolver, FeatureGate, WorkspaceFeatureFlagResolver
from .logs import LogSink, WorkspaceLogsService
from .metadata_store import MetadataQueryRunner
from .migration_runner import MigrationRunner, WorkspaceMigrationRunner
from .object_sync import WorkspaceSyncObjectMetadataService
from .relation_sync import WorkspaceSyncRelationMetadataService
from .storage import WorkspaceSyncStorage

__all__ = [
    "SyncState",
    "SyncTransition",
    "SyncEventLogger",
    "SyncReport",
    "WorkspaceSyncMetadataService",
]

logger = structlog.get_logger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    TRANSACTION_OPEN = "transaction_open"
    DIFFING = "diffing"
    DRY_RUN_ROLLBACK = "dry_run_rollback"
    COMMITTED = "committed"
    MIGRATION_EXECUTING = "migration_executing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncTransition:
    workspace_id: uuid.UUID
    source: SyncState
    target: SyncState
    dry_run: bool
    error: Optional[str] = None


SyncListener = Callable[[SyncTransition], None]


class SyncEventLogger:
    """Write state transitions of sync runs to structlog."""

    def __init__(self, logger_name: str = "workspace_sync.events") -> None:
        self._logger = structlog.get_logger(logger_name)

    def __call__(self, transition: SyncTransition) -> None:
        log = self._logger.error if transition.target == SyncState.FAILED else self._logger.info
        log(
            "workspace_sync_transition",
            workspace_id=str(transition.workspace_id),
            source=transition.source.value,
            target=transition.target.value,
            dry_run=transition.dry_run,
            error=transition.error,
        )


@dataclass
class SyncReport:
    workspace_id: uuid.UUID
    dry_run: bool
    state: SyncState = SyncState.IDLE
    states: List[SyncState] = field(default_factory=lambda: [SyncState.IDLE])
    counts: Dict[str, int] = field(default_factory=dict)
    migrations: List[str] = field(default_factory=list)
    log_dir: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace_id": str(self.workspace_id),
            "dry_run": self.dry_run,
            "state": self.state.value,
            "states": [state.value for state in self.states],
            "counts": dict(self.counts),
            "migrations": list(self.migrations),
            "log_dir": str(self.log_dir) if self.log_dir else None,
        }


class _Run:
    """State bookkeeping of one run; notifies listeners on every change."""

    def __init__(self, report: SyncReport, listeners: Iterable[SyncListener]) -> None:
        self.report = report
        self._listeners = tuple(listeners)

    def transition(self, target: SyncState, error: Optional[BaseException] = None) -> None:
        event = SyncTransition(
            workspace_id=self.report.workspace_id,
            source=self.report.state,
            target=target,
            dry_run=self.report.dry_run,
            error=f"{type(error).__name__}: {error}" if error is not None else None,
        )
        self.report.state = target
        self.report.states.append(target)
        for listener in self._listeners:
            listener(event)


class WorkspaceSyncMetadataService:
    """Diff the standard schema into a workspace and apply the result.

    Objects are synchronized before relations inside one transaction. A dry
    run rolls everything back and hands the diff to the log sink; otherwise
    the transaction is committed and the migration runner drains the
    workspace's pending queue. Every pre-commit failure rolls back and is
    re-raised to the caller once the store handle is released.
    """

    def __init__(
        self,
        query_runner_factory: Callable[[], MetadataQueryRunner],
        feature_flag_resolver: FeatureFlagResolver,
        migration_runner: MigrationRunner,
        log_sink: LogSink,
        *,
        object_sync: Optional[WorkspaceSyncObjectMetadataService] = None,
        relation_sync: Optional[WorkspaceSyncRelationMetadataService] = None,
        listeners: Optional[Iterable[SyncListener]] = None,
    ) -> None:
        self._query_runner_factory = query_runner_factory
        self._feature_flag_resolver = feature_flag_resolver
        self._migration_runner = migration_runner
        self._log_sink = log_sink
        self._object_sync = object_sync or WorkspaceSyncObjectMetadataService()
        self._relation_sync = relation_sync or WorkspaceSyncRelationMetadataService()
        self._listeners = tuple(listeners) if listeners is not None else (SyncEventLogger(),)

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        engine: Optional[Engine] = None,
        *,
        feature_flag_resolver: Optional[FeatureFlagResolver] = None,
        listeners: Optional[Iterable[SyncListener]] = None,
    ) -> "WorkspaceSyncMetadataService":
        engine = engine or init_engine(settings)
        database = MetadataDatabase(engine)
        resolver = feature_flag_resolver or WorkspaceFeatureFlagResolver(
            database.session, settings.DEFAULT_FEATURE_FLAGS
        )
        return cls(
            lambda: MetadataQueryRunner(engine),
            resolver,
            WorkspaceMigrationRunner(engine, apply_ddl=settings.APPLY_DDL),
            WorkspaceLogsService(settings.LOG_DIR),
            listeners=listeners,
        )

    def synchronize(self, context: WorkspaceSyncContext, *, dry_run: bool = False) -> SyncReport:
        report = SyncReport(workspace_id=context.workspace_id, dry_run=dry_run)
        run = _Run(report, self._listeners)
        storage = WorkspaceSyncStorage(context.workspace_id)
        query_runner = self._query_runner_factory()

        try:
            query_runner.connect()
            query_runner.start_transaction()
            run.transition(SyncState.TRANSACTION_OPEN)

            run.transition(SyncState.DIFFING)
            gate = FeatureGate(self._feature_flag_resolver.resolve(context))
            manager = query_runner.manager
            migrations = self._object_sync.synchronize(context, manager, storage, gate)
            migrations += self._relation_sync.synchronize(context, manager, storage, gate)
            report.counts = storage.counts()
            report.migrations = [migration.name for migration in migrations]

            if dry_run:
                query_runner.rollback_transaction()
                run.transition(SyncState.DRY_RUN_ROLLBACK)
                report.log_dir = self._log_sink.save_logs(storage, migrations)
                run.transition(SyncState.DONE)
                return report

            query_runner.commit_transaction()
            run.transition(SyncState.COMMITTED)
        except Exception as exc:
            if query_runner.is_transaction_active:
                try:
                    query_runner.rollback_transaction()
                except Exception:
                    logger.warning(
                        "workspace_sync_rollback_failed",
                        workspace_id=str(context.workspace_id),
                        exc_info=True,
                    )
            run.transition(SyncState.FAILED, exc)
            raise
        finally:
            query_runner.release()

        run.transition(SyncState.MIGRATION_EXECUTING)
        try:
            self._migration_runner.execute_pending_migrations(context.workspace_id)
        except MigrationExecutionError as exc:
            run.transition(SyncState.FAILED, exc)
            raise
        except Exception as exc:
            run.transition(SyncState.FAILED, exc)
            raise MigrationExecutionError(
                f"migration runner failed for workspace {context.workspace_id}: {exc}",
                workspace_id=context.workspace_id,
            ) from exc
        run.transition(SyncState.DONE)
        return report
