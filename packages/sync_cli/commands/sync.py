"""Metadata synchronization command."""

from __future__ import annotations

import sys
import uuid
from argparse import Namespace, _SubParsersAction
from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Engine

from packages.workspace_sync.config import MetadataDatabase
from packages.workspace_sync.context import WorkspaceSyncContext
from packages.workspace_sync.exceptions import WorkspaceSyncError
from packages.workspace_sync.feature_flags import StaticFeatureFlagResolver
from packages.workspace_sync.models import DataSource
from packages.workspace_sync.orchestrator import SyncReport, WorkspaceSyncMetadataService
from packages.workspace_sync.schema.enums import FeatureFlagKey

from ..config import RuntimeConfig

__all__ = ["register", "run", "resolve_contexts"]

logger = structlog.get_logger(__name__)


def register(subparsers: _SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "sync-metadata", help="Sync standard objects, fields and relations into workspaces"
    )
    parser.add_argument(
        "--workspace-id",
        dest="workspace_id",
        type=uuid.UUID,
        help="Workspace to sync (default: every workspace with a data source)",
    )
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Compute and log the diff without persisting it",
    )
    parser.add_argument(
        "--flag",
        dest="flags",
        action="append",
        choices=FeatureFlagKey.values(),
        metavar="KEY",
        help="Enable only the given feature flag(s) instead of the stored ones; repeatable",
    )
    parser.set_defaults(handler=run)


def resolve_contexts(engine: Engine, workspace_id: uuid.UUID | None = None) -> List[WorkspaceSyncContext]:
    """Return one context per workspace data source, oldest first."""

    stmt = select(DataSource).order_by(DataSource.created_at)
    if workspace_id is not None:
        stmt = stmt.where(DataSource.workspace_id == workspace_id)
    contexts: List[WorkspaceSyncContext] = []
    seen: set[uuid.UUID] = set()
    with MetadataDatabase(engine).session() as session:
        for data_source in session.execute(stmt).scalars():
            if data_source.workspace_id in seen:
                continue
            seen.add(data_source.workspace_id)
            contexts.append(WorkspaceSyncContext(data_source.workspace_id, data_source.id))
    return contexts


def _print_report(report: SyncReport) -> None:
    mode = "dry-run" if report.dry_run else "applied"
    changes = {name: count for name, count in report.counts.items() if count}
    print(f"{report.workspace_id}: {report.state.value} ({mode})")
    if not changes:
        print("    no changes")
    for name, count in changes.items():
        print(f"    {name}: {count}")
    for migration in report.migrations:
        print(f"    + {migration}")
    if report.log_dir is not None:
        print(f"    logs: {report.log_dir}")


def run(args: Namespace, config: RuntimeConfig) -> None:
    engine = config.engine()
    try:
        workspace_id = getattr(args, "workspace_id", None)
        contexts = resolve_contexts(engine, workspace_id)
        if not contexts:
            target = f"workspace {workspace_id}" if workspace_id else "any workspace"
            raise SystemExit(f"No data source registered for {target}. Run init-db --workspace-id first.")

        flags = getattr(args, "flags", None)
        resolver = (
            StaticFeatureFlagResolver({key: True for key in flags}) if flags else None
        )
        service = WorkspaceSyncMetadataService.from_settings(
            config.settings, engine, feature_flag_resolver=resolver
        )

        failures = 0
        for context in contexts:
            try:
                report = service.synchronize(context, dry_run=bool(getattr(args, "dry_run", False)))
            except WorkspaceSyncError as exc:
                failures += 1
                logger.error(
                    "workspace_sync_failed",
                    workspace_id=str(context.workspace_id),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                print(f"{context.workspace_id}: failed ({type(exc).__name__}: {exc})", file=sys.stderr)
                continue
            _print_report(report)
    finally:
        engine.dispose()

    if failures:
        raise SystemExit(1)
