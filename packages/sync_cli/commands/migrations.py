"""Pending migration inspection and execution commands."""

from __future__ import annotations

import uuid
from argparse import Namespace, _SubParsersAction

from packages.workspace_sync.config import MetadataDatabase
from packages.workspace_sync.exceptions import MigrationExecutionError
from packages.workspace_sync.migration_runner import WorkspaceMigrationRunner, pending_migrations

from ..config import RuntimeConfig

__all__ = ["register"]


def register(subparsers: _SubParsersAction) -> None:
    pending = subparsers.add_parser(
        "pending-migrations", help="List migrations queued for a workspace"
    )
    pending.add_argument("--workspace-id", dest="workspace_id", type=uuid.UUID, required=True)
    pending.set_defaults(handler=_cmd_pending)

    execute = subparsers.add_parser(
        "run-migrations", help="Execute the pending migrations of a workspace"
    )
    execute.add_argument("--workspace-id", dest="workspace_id", type=uuid.UUID, required=True)
    execute.set_defaults(handler=_cmd_run)


def _cmd_pending(args: Namespace, config: RuntimeConfig) -> None:
    engine = config.engine()
    try:
        with MetadataDatabase(engine).session() as session:
            migrations = pending_migrations(session, args.workspace_id)
    finally:
        engine.dispose()
    if not migrations:
        print("No pending migrations.")
        return
    for migration in migrations:
        print(f"{migration.name} ({len(migration.migrations)} table action(s))")


def _cmd_run(args: Namespace, config: RuntimeConfig) -> None:
    engine = config.engine()
    try:
        runner = WorkspaceMigrationRunner(engine, apply_ddl=config.settings.APPLY_DDL)
        applied = runner.execute_pending_migrations(args.workspace_id)
    except MigrationExecutionError as exc:
        raise SystemExit(f"Migration failed: {exc}") from exc
    finally:
        engine.dispose()
    print(f"Applied {len(applied)} migration(s).")
