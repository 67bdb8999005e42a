"""Execute the durable queue of pending workspace migrations."""

from __future__ import annotations

import json
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Union

import structlog
from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import MigrationExecutionError
from .migration_factory import ColumnAction, ColumnDefinition, TableAction
from .models import DataSource, WorkspaceMigration, utcnow
from .schema.enums import DEFAULT_FUNCTION_KEY, ColumnActionType, DefaultFunction, TableActionType

__all__ = [
    "MigrationRunner",
    "WorkspaceMigrationRunner",
    "render_migration_sql",
    "pending_migrations",
]

logger = structlog.get_logger(__name__)

POSTGRES = "postgresql"

_PG_TYPES = {"float": "double precision"}
_DEFAULT_FUNCTIONS = {
    POSTGRES: {DefaultFunction.UUID.value: "gen_random_uuid()", DefaultFunction.NOW.value: "now()"},
    "sqlite": {DefaultFunction.NOW.value: "CURRENT_TIMESTAMP"},
}


class MigrationRunner(Protocol):
    def execute_pending_migrations(self, workspace_id: uuid.UUID) -> List[WorkspaceMigration]:
        ...


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _table(name: str, schema: Optional[str], dialect: str) -> str:
    # SQLite has no per-tenant schemas; tenant tables share the database file.
    if schema and dialect == POSTGRES:
        return f"{_quote(schema)}.{_quote(name)}"
    return _quote(name)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if not isinstance(value, str):
        value = json.dumps(value)
    return "'" + value.replace("'", "''") + "'"


def _default(value: Any, dialect: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Mapping) and set(value) == {DEFAULT_FUNCTION_KEY}:
        # No DEFAULT clause when the dialect lacks the function.
        return _DEFAULT_FUNCTIONS.get(dialect, {}).get(value[DEFAULT_FUNCTION_KEY])
    return _literal(value)


def _column_type(column_type: str, dialect: str) -> str:
    if dialect == POSTGRES:
        return _PG_TYPES.get(column_type, column_type)
    return column_type


def _column_sql(definition: ColumnDefinition, dialect: str, *, adding: bool = False) -> str:
    parts = [_quote(definition.column_name), _column_type(definition.column_type, dialect)]
    default = _default(definition.default_value, dialect)
    # SQLite refuses ADD COLUMN ... NOT NULL without a constant default.
    if not definition.is_nullable and not (adding and dialect != POSTGRES and default is None):
        parts.append("NOT NULL")
    if default is not None:
        parts.append(f"DEFAULT {default}")
    if definition.is_primary and not adding:
        parts.append("PRIMARY KEY")
    return " ".join(parts)


def _foreign_key_name(table: str, column: str) -> str:
    return f"fk_{table}_{column}"[:63]


def _unique_index_name(table: str, column: str) -> str:
    return f"uq_{table}_{column}"[:63]


def _alter_column_sql(table: str, column: ColumnAction, dialect: str) -> List[str]:
    current, definition = column.current, column.definition
    statements: List[str] = []
    if current is None or definition is None:
        return statements
    name = current.column_name
    if definition.column_name != current.column_name:
        statements.append(
            f"ALTER TABLE {table} RENAME COLUMN {_quote(name)} TO {_quote(definition.column_name)}"
        )
        name = definition.column_name
    if dialect != POSTGRES:
        return statements
    quoted = _quote(name)
    if definition.column_type != current.column_type:
        column_type = _column_type(definition.column_type, dialect)
        statements.append(
            f"ALTER TABLE {table} ALTER COLUMN {quoted} TYPE {column_type} USING {quoted}::{column_type}"
        )
    if definition.is_nullable != current.is_nullable:
        verb = "DROP" if definition.is_nullable else "SET"
        statements.append(f"ALTER TABLE {table} ALTER COLUMN {quoted} {verb} NOT NULL")
    if definition.default_value != current.default_value:
        default = _default(definition.default_value, dialect)
        if default is None:
            statements.append(f"ALTER TABLE {table} ALTER COLUMN {quoted} DROP DEFAULT")
        else:
            statements.append(f"ALTER TABLE {table} ALTER COLUMN {quoted} SET DEFAULT {default}")
    return statements


def render_migration_sql(
    table_actions: Iterable[Union[TableAction, Mapping[str, Any]]],
    schema: Optional[str],
    dialect: str,
) -> List[str]:
    """Render stored table actions to DDL statements for ``dialect``.

    Foreign keys are only emitted for PostgreSQL; SQLite cannot add them to
    an existing table. Unique indexes of one-to-one join columns render on
    both dialects.
    """

    statements: List[str] = []
    for raw in table_actions:
        action = raw if isinstance(raw, TableAction) else TableAction.model_validate(raw)
        table = _table(action.name, schema, dialect)

        if action.action == TableActionType.CREATE:
            columns = [
                _column_sql(column.definition, dialect)
                for column in action.columns
                if column.action == ColumnActionType.CREATE and column.definition is not None
            ]
            statements.append(f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(columns)})")
            continue

        if action.action == TableActionType.DROP:
            cascade = " CASCADE" if dialect == POSTGRES else ""
            statements.append(f"DROP TABLE IF EXISTS {table}{cascade}")
            continue

        if action.new_name:
            statements.append(f"ALTER TABLE {table} RENAME TO {_quote(action.new_name)}")
            table = _table(action.new_name, schema, dialect)

        for column in action.columns:
            if column.action == ColumnActionType.CREATE and column.definition is not None:
                statements.append(
                    f"ALTER TABLE {table} ADD COLUMN {_column_sql(column.definition, dialect, adding=True)}"
                )
            elif column.action == ColumnActionType.DROP:
                statements.append(f"ALTER TABLE {table} DROP COLUMN {_quote(column.column_name)}")
            elif column.action == ColumnActionType.ALTER:
                statements.extend(_alter_column_sql(table, column, dialect))
            elif column.action == ColumnActionType.CREATE_UNIQUE:
                index = _quote(_unique_index_name(action.new_name or action.name, column.column_name))
                statements.append(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS {index} ON {table} ({_quote(column.column_name)})"
                )
            elif column.action == ColumnActionType.DROP_UNIQUE:
                index = _table(
                    _unique_index_name(action.new_name or action.name, column.column_name), schema, dialect
                )
                statements.append(f"DROP INDEX IF EXISTS {index}")
            elif dialect != POSTGRES:
                continue
            elif column.action == ColumnActionType.CREATE_FOREIGN_KEY:
                constraint = _quote(_foreign_key_name(action.new_name or action.name, column.column_name))
                referenced = _table(column.referenced_table_name, schema, dialect)
                on_delete = (column.on_delete or "SET_NULL").replace("_", " ")
                statements.append(
                    f"ALTER TABLE {table} ADD CONSTRAINT {constraint} "
                    f"FOREIGN KEY ({_quote(column.column_name)}) "
                    f"REFERENCES {referenced} ({_quote(column.referenced_column_name or 'id')}) "
                    f"ON DELETE {on_delete}"
                )
            elif column.action == ColumnActionType.DROP_FOREIGN_KEY:
                constraint = _quote(_foreign_key_name(action.new_name or action.name, column.column_name))
                statements.append(f"ALTER TABLE {table} DROP CONSTRAINT IF EXISTS {constraint}")
    return statements


def pending_migrations(session: Session, workspace_id: uuid.UUID) -> List[WorkspaceMigration]:
    """Return unapplied migrations of a workspace in execution order."""

    stmt = (
        select(WorkspaceMigration)
        .where(
            WorkspaceMigration.workspace_id == workspace_id,
            WorkspaceMigration.applied_at.is_(None),
        )
        .order_by(WorkspaceMigration.created_at, WorkspaceMigration.name)
    )
    return list(session.execute(stmt).scalars())


class WorkspaceMigrationRunner:
    """Apply every pending migration of a workspace in one transaction.

    With ``apply_ddl`` disabled the migrations are only marked applied, which
    is how deployments that manage tenant DDL elsewhere consume the queue.
    """

    def __init__(self, engine: Engine, apply_ddl: bool = True) -> None:
        self._engine = engine
        self._apply_ddl = apply_ddl

    def execute_pending_migrations(self, workspace_id: uuid.UUID) -> List[WorkspaceMigration]:
        dialect = self._engine.dialect.name
        try:
            with Session(self._engine, expire_on_commit=False) as session, session.begin():
                schema = session.execute(
                    select(DataSource.schema)
                    .where(DataSource.workspace_id == workspace_id)
                    .order_by(DataSource.created_at)
                ).scalars().first()
                pending = pending_migrations(session, workspace_id)
                if self._apply_ddl and pending and schema and dialect == POSTGRES:
                    session.execute(text(f"CREATE SCHEMA IF NOT EXISTS {_quote(schema)}"))
                for migration in pending:
                    if self._apply_ddl:
                        for statement in render_migration_sql(migration.migrations, schema, dialect):
                            logger.debug("workspace_migration_statement", name=migration.name, sql=statement)
                            session.execute(text(statement))
                    migration.applied_at = utcnow()
        except SQLAlchemyError as exc:
            logger.error(
                "workspace_migrations_failed", workspace_id=str(workspace_id), error=str(exc)
            )
            raise MigrationExecutionError(
                f"pending migrations failed for workspace {workspace_id}: {exc}",
                workspace_id=workspace_id,
            ) from exc

        logger.info(
            "workspace_migrations_applied",
            workspace_id=str(workspace_id),
            count=len(pending),
            ddl=self._apply_ddl,
        )
        return pending
