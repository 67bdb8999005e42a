import uuid

import pytest
from sqlalchemy import inspect, select

from packages.workspace_sync.exceptions import MigrationExecutionError
from packages.workspace_sync.migration_factory import (
    ColumnAction,
    ColumnDefinition,
    TableAction,
    add_field_columns,
    alter_relation_columns,
    create_relation_columns,
    create_table,
    drop_relation_columns,
)
from packages.workspace_sync.migration_runner import WorkspaceMigrationRunner, render_migration_sql
from packages.workspace_sync.models import WorkspaceMigration, utcnow
from packages.workspace_sync.schema.enums import (
    ColumnActionType,
    DefaultFunction,
    TableActionType,
    function_default,
)


def _table():
    return create_table(
        "company",
        [
            {"name": "id", "type": "UUID", "target_column_map": {"value": "id"},
             "is_nullable": False, "default_value": function_default(DefaultFunction.UUID)},
            {"name": "createdAt", "type": "DATE_TIME", "target_column_map": {"value": "createdAt"},
             "is_nullable": False, "default_value": function_default(DefaultFunction.NOW)},
            {"name": "name", "type": "TEXT", "target_column_map": {"value": "name"},
             "default_value": "O'Brien"},
        ],
    )


def test_render_create_table_for_postgres():
    (statement,) = render_migration_sql([_table()], "workspace_1", "postgresql")

    assert statement == (
        'CREATE TABLE IF NOT EXISTS "workspace_1"."company" ('
        '"id" uuid NOT NULL DEFAULT gen_random_uuid() PRIMARY KEY, '
        '"createdAt" timestamptz NOT NULL DEFAULT now(), '
        "\"name\" text DEFAULT 'O''Brien')"
    )


def test_render_create_table_for_sqlite_ignores_schema_and_uuid_default():
    (statement,) = render_migration_sql([_table().model_dump(mode="json")], "workspace_1", "sqlite")

    assert statement.startswith('CREATE TABLE IF NOT EXISTS "company" (')
    assert '"id" uuid NOT NULL PRIMARY KEY' in statement
    assert "DEFAULT CURRENT_TIMESTAMP" in statement


def test_foreign_keys_are_postgres_only():
    action = create_relation_columns("person", "company", "companyId", "SET_NULL")

    assert render_migration_sql([action], "ws", "sqlite") == [
        'ALTER TABLE "person" ADD COLUMN "companyId" uuid'
    ]
    assert render_migration_sql([action], "ws", "postgresql") == [
        'ALTER TABLE "ws"."person" ADD COLUMN "companyId" uuid',
        'ALTER TABLE "ws"."person" ADD CONSTRAINT "fk_person_companyId" '
        'FOREIGN KEY ("companyId") REFERENCES "ws"."company" ("id") ON DELETE SET NULL',
    ]
    assert render_migration_sql([drop_relation_columns("person", "companyId")], None, "postgresql") == [
        'ALTER TABLE "person" DROP CONSTRAINT IF EXISTS "fk_person_companyId"',
        'DROP INDEX IF EXISTS "uq_person_companyId"',
        'ALTER TABLE "person" DROP COLUMN "companyId"',
    ]


def test_render_alter_column_changes():
    current = ColumnDefinition(column_name="employees", column_type="float")
    altered = ColumnDefinition(column_name="employees", column_type="numeric", is_nullable=False,
                               default_value=0)
    action = TableAction(
        name="company",
        action=TableActionType.ALTER,
        columns=[ColumnAction(action=ColumnActionType.ALTER, column_name="employees",
                              current=current, definition=altered)],
    )

    assert render_migration_sql([action], None, "postgresql") == [
        'ALTER TABLE "company" ALTER COLUMN "employees" TYPE numeric USING "employees"::numeric',
        'ALTER TABLE "company" ALTER COLUMN "employees" SET NOT NULL',
        'ALTER TABLE "company" ALTER COLUMN "employees" SET DEFAULT 0',
    ]
    assert render_migration_sql([action], None, "sqlite") == []


def test_render_join_column_rename():
    action = alter_relation_columns("person", "company", "companyId", "employerId", "CASCADE")

    assert render_migration_sql([action], None, "sqlite") == [
        'DROP INDEX IF EXISTS "uq_person_companyId"',
        'ALTER TABLE "person" RENAME COLUMN "companyId" TO "employerId"',
    ]


def test_one_to_one_join_column_gets_unique_index():
    action = create_relation_columns("blocklist", "workspaceMember", "workspaceMemberId", "CASCADE",
                                     "ONE_TO_ONE")

    assert render_migration_sql([action], None, "sqlite") == [
        'ALTER TABLE "blocklist" ADD COLUMN "workspaceMemberId" uuid',
        'CREATE UNIQUE INDEX IF NOT EXISTS "uq_blocklist_workspaceMemberId" '
        'ON "blocklist" ("workspaceMemberId")',
    ]
    statements = render_migration_sql([action], "ws", "postgresql")
    assert statements[-1] == (
        'CREATE UNIQUE INDEX IF NOT EXISTS "uq_blocklist_workspaceMemberId" '
        'ON "ws"."blocklist" ("workspaceMemberId")'
    )
    assert render_migration_sql([drop_relation_columns("blocklist", "workspaceMemberId")], "ws",
                                "postgresql")[1] == (
        'DROP INDEX IF EXISTS "ws"."uq_blocklist_workspaceMemberId"'
    )


def test_cardinality_change_toggles_unique_index():
    to_one = alter_relation_columns("person", "company", "companyId", "companyId", "SET_NULL",
                                    "ONE_TO_ONE")
    to_many = alter_relation_columns("person", "company", "companyId", "companyId", "SET_NULL",
                                     "ONE_TO_MANY")

    assert render_migration_sql([to_one], None, "sqlite") == [
        'DROP INDEX IF EXISTS "uq_person_companyId"',
        'CREATE UNIQUE INDEX IF NOT EXISTS "uq_person_companyId" ON "person" ("companyId")',
    ]
    assert render_migration_sql([to_many], None, "sqlite") == [
        'DROP INDEX IF EXISTS "uq_person_companyId"',
    ]


def test_literal_defaults_matching_function_names_stay_literal():
    action = add_field_columns(
        "activity",
        {"name": "type", "type": "TEXT", "target_column_map": {"value": "type"},
         "default_value": "now"},
    )

    assert render_migration_sql([action], None, "postgresql") == [
        'ALTER TABLE "activity" ADD COLUMN "type" text DEFAULT \'now\''
    ]
    assert render_migration_sql([action], None, "sqlite") == [
        'ALTER TABLE "activity" ADD COLUMN "type" text DEFAULT \'now\''
    ]


def _queue(database, workspace_id, name, actions):
    with database.session() as session, session.begin():
        session.add(
            WorkspaceMigration(
                workspace_id=workspace_id,
                name=name,
                migrations=[action.model_dump(mode="json") for action in actions],
                created_at=utcnow(),
            )
        )


def test_runner_applies_pending_migrations_in_order(engine, database, context):
    _queue(database, context.workspace_id, "0001-create-object-company", [_table()])
    _queue(database, context.workspace_id, "0002-create-relation-company.people",
           [create_table("person", [{"name": "id", "type": "UUID",
                                     "target_column_map": {"value": "id"}, "is_nullable": False}]),
            create_relation_columns("person", "company", "companyId", "SET_NULL")])

    applied = WorkspaceMigrationRunner(engine).execute_pending_migrations(context.workspace_id)

    assert [m.name for m in applied] == [
        "0001-create-object-company",
        "0002-create-relation-company.people",
    ]
    columns = {column["name"] for column in inspect(engine).get_columns("person")}
    assert columns == {"id", "companyId"}
    with database.session() as session:
        pending = session.execute(
            select(WorkspaceMigration).where(WorkspaceMigration.applied_at.is_(None))
        ).scalars().all()
    assert pending == []
    assert WorkspaceMigrationRunner(engine).execute_pending_migrations(context.workspace_id) == []


def test_runner_without_ddl_only_marks_migrations(engine, database, context):
    _queue(database, context.workspace_id, "0001-create-object-company", [_table()])

    applied = WorkspaceMigrationRunner(engine, apply_ddl=False).execute_pending_migrations(
        context.workspace_id
    )

    assert len(applied) == 1 and applied[0].applied_at is not None
    assert not inspect(engine).has_table("company")


def test_runner_failure_raises_and_keeps_queue(engine, database, context):
    _queue(database, context.workspace_id, "0001-drop-column",
           [drop_relation_columns("missing_table", "companyId")])

    with pytest.raises(MigrationExecutionError) as excinfo:
        WorkspaceMigrationRunner(engine).execute_pending_migrations(context.workspace_id)

    assert excinfo.value.workspace_id == context.workspace_id
    assert excinfo.value.metadata_committed is True
    with database.session() as session:
        migration = session.execute(select(WorkspaceMigration)).scalars().one()
    assert migration.applied_at is None


def test_runner_ignores_other_workspaces(engine, database, context):
    _queue(database, uuid.uuid4(), "0001-create-object-company", [_table()])

    assert WorkspaceMigrationRunner(engine).execute_pending_migrations(context.workspace_id) == []
