"""Build workspace migrations (table/column actions) from computed diffs."""

from __future__ import annotations

import itertools
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .context import WorkspaceSyncContext
from .models import WorkspaceMigration, utcnow
from .schema.enums import (
    ColumnActionType,
    DiffAction,
    FieldType,
    MetadataKind,
    RelationType,
    TableActionType,
)

__all__ = [
    "ColumnDefinition",
    "ColumnAction",
    "TableAction",
    "COLUMN_TYPES",
    "column_definitions",
    "create_table",
    "alter_table",
    "drop_table",
    "add_field_columns",
    "alter_field_columns",
    "drop_field_columns",
    "create_relation_columns",
    "alter_relation_columns",
    "drop_relation_columns",
    "WorkspaceMigrationFactory",
]

COLUMN_TYPES: Mapping[str, str] = {
    FieldType.UUID.value: "uuid",
    FieldType.TEXT.value: "text",
    FieldType.NUMBER.value: "float",
    FieldType.NUMERIC.value: "numeric",
    FieldType.BOOLEAN.value: "boolean",
    FieldType.DATE_TIME.value: "timestamptz",
    FieldType.EMAIL.value: "text",
    FieldType.PHONE.value: "text",
    FieldType.SELECT.value: "text",
    FieldType.POSITION.value: "float",
}

COMPOSITE_COLUMN_TYPES: Mapping[str, Mapping[str, str]] = {
    FieldType.LINK.value: {"label": "text", "url": "text"},
    FieldType.CURRENCY.value: {"amountMicros": "numeric", "currencyCode": "text"},
    FieldType.FULL_NAME.value: {"firstName": "text", "lastName": "text"},
}

# Process-wide ordinal so migrations queued in the same instant keep order.
_ORDINAL = itertools.count(1)


class ColumnDefinition(BaseModel):
    column_name: str
    column_type: str
    is_nullable: bool = True
    default_value: Any = None
    is_primary: bool = False


class ColumnAction(BaseModel):
    action: ColumnActionType
    column_name: str
    definition: Optional[ColumnDefinition] = None
    current: Optional[ColumnDefinition] = None
    referenced_table_name: Optional[str] = None
    referenced_column_name: Optional[str] = None
    on_delete: Optional[str] = None


class TableAction(BaseModel):
    name: str
    action: TableActionType
    new_name: Optional[str] = None
    columns: List[ColumnAction] = Field(default_factory=list)


def column_definitions(shape: Mapping[str, Any]) -> Dict[str, ColumnDefinition]:
    """Physical columns of a field shape, keyed by ``target_column_map`` key."""

    field_type = shape["type"]
    column_map: Mapping[str, str] = shape.get("target_column_map") or {}
    is_nullable = bool(shape.get("is_nullable", True))
    if field_type in COMPOSITE_COLUMN_TYPES:
        sub_types = COMPOSITE_COLUMN_TYPES[field_type]
        return {
            key: ColumnDefinition(
                column_name=column,
                column_type=sub_types.get(key, "text"),
                is_nullable=is_nullable,
            )
            for key, column in column_map.items()
        }
    columns: Dict[str, ColumnDefinition] = {}
    for key, column in column_map.items():
        columns[key] = ColumnDefinition(
            column_name=column,
            column_type=COLUMN_TYPES.get(field_type, "text"),
            is_nullable=is_nullable,
            default_value=shape.get("default_value"),
            is_primary=shape.get("name") == "id",
        )
    return columns


def create_table(table: str, field_shapes: Iterable[Mapping[str, Any]]) -> TableAction:
    columns = [
        ColumnAction(action=ColumnActionType.CREATE, column_name=definition.column_name,
                     definition=definition)
        for shape in field_shapes
        for definition in column_definitions(shape).values()
    ]
    return TableAction(name=table, action=TableActionType.CREATE, columns=columns)


def alter_table(table: str, new_table: Optional[str] = None) -> TableAction:
    return TableAction(
        name=table,
        action=TableActionType.ALTER,
        new_name=new_table if new_table and new_table != table else None,
    )


def drop_table(table: str) -> TableAction:
    return TableAction(name=table, action=TableActionType.DROP)


def add_field_columns(table: str, shape: Mapping[str, Any]) -> TableAction:
    columns = [
        ColumnAction(action=ColumnActionType.CREATE, column_name=definition.column_name,
                     definition=definition)
        for definition in column_definitions(shape).values()
    ]
    return TableAction(name=table, action=TableActionType.ALTER, columns=columns)


def alter_field_columns(
    table: str, before: Mapping[str, Any], after: Mapping[str, Any]
) -> TableAction:
    """Alter the columns of a field whose physical shape may have changed."""

    old_columns = column_definitions(before)
    new_columns = column_definitions(after)
    if before.get("type") != after.get("type"):
        # Type changes rebuild the columns instead of casting in place.
        old_only = list(old_columns.values())
        new_only = list(new_columns.values())
        common: list[tuple[ColumnDefinition, ColumnDefinition]] = []
    else:
        old_only = [old_columns[key] for key in old_columns if key not in new_columns]
        new_only = [new_columns[key] for key in new_columns if key not in old_columns]
        common = [(old_columns[key], new_columns[key]) for key in old_columns if key in new_columns]

    columns: List[ColumnAction] = []
    for definition in old_only:
        columns.append(ColumnAction(action=ColumnActionType.DROP, column_name=definition.column_name))
    for definition in new_only:
        columns.append(ColumnAction(action=ColumnActionType.CREATE, column_name=definition.column_name,
                                    definition=definition))
    for current, altered in common:
        if current != altered:
            columns.append(ColumnAction(action=ColumnActionType.ALTER, column_name=current.column_name,
                                        current=current, definition=altered))
    return TableAction(name=table, action=TableActionType.ALTER, columns=columns)


def drop_field_columns(table: str, shape: Mapping[str, Any]) -> TableAction:
    columns = [
        ColumnAction(action=ColumnActionType.DROP, column_name=definition.column_name)
        for definition in column_definitions(shape).values()
    ]
    return TableAction(name=table, action=TableActionType.ALTER, columns=columns)


def _join_column(join_column: str) -> ColumnDefinition:
    return ColumnDefinition(column_name=join_column, column_type="uuid", is_nullable=True)


def _link_join_column(
    join_column: str, from_table: str, on_delete: str, relation_type: str
) -> List[ColumnAction]:
    columns = [
        ColumnAction(action=ColumnActionType.CREATE_FOREIGN_KEY, column_name=join_column,
                     referenced_table_name=from_table, referenced_column_name="id",
                     on_delete=on_delete),
    ]
    # One-to-one: each ``from`` row is referenced at most once.
    if RelationType(relation_type) == RelationType.ONE_TO_ONE:
        columns.append(ColumnAction(action=ColumnActionType.CREATE_UNIQUE, column_name=join_column))
    return columns


def _unlink_join_column(join_column: str) -> List[ColumnAction]:
    return [
        ColumnAction(action=ColumnActionType.DROP_FOREIGN_KEY, column_name=join_column),
        ColumnAction(action=ColumnActionType.DROP_UNIQUE, column_name=join_column),
    ]


def create_relation_columns(
    to_table: str,
    from_table: str,
    join_column: str,
    on_delete: str,
    relation_type: str = RelationType.ONE_TO_MANY.value,
) -> TableAction:
    columns = [
        ColumnAction(action=ColumnActionType.CREATE, column_name=join_column,
                     definition=_join_column(join_column)),
    ]
    columns += _link_join_column(join_column, from_table, on_delete, relation_type)
    return TableAction(name=to_table, action=TableActionType.ALTER, columns=columns)


def alter_relation_columns(
    to_table: str,
    from_table: str,
    before_join_column: str,
    after_join_column: str,
    on_delete: str,
    relation_type: str = RelationType.ONE_TO_MANY.value,
) -> TableAction:
    """Relink a join column that stays on ``to_table``, renaming it if needed."""

    columns = _unlink_join_column(before_join_column)
    if before_join_column != after_join_column:
        columns.append(
            ColumnAction(action=ColumnActionType.ALTER, column_name=before_join_column,
                         current=_join_column(before_join_column),
                         definition=_join_column(after_join_column))
        )
    columns += _link_join_column(after_join_column, from_table, on_delete, relation_type)
    return TableAction(name=to_table, action=TableActionType.ALTER, columns=columns)


def drop_relation_columns(to_table: str, join_column: str) -> TableAction:
    columns = _unlink_join_column(join_column)
    columns.append(ColumnAction(action=ColumnActionType.DROP, column_name=join_column))
    return TableAction(name=to_table, action=TableActionType.ALTER, columns=columns)


class WorkspaceMigrationFactory:
    """Queue pending migrations for a workspace inside the sync transaction."""

    _ORDER = {DiffAction.CREATE: 0, DiffAction.UPDATE: 1, DiffAction.DELETE: 2}

    def __init__(self, manager: Session, context: WorkspaceSyncContext) -> None:
        self._manager = manager
        self._context = context
        self._planned: List[tuple[DiffAction, MetadataKind, str, List[TableAction]]] = []

    def plan(
        self,
        action: DiffAction,
        kind: MetadataKind,
        name: str,
        table_actions: Iterable[TableAction],
    ) -> None:
        """Hold a migration until :meth:`queue_planned` orders and persists it."""

        self._planned.append((action, kind, name, list(table_actions)))

    def queue_planned(self) -> List[WorkspaceMigration]:
        """Persist planned migrations creates first, then updates, then deletes."""

        planned = sorted(self._planned, key=lambda item: self._ORDER[item[0]])
        self._planned = []
        return [self.queue(*item) for item in planned]

    def queue(
        self,
        action: DiffAction,
        kind: MetadataKind,
        name: str,
        table_actions: Iterable[TableAction],
    ) -> WorkspaceMigration:
        created_at = utcnow()
        ordinal = next(_ORDINAL)
        migration = WorkspaceMigration(
            id=uuid.uuid4(),
            workspace_id=self._context.workspace_id,
            name=f"{created_at:%Y%m%d%H%M%S%f}-{ordinal:06d}-{action.value}-{kind.value}-{name}",
            migrations=[table_action.model_dump(mode="json") for table_action in table_actions],
            is_custom=False,
            applied_at=None,
            created_at=created_at,
        )
        self._manager.add(migration)
        return migration
