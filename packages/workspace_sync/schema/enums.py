"""Canonical metadata enum definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

__all__ = [
    "EnumDefinition",
    "MetadataEnum",
    "FieldType",
    "RelationType",
    "OnDeleteAction",
    "FeatureFlagKey",
    "MetadataKind",
    "DiffAction",
    "TableActionType",
    "ColumnActionType",
    "DefaultFunction",
    "DEFAULT_FUNCTION_KEY",
    "function_default",
    "ENUM_DEFINITIONS",
    "ENUM_DEFINITION_BY_NAME",
    "sql_enum",
]


class MetadataEnum(str, Enum):
    """Base class for enums persisted in the metadata store."""

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(item.value for item in cls)


class FieldType(MetadataEnum):
    UUID = "UUID"
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    NUMERIC = "NUMERIC"
    BOOLEAN = "BOOLEAN"
    DATE_TIME = "DATE_TIME"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    LINK = "LINK"
    CURRENCY = "CURRENCY"
    FULL_NAME = "FULL_NAME"
    SELECT = "SELECT"
    POSITION = "POSITION"
    RELATION = "RELATION"


class RelationType(MetadataEnum):
    ONE_TO_ONE = "ONE_TO_ONE"
    ONE_TO_MANY = "ONE_TO_MANY"


class OnDeleteAction(MetadataEnum):
    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET_NULL"


class FeatureFlagKey(MetadataEnum):
    IS_BLOCKLIST_ENABLED = "IS_BLOCKLIST_ENABLED"
    IS_CALENDAR_ENABLED = "IS_CALENDAR_ENABLED"


class MetadataKind(MetadataEnum):
    OBJECT = "object"
    FIELD = "field"
    RELATION = "relation"


class DiffAction(MetadataEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TableActionType(MetadataEnum):
    CREATE = "create"
    ALTER = "alter"
    DROP = "drop"


class ColumnActionType(MetadataEnum):
    CREATE = "create"
    ALTER = "alter"
    DROP = "drop"
    CREATE_FOREIGN_KEY = "create_foreign_key"
    DROP_FOREIGN_KEY = "drop_foreign_key"
    CREATE_UNIQUE = "create_unique"
    DROP_UNIQUE = "drop_unique"


class DefaultFunction(MetadataEnum):
    """Column defaults computed by the database rather than stored literally."""

    UUID = "uuid"
    NOW = "now"


# A default of ``{"fn": "now"}`` names a function; any other value is a literal.
DEFAULT_FUNCTION_KEY = "fn"


def function_default(function: DefaultFunction) -> dict[str, str]:
    return {DEFAULT_FUNCTION_KEY: DefaultFunction(function).value}


@dataclass(frozen=True)
class EnumDefinition:
    """Metadata describing an enum column type."""

    name: str
    values: tuple[str, ...]
    enum_cls: type[MetadataEnum]


ENUM_DEFINITIONS: tuple[EnumDefinition, ...] = (
    EnumDefinition("field_type", FieldType.values(), FieldType),
    EnumDefinition("relation_type", RelationType.values(), RelationType),
    EnumDefinition("on_delete_action", OnDeleteAction.values(), OnDeleteAction),
)

ENUM_DEFINITION_BY_NAME: Mapping[str, EnumDefinition] = {
    definition.name: definition for definition in ENUM_DEFINITIONS
}

ENUM_DEFINITION_BY_CLASS: Mapping[type[MetadataEnum], EnumDefinition] = {
    definition.enum_cls: definition for definition in ENUM_DEFINITIONS
}


def sql_enum(enum_cls: type[MetadataEnum]):
    """Return a SQLAlchemy ``Enum`` tied to the canonical definition.

    Stored as a checked string column so the same models work on SQLite and
    PostgreSQL metadata stores.
    """

    from sqlalchemy import Enum as SqlEnum

    definition = ENUM_DEFINITION_BY_CLASS[enum_cls]
    return SqlEnum(
        enum_cls,
        name=definition.name,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
