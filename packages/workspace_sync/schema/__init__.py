"""Metadata schema helpers shared between ORM models and migrations."""

from .enums import (
    ColumnActionType,
    DEFAULT_FUNCTION_KEY,
    DefaultFunction,
    DiffAction,
    EnumDefinition,
    FeatureFlagKey,
    FieldType,
    MetadataEnum,
    MetadataKind,
    OnDeleteAction,
    RelationType,
    TableActionType,
    ENUM_DEFINITIONS,
    ENUM_DEFINITION_BY_NAME,
    function_default,
    sql_enum,
)

__all__ = [
    "ColumnActionType",
    "DEFAULT_FUNCTION_KEY",
    "DefaultFunction",
    "DiffAction",
    "EnumDefinition",
    "FeatureFlagKey",
    "FieldType",
    "MetadataEnum",
    "MetadataKind",
    "OnDeleteAction",
    "RelationType",
    "TableActionType",
    "ENUM_DEFINITIONS",
    "ENUM_DEFINITION_BY_NAME",
    "function_default",
    "sql_enum",
]
