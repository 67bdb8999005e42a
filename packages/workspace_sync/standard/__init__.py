"""Standard (code-owned) schema definitions."""

from .definitions import (
    COMPOSITE_COLUMNS,
    FieldDefinition,
    ObjectDefinition,
    RelationDefinition,
    StandardSchema,
    build_target_column_map,
)
from .objects import STANDARD_OBJECTS, STANDARD_RELATIONS, STANDARD_SCHEMA, standard_id

__all__ = [
    "COMPOSITE_COLUMNS",
    "FieldDefinition",
    "ObjectDefinition",
    "RelationDefinition",
    "StandardSchema",
    "build_target_column_map",
    "STANDARD_OBJECTS",
    "STANDARD_RELATIONS",
    "STANDARD_SCHEMA",
    "standard_id",
]
