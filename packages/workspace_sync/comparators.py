"""Shape snapshots and three-way comparison of definitions vs persisted rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from .models import FieldMetadata, ObjectMetadata, RelationMetadata
from .schema.enums import DiffAction
from .standard.definitions import FieldDefinition, ObjectDefinition, RelationDefinition

__all__ = [
    "ComparatorResult",
    "compare_shapes",
    "OBJECT_PROPERTIES",
    "FIELD_PROPERTIES",
    "RELATION_PROPERTIES",
    "object_definition_shape",
    "object_entity_shape",
    "field_definition_shape",
    "field_entity_shape",
    "relation_definition_shape",
    "relation_entity_shape",
]

Shape = Dict[str, Any]

# Identifiers, ownership and timestamps are never compared.
OBJECT_PROPERTIES: tuple[str, ...] = (
    "name_plural",
    "label_singular",
    "label_plural",
    "description",
    "icon",
    "target_table_name",
    "is_system",
    "is_active",
)

FIELD_PROPERTIES: tuple[str, ...] = (
    "type",
    "label",
    "description",
    "icon",
    "target_column_map",
    "default_value",
    "options",
    "is_nullable",
    "is_system",
    "is_active",
)

RELATION_PROPERTIES: tuple[str, ...] = (
    "relation_type",
    "to_object",
    "to_field",
    "join_column_name",
    "on_delete_action",
    "is_active",
)


@dataclass(frozen=True)
class ComparatorResult:
    action: Optional[DiffAction]
    changes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_noop(self) -> bool:
        return self.action is None


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def compare_shapes(
    persisted: Optional[Shape],
    declared: Optional[Shape],
    properties: Sequence[str],
) -> ComparatorResult:
    """Classify the change needed to turn ``persisted`` into ``declared``."""

    if persisted is None and declared is None:
        return ComparatorResult(None)
    if persisted is None:
        return ComparatorResult(DiffAction.CREATE)
    if declared is None:
        return ComparatorResult(DiffAction.DELETE)
    changes = tuple(
        name for name in properties if _plain(persisted.get(name)) != _plain(declared.get(name))
    )
    if not changes:
        return ComparatorResult(None)
    return ComparatorResult(DiffAction.UPDATE, changes)


def object_definition_shape(definition: ObjectDefinition) -> Shape:
    return {
        "name_singular": definition.name_singular,
        "name_plural": definition.name_plural,
        "label_singular": definition.label_singular,
        "label_plural": definition.label_plural,
        "description": definition.description,
        "icon": definition.icon,
        "target_table_name": definition.target_table_name,
        "is_system": definition.is_system,
        "is_active": True,
    }


def object_entity_shape(entity: ObjectMetadata) -> Shape:
    return {
        "name_singular": entity.name_singular,
        "name_plural": entity.name_plural,
        "label_singular": entity.label_singular,
        "label_plural": entity.label_plural,
        "description": entity.description,
        "icon": entity.icon,
        "target_table_name": entity.target_table_name,
        "is_system": entity.is_system,
        "is_active": entity.is_active,
    }


def field_definition_shape(definition: FieldDefinition) -> Shape:
    return {
        "name": definition.name,
        "type": definition.type.value,
        "label": definition.label,
        "description": definition.description,
        "icon": definition.icon,
        "target_column_map": dict(definition.target_column_map),
        "default_value": _plain(definition.default_value),
        "options": _plain(definition.options) if definition.options is not None else None,
        "is_nullable": definition.is_nullable,
        "is_system": definition.is_system,
        "is_active": True,
    }


def field_entity_shape(entity: FieldMetadata) -> Shape:
    return {
        "name": entity.name,
        "type": _plain(entity.type),
        "label": entity.label,
        "description": entity.description,
        "icon": entity.icon,
        "target_column_map": dict(entity.target_column_map or {}),
        "default_value": entity.default_value,
        "options": entity.options,
        "is_nullable": entity.is_nullable,
        "is_system": entity.is_system,
        "is_active": entity.is_active,
    }


def relation_definition_shape(definition: RelationDefinition) -> Shape:
    return {
        "from_object": definition.from_object,
        "from_field": definition.from_field,
        "relation_type": definition.relation_type.value,
        "to_object": definition.to_object,
        "to_field": definition.to_field,
        "join_column_name": definition.join_column_name,
        "on_delete_action": definition.on_delete.value,
        "is_active": True,
    }


def relation_entity_shape(
    entity: RelationMetadata,
    from_object: str,
    from_field: str,
    to_object: str,
    to_field: str,
) -> Shape:
    """Snapshot a persisted relation with its endpoints resolved to names."""

    return {
        "from_object": from_object,
        "from_field": from_field,
        "relation_type": _plain(entity.relation_type),
        "to_object": to_object,
        "to_field": to_field,
        "join_column_name": entity.join_column_name,
        "on_delete_action": _plain(entity.on_delete_action),
        "is_active": entity.is_active,
    }
