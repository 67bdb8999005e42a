"""Declarative shapes of standard objects, fields and relations."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from ..exceptions import DiffComputationError
from ..schema.enums import (
    DEFAULT_FUNCTION_KEY,
    DefaultFunction,
    FeatureFlagKey,
    FieldType,
    OnDeleteAction,
    RelationType,
)

__all__ = [
    "FieldDefinition",
    "ObjectDefinition",
    "RelationDefinition",
    "StandardSchema",
    "COMPOSITE_COLUMNS",
    "build_target_column_map",
]


# Sub-columns of composite field types, suffixed to the field name.
COMPOSITE_COLUMNS: Mapping[FieldType, tuple[str, ...]] = {
    FieldType.LINK: ("label", "url"),
    FieldType.CURRENCY: ("amountMicros", "currencyCode"),
    FieldType.FULL_NAME: ("firstName", "lastName"),
}


def build_target_column_map(name: str, field_type: FieldType) -> dict[str, str]:
    """Return the physical columns backing a field of ``field_type``."""

    if field_type == FieldType.RELATION:
        return {}
    parts = COMPOSITE_COLUMNS.get(field_type)
    if parts is None:
        return {"value": name}
    return {part: f"{name}{part[0].upper()}{part[1:]}" for part in parts}


@dataclass(frozen=True)
class FieldDefinition:
    """Code-declared canonical shape of a standard field."""

    standard_id: uuid.UUID
    name: str
    type: FieldType
    label: str
    description: Optional[str] = None
    icon: Optional[str] = None
    is_nullable: bool = True
    is_system: bool = False
    default_value: Any = None
    options: Optional[tuple[Mapping[str, Any], ...]] = None
    gate: Optional[FeatureFlagKey] = None

    @property
    def target_column_map(self) -> dict[str, str]:
        return build_target_column_map(self.name, self.type)


@dataclass(frozen=True)
class ObjectDefinition:
    """Code-declared canonical shape of a standard object."""

    standard_id: uuid.UUID
    name_singular: str
    name_plural: str
    label_singular: str
    label_plural: str
    description: Optional[str] = None
    icon: Optional[str] = None
    is_system: bool = False
    gate: Optional[FeatureFlagKey] = None
    fields: tuple[FieldDefinition, ...] = field(default_factory=tuple)

    @property
    def target_table_name(self) -> str:
        return self.name_singular

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for definition in self.fields:
            if definition.name == name:
                return definition
        return None


@dataclass(frozen=True)
class RelationDefinition:
    """Link between a ``from`` relation field and its inverse ``to`` field.

    The join column lives on the ``to`` object's table and references the
    ``from`` object's primary key.
    """

    standard_id: uuid.UUID
    from_object: str
    from_field: str
    to_object: str
    to_field: str
    relation_type: RelationType = RelationType.ONE_TO_MANY
    on_delete: OnDeleteAction = OnDeleteAction.SET_NULL
    join_column: Optional[str] = None
    gate: Optional[FeatureFlagKey] = None

    @property
    def key(self) -> str:
        return f"{self.from_object}.{self.from_field}"

    @property
    def join_column_name(self) -> str:
        return self.join_column or f"{self.to_field}Id"


class StandardSchema:
    """Versioned set of standard definitions shipped with the application."""

    def __init__(
        self,
        objects: Iterable[ObjectDefinition],
        relations: Iterable[RelationDefinition] = (),
    ) -> None:
        self.objects: tuple[ObjectDefinition, ...] = tuple(objects)
        self.relations: tuple[RelationDefinition, ...] = tuple(relations)

    def get_object(self, name: str) -> Optional[ObjectDefinition]:
        for definition in self.objects:
            if definition.name_singular == name:
                return definition
        return None

    def validate(self) -> None:
        """Check definitions can be compared; raise :class:`DiffComputationError`."""

        self._validate_objects()
        self._validate_relations()

    def _validate_objects(self) -> None:
        seen_objects: set[str] = set()
        for obj in self.objects:
            if not obj.name_singular or not obj.name_plural:
                raise DiffComputationError(f"object {obj.standard_id} has no name")
            if obj.name_singular in seen_objects:
                raise DiffComputationError(f"duplicate object definition: {obj.name_singular}")
            seen_objects.add(obj.name_singular)

            seen_fields: set[str] = set()
            seen_columns: set[str] = set()
            for fld in obj.fields:
                if not isinstance(fld.type, FieldType):
                    raise DiffComputationError(
                        f"unknown field type {fld.type!r} on {obj.name_singular}.{fld.name}"
                    )
                if fld.name in seen_fields:
                    raise DiffComputationError(
                        f"duplicate field definition: {obj.name_singular}.{fld.name}"
                    )
                seen_fields.add(fld.name)
                _check_default(obj.name_singular, fld)
                for column in fld.target_column_map.values():
                    if column in seen_columns:
                        raise DiffComputationError(
                            f"column {column} declared twice on {obj.name_singular}"
                        )
                    seen_columns.add(column)

    def _validate_relations(self) -> None:
        seen: set[str] = set()
        join_columns: set[tuple[str, str]] = set()
        for relation in self.relations:
            if relation.key in seen:
                raise DiffComputationError(f"duplicate relation definition: {relation.key}")
            seen.add(relation.key)
            for object_name, field_name in (
                (relation.from_object, relation.from_field),
                (relation.to_object, relation.to_field),
            ):
                obj = self.get_object(object_name)
                if obj is None:
                    raise DiffComputationError(
                        f"relation {relation.key} references undeclared object {object_name}"
                    )
                fld = obj.get_field(field_name)
                if fld is None:
                    raise DiffComputationError(
                        f"relation {relation.key} references undeclared field "
                        f"{object_name}.{field_name}"
                    )
                if fld.type != FieldType.RELATION:
                    raise DiffComputationError(
                        f"relation {relation.key} endpoint {object_name}.{field_name} "
                        f"is {fld.type.value}, expected RELATION"
                    )
            join = (relation.to_object, relation.join_column_name)
            if join in join_columns:
                raise DiffComputationError(
                    f"join column {relation.join_column_name} declared twice on "
                    f"{relation.to_object}"
                )
            join_columns.add(join)
            to_obj = self.get_object(relation.to_object)
            for fld in to_obj.fields:
                if relation.join_column_name in fld.target_column_map.values():
                    raise DiffComputationError(
                        f"join column {relation.join_column_name} of {relation.key} "
                        f"collides with {relation.to_object}.{fld.name}"
                    )


def _check_default(object_name: str, fld: FieldDefinition) -> None:
    default = fld.default_value
    if not isinstance(default, Mapping) or DEFAULT_FUNCTION_KEY not in default:
        return
    if len(default) != 1 or default[DEFAULT_FUNCTION_KEY] not in DefaultFunction.values():
        raise DiffComputationError(
            f"unknown default function {default!r} on {object_name}.{fld.name}"
        )
