"""Reconcile standard relations with a workspace's metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Union

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .comparators import (
    RELATION_PROPERTIES,
    compare_shapes,
    relation_definition_shape,
    relation_entity_shape,
)
from .context import WorkspaceSyncContext
from .exceptions import DiffComputationError, ReferentialIntegrityError, WorkspaceSyncError
from .feature_flags import FeatureGate
from .migration_factory import (
    WorkspaceMigrationFactory,
    alter_relation_columns,
    create_relation_columns,
    drop_relation_columns,
)
from .models import FieldMetadata, ObjectMetadata, RelationMetadata, WorkspaceMigration
from .schema.enums import DiffAction, FieldType, MetadataKind, OnDeleteAction, RelationType
from .standard import STANDARD_SCHEMA, RelationDefinition, StandardSchema
from .storage import MetadataDiff, WorkspaceSyncStorage

__all__ = ["WorkspaceSyncRelationMetadataService"]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Endpoints:
    """Persisted objects and fields a relation definition points at."""

    from_object: ObjectMetadata
    from_field: FieldMetadata
    to_object: ObjectMetadata
    to_field: FieldMetadata


class WorkspaceSyncRelationMetadataService:
    """Diff standard relation definitions against persisted relations.

    Must run after :class:`WorkspaceSyncObjectMetadataService` on the same
    ``manager``: endpoints are resolved through the open transaction so that
    objects and fields created moments ago are visible.
    """

    def __init__(self, schema: StandardSchema = STANDARD_SCHEMA) -> None:
        self._schema = schema

    def synchronize(
        self,
        context: WorkspaceSyncContext,
        manager: Session,
        storage: WorkspaceSyncStorage,
        flags: Union[Mapping[str, bool], FeatureGate],
    ) -> List[WorkspaceMigration]:
        self._schema.validate()
        gate = flags if isinstance(flags, FeatureGate) else FeatureGate(flags)
        try:
            return self._synchronize(context, manager, storage, gate)
        except WorkspaceSyncError:
            raise
        except SQLAlchemyError as exc:
            raise DiffComputationError(f"relation metadata sync failed: {exc}") from exc

    def _synchronize(
        self,
        context: WorkspaceSyncContext,
        manager: Session,
        storage: WorkspaceSyncStorage,
        gate: FeatureGate,
    ) -> List[WorkspaceMigration]:
        factory = WorkspaceMigrationFactory(manager, context)
        objects = {
            entity.id: entity
            for entity in manager.execute(
                select(ObjectMetadata).where(ObjectMetadata.workspace_id == context.workspace_id)
            ).scalars()
        }
        fields = {
            entity.id: entity
            for entity in manager.execute(
                select(FieldMetadata).where(FieldMetadata.workspace_id == context.workspace_id)
            ).scalars()
        }
        relations = list(
            manager.execute(
                select(RelationMetadata)
                .where(RelationMetadata.workspace_id == context.workspace_id)
                .order_by(RelationMetadata.join_column_name)
            ).scalars()
        )
        relations_by_from_field = {entity.from_field_metadata_id: entity for entity in relations}

        active_relations = [r for r in self._schema.relations if gate.is_enabled(r.gate)]
        for definition in active_relations:
            endpoints = self._resolve(definition, objects, fields)
            entity = relations_by_from_field.get(endpoints.from_field.id)
            declared = relation_definition_shape(definition)
            before = self._entity_shape(entity, objects, fields) if entity is not None else None
            result = compare_shapes(before, declared, RELATION_PROPERTIES)
            if result.is_noop:
                continue

            to_table = endpoints.to_object.target_table_name
            from_table = endpoints.from_object.target_table_name
            relation_type = RelationType(definition.relation_type).value
            on_delete = definition.on_delete.value
            if result.action == DiffAction.CREATE:
                entity = RelationMetadata(workspace_id=context.workspace_id)
                self._apply_relation(entity, definition, endpoints)
                manager.add(entity)
                manager.flush()
                factory.plan(
                    DiffAction.CREATE,
                    MetadataKind.RELATION,
                    definition.key,
                    [create_relation_columns(to_table, from_table, definition.join_column_name,
                                             on_delete, relation_type)],
                )
            else:
                reactivated = not entity.is_active
                old_join_column = entity.join_column_name
                old_to_object = objects.get(entity.to_object_metadata_id)
                self._apply_relation(entity, definition, endpoints)
                create = create_relation_columns(
                    to_table, from_table, definition.join_column_name, on_delete, relation_type
                )
                if reactivated:
                    table_actions = [create]
                elif old_to_object is None or old_to_object.id != endpoints.to_object.id:
                    # Retargeted: the join column moves to the new inverse table.
                    table_actions = [create]
                    if old_to_object is not None and old_to_object.is_active:
                        table_actions.insert(
                            0, drop_relation_columns(old_to_object.target_table_name, old_join_column)
                        )
                else:
                    table_actions = [
                        alter_relation_columns(
                            to_table,
                            from_table,
                            old_join_column,
                            definition.join_column_name,
                            on_delete,
                            relation_type,
                        )
                    ]
                factory.plan(DiffAction.UPDATE, MetadataKind.RELATION, definition.key, table_actions)

            storage.record(
                MetadataDiff(
                    kind=MetadataKind.RELATION,
                    action=result.action,
                    key=definition.key,
                    standard_id=str(definition.standard_id),
                    entity_id=str(entity.id),
                    before=before,
                    after=declared,
                    changes=list(result.changes),
                )
            )

        active_keys = {definition.key for definition in active_relations}
        for entity in relations:
            from_field = fields.get(entity.from_field_metadata_id)
            if from_field is None or from_field.is_custom or not entity.is_active:
                continue
            before = self._entity_shape(entity, objects, fields)
            key = f"{before['from_object']}.{before['from_field']}"
            if key in active_keys:
                continue
            entity.is_active = False
            to_object = objects.get(entity.to_object_metadata_id)
            # A dropped table takes its join column with it.
            if to_object is not None and to_object.is_active:
                factory.plan(
                    DiffAction.DELETE,
                    MetadataKind.RELATION,
                    key,
                    [drop_relation_columns(to_object.target_table_name, entity.join_column_name)],
                )
            storage.record(
                MetadataDiff(
                    kind=MetadataKind.RELATION,
                    action=DiffAction.DELETE,
                    key=key,
                    entity_id=str(entity.id),
                    before=before,
                    after=None,
                )
            )

        manager.flush()
        logger.info(
            "relation_metadata_synchronized",
            workspace_id=str(context.workspace_id),
            created=len(storage.relation_create_collection),
            updated=len(storage.relation_update_collection),
            deleted=len(storage.relation_delete_collection),
        )
        return factory.queue_planned()

    @staticmethod
    def _resolve(
        definition: RelationDefinition,
        objects: Mapping[object, ObjectMetadata],
        fields: Mapping[object, FieldMetadata],
    ) -> _Endpoints:
        """Find the active persisted endpoints of ``definition``."""

        def find_object(name: str) -> ObjectMetadata:
            for entity in objects.values():
                if entity.name_singular == name and not entity.is_custom and entity.is_active:
                    return entity
            raise ReferentialIntegrityError(
                f"relation {definition.key} references unresolved object {name}",
                relation=definition.key,
                missing=name,
            )

        def find_field(object_entity: ObjectMetadata, name: str) -> FieldMetadata:
            for entity in fields.values():
                if (
                    entity.object_metadata_id == object_entity.id
                    and entity.name == name
                    and entity.type == FieldType.RELATION
                    and entity.is_active
                ):
                    return entity
            missing = f"{object_entity.name_singular}.{name}"
            raise ReferentialIntegrityError(
                f"relation {definition.key} references unresolved field {missing}",
                relation=definition.key,
                missing=missing,
            )

        from_object = find_object(definition.from_object)
        to_object = find_object(definition.to_object)
        return _Endpoints(
            from_object=from_object,
            from_field=find_field(from_object, definition.from_field),
            to_object=to_object,
            to_field=find_field(to_object, definition.to_field),
        )

    @staticmethod
    def _entity_shape(
        entity: RelationMetadata,
        objects: Mapping[object, ObjectMetadata],
        fields: Mapping[object, FieldMetadata],
    ) -> Dict[str, object]:
        def object_name(object_id) -> Optional[str]:
            found = objects.get(object_id)
            return found.name_singular if found is not None else None

        def field_name(field_id) -> Optional[str]:
            found = fields.get(field_id)
            return found.name if found is not None else None

        return relation_entity_shape(
            entity,
            from_object=object_name(entity.from_object_metadata_id),
            from_field=field_name(entity.from_field_metadata_id),
            to_object=object_name(entity.to_object_metadata_id),
            to_field=field_name(entity.to_field_metadata_id),
        )

    @staticmethod
    def _apply_relation(
        entity: RelationMetadata, definition: RelationDefinition, endpoints: _Endpoints
    ) -> None:
        entity.relation_type = RelationType(definition.relation_type)
        entity.from_object_metadata_id = endpoints.from_object.id
        entity.from_field_metadata_id = endpoints.from_field.id
        entity.to_object_metadata_id = endpoints.to_object.id
        entity.to_field_metadata_id = endpoints.to_field.id
        entity.join_column_name = definition.join_column_name
        entity.on_delete_action = OnDeleteAction(definition.on_delete)
        entity.is_active = True
