"""Reconcile standard objects and fields with a workspace's metadata."""

from __future__ import annotations

from typing import Dict, List, Mapping, Union

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .comparators import (
    FIELD_PROPERTIES,
    OBJECT_PROPERTIES,
    compare_shapes,
    field_definition_shape,
    field_entity_shape,
    object_definition_shape,
    object_entity_shape,
)
from .context import WorkspaceSyncContext
from .exceptions import DiffComputationError, WorkspaceSyncError
from .feature_flags import FeatureGate
from .migration_factory import (
    WorkspaceMigrationFactory,
    add_field_columns,
    alter_field_columns,
    alter_table,
    create_table,
    drop_field_columns,
    drop_table,
)
from .models import FieldMetadata, ObjectMetadata, WorkspaceMigration
from .schema.enums import DiffAction, FieldType, MetadataKind
from .standard import STANDARD_SCHEMA, FieldDefinition, ObjectDefinition, StandardSchema
from .storage import MetadataDiff, WorkspaceSyncStorage

__all__ = ["WorkspaceSyncObjectMetadataService"]

logger = structlog.get_logger(__name__)


class WorkspaceSyncObjectMetadataService:
    """Diff standard object/field definitions against persisted metadata.

    Creates and updates are written through ``manager`` inside the caller's
    transaction so the relation pass can resolve them. Deletions are soft:
    the row is kept with ``is_active = False`` and the physical structure is
    dropped by the queued migration. Custom (user-created) metadata is never
    touched.

    Every object diff queues one migration, and so does every field diff on
    a table that already exists. Fields of a table created, re-created or
    dropped in the same run are recorded as diffs but queue nothing of their
    own: the table action covers their columns.
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
            raise DiffComputationError(f"object metadata sync failed: {exc}") from exc

    def _synchronize(
        self,
        context: WorkspaceSyncContext,
        manager: Session,
        storage: WorkspaceSyncStorage,
        gate: FeatureGate,
    ) -> List[WorkspaceMigration]:
        factory = WorkspaceMigrationFactory(manager, context)
        active_objects = [obj for obj in self._schema.objects if gate.is_active(obj)]

        persisted = self._load_objects(context, manager)
        custom_names = {entity.name_singular for entity in persisted if entity.is_custom}
        standard_by_name = {entity.name_singular: entity for entity in persisted if not entity.is_custom}

        # Objects whose table is (re)created this run; their fields ride along.
        rebuilt: Dict[str, ObjectMetadata] = {}
        for definition in active_objects:
            if definition.name_singular in custom_names:
                raise DiffComputationError(
                    f"standard object {definition.name_singular} collides with a custom object"
                )
            entity = standard_by_name.get(definition.name_singular)
            declared = object_definition_shape(definition)
            before = object_entity_shape(entity) if entity is not None else None
            result = compare_shapes(before, declared, OBJECT_PROPERTIES)
            if result.is_noop:
                continue

            if result.action == DiffAction.CREATE:
                entity = self._create_object(context, manager, definition)
                rebuilt[definition.name_singular] = entity
                fields = [f for f in definition.fields if gate.is_active(f, definition)]
                factory.plan(
                    DiffAction.CREATE,
                    MetadataKind.OBJECT,
                    definition.name_singular,
                    [create_table(definition.target_table_name,
                                  [field_definition_shape(f) for f in fields])],
                )
            else:
                reactivated = not entity.is_active
                old_table = entity.target_table_name
                self._apply_object(entity, definition)
                if reactivated:
                    rebuilt[definition.name_singular] = entity
                    fields = [f for f in definition.fields if gate.is_active(f, definition)]
                    table_action = create_table(
                        definition.target_table_name, [field_definition_shape(f) for f in fields]
                    )
                else:
                    table_action = alter_table(old_table, definition.target_table_name)
                factory.plan(
                    DiffAction.UPDATE, MetadataKind.OBJECT, definition.name_singular, [table_action]
                )

            storage.record(
                MetadataDiff(
                    kind=MetadataKind.OBJECT,
                    action=result.action,
                    key=definition.name_singular,
                    standard_id=str(definition.standard_id),
                    entity_id=str(entity.id),
                    before=before,
                    after=declared,
                    changes=list(result.changes),
                )
            )

        active_names = {obj.name_singular for obj in active_objects}
        for name, entity in standard_by_name.items():
            if name in active_names or not entity.is_active:
                continue
            before = object_entity_shape(entity)
            entity.is_active = False
            factory.plan(
                DiffAction.DELETE, MetadataKind.OBJECT, name, [drop_table(entity.target_table_name)]
            )
            storage.record(
                MetadataDiff(
                    kind=MetadataKind.OBJECT,
                    action=DiffAction.DELETE,
                    key=name,
                    standard_id=str(entity.standard_id) if entity.standard_id else None,
                    entity_id=str(entity.id),
                    before=before,
                    after=None,
                )
            )
            self._cascade_field_deletes(entity, manager, storage)

        manager.flush()
        object_migrations = factory.queue_planned()

        field_migrations = self._synchronize_fields(
            context, manager, storage, gate, factory, active_objects, rebuilt
        )

        logger.info(
            "object_metadata_synchronized",
            workspace_id=str(context.workspace_id),
            created=len(storage.object_create_collection),
            updated=len(storage.object_update_collection),
            deleted=len(storage.object_delete_collection),
        )
        return object_migrations + field_migrations

    # Fields -----------------------------------------------------------------

    def _synchronize_fields(
        self,
        context: WorkspaceSyncContext,
        manager: Session,
        storage: WorkspaceSyncStorage,
        gate: FeatureGate,
        factory: WorkspaceMigrationFactory,
        active_objects: List[ObjectDefinition],
        rebuilt: Mapping[str, ObjectMetadata],
    ) -> List[WorkspaceMigration]:
        objects_by_name = {
            entity.name_singular: entity
            for entity in self._load_objects(context, manager)
            if not entity.is_custom
        }

        for object_definition in active_objects:
            object_entity = objects_by_name.get(object_definition.name_singular)
            if object_entity is None:
                raise DiffComputationError(
                    f"object {object_definition.name_singular} missing after object sync"
                )
            table = object_entity.target_table_name
            table_rebuilt = object_definition.name_singular in rebuilt
            persisted_fields = self._load_fields(object_entity, manager)
            custom_names = {f.name for f in persisted_fields if f.is_custom}
            standard_by_name = {f.name: f for f in persisted_fields if not f.is_custom}
            active_fields = [
                f for f in object_definition.fields if gate.is_active(f, object_definition)
            ]

            for definition in active_fields:
                key = f"{object_definition.name_singular}.{definition.name}"
                if definition.name in custom_names:
                    raise DiffComputationError(f"standard field {key} collides with a custom field")
                entity = standard_by_name.get(definition.name)
                declared = field_definition_shape(definition)
                before = field_entity_shape(entity) if entity is not None else None
                result = compare_shapes(before, declared, FIELD_PROPERTIES)
                if result.is_noop:
                    continue

                if result.action == DiffAction.CREATE:
                    entity = self._create_field(context, manager, object_entity, definition)
                    if not table_rebuilt:
                        factory.plan(DiffAction.CREATE, MetadataKind.FIELD, key,
                                     [add_field_columns(table, declared)])
                else:
                    reactivated = not entity.is_active
                    self._apply_field(entity, definition)
                    if not table_rebuilt:
                        if reactivated:
                            table_action = add_field_columns(table, declared)
                        else:
                            table_action = alter_field_columns(table, before, declared)
                        factory.plan(DiffAction.UPDATE, MetadataKind.FIELD, key, [table_action])

                storage.record(
                    MetadataDiff(
                        kind=MetadataKind.FIELD,
                        action=result.action,
                        key=key,
                        standard_id=str(definition.standard_id),
                        entity_id=str(entity.id),
                        before=before,
                        after=declared,
                        changes=list(result.changes),
                    )
                )

            active_names = {f.name for f in active_fields}
            for name, entity in standard_by_name.items():
                if name in active_names or not entity.is_active:
                    continue
                key = f"{object_definition.name_singular}.{name}"
                before = field_entity_shape(entity)
                entity.is_active = False
                if not table_rebuilt:
                    factory.plan(DiffAction.DELETE, MetadataKind.FIELD, key,
                                 [drop_field_columns(table, before)])
                storage.record(
                    MetadataDiff(
                        kind=MetadataKind.FIELD,
                        action=DiffAction.DELETE,
                        key=key,
                        standard_id=str(entity.standard_id) if entity.standard_id else None,
                        entity_id=str(entity.id),
                        before=before,
                        after=None,
                    )
                )

        manager.flush()
        logger.info(
            "field_metadata_synchronized",
            workspace_id=str(context.workspace_id),
            created=len(storage.field_create_collection),
            updated=len(storage.field_update_collection),
            deleted=len(storage.field_delete_collection),
        )
        return factory.queue_planned()

    def _cascade_field_deletes(
        self,
        object_entity: ObjectMetadata,
        manager: Session,
        storage: WorkspaceSyncStorage,
    ) -> None:
        """Soft-delete the standard fields of a deactivated object.

        The table drop already removes their columns, so no migration is
        queued per field.
        """

        for entity in self._load_fields(object_entity, manager):
            if entity.is_custom or not entity.is_active:
                continue
            before = field_entity_shape(entity)
            entity.is_active = False
            storage.record(
                MetadataDiff(
                    kind=MetadataKind.FIELD,
                    action=DiffAction.DELETE,
                    key=f"{object_entity.name_singular}.{entity.name}",
                    standard_id=str(entity.standard_id) if entity.standard_id else None,
                    entity_id=str(entity.id),
                    before=before,
                    after=None,
                )
            )

    # Persistence helpers ----------------------------------------------------

    @staticmethod
    def _load_objects(context: WorkspaceSyncContext, manager: Session) -> List[ObjectMetadata]:
        stmt = (
            select(ObjectMetadata)
            .where(ObjectMetadata.workspace_id == context.workspace_id)
            .order_by(ObjectMetadata.name_singular)
        )
        return list(manager.execute(stmt).scalars())

    @staticmethod
    def _load_fields(object_entity: ObjectMetadata, manager: Session) -> List[FieldMetadata]:
        stmt = (
            select(FieldMetadata)
            .where(FieldMetadata.object_metadata_id == object_entity.id)
            .order_by(FieldMetadata.name)
        )
        return list(manager.execute(stmt).scalars())

    @staticmethod
    def _create_object(
        context: WorkspaceSyncContext, manager: Session, definition: ObjectDefinition
    ) -> ObjectMetadata:
        entity = ObjectMetadata(
            workspace_id=context.workspace_id,
            data_source_id=context.data_source_id,
            standard_id=definition.standard_id,
            name_singular=definition.name_singular,
            is_custom=False,
        )
        WorkspaceSyncObjectMetadataService._apply_object(entity, definition)
        manager.add(entity)
        manager.flush()
        return entity

    @staticmethod
    def _apply_object(entity: ObjectMetadata, definition: ObjectDefinition) -> None:
        entity.standard_id = definition.standard_id
        entity.name_plural = definition.name_plural
        entity.label_singular = definition.label_singular
        entity.label_plural = definition.label_plural
        entity.description = definition.description
        entity.icon = definition.icon
        entity.target_table_name = definition.target_table_name
        entity.is_system = definition.is_system
        entity.is_active = True

    @staticmethod
    def _create_field(
        context: WorkspaceSyncContext,
        manager: Session,
        object_entity: ObjectMetadata,
        definition: FieldDefinition,
    ) -> FieldMetadata:
        entity = FieldMetadata(
            workspace_id=context.workspace_id,
            object_metadata_id=object_entity.id,
            name=definition.name,
            is_custom=False,
        )
        WorkspaceSyncObjectMetadataService._apply_field(entity, definition)
        manager.add(entity)
        manager.flush()
        return entity

    @staticmethod
    def _apply_field(entity: FieldMetadata, definition: FieldDefinition) -> None:
        shape = field_definition_shape(definition)
        entity.standard_id = definition.standard_id
        entity.type = FieldType(definition.type)
        entity.label = definition.label
        entity.description = definition.description
        entity.icon = definition.icon
        entity.target_column_map = shape["target_column_map"]
        entity.default_value = shape["default_value"]
        entity.options = shape["options"]
        entity.is_nullable = definition.is_nullable
        entity.is_system = definition.is_system
        entity.is_active = True
