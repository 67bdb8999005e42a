import uuid

import pytest
from sqlalchemy import select

from packages.workspace_sync.exceptions import DiffComputationError
from packages.workspace_sync.feature_flags import FeatureGate
from packages.workspace_sync.models import FieldMetadata, ObjectMetadata, WorkspaceMigration
from packages.workspace_sync.object_sync import WorkspaceSyncObjectMetadataService
from packages.workspace_sync.schema.enums import DiffAction, FeatureFlagKey, FieldType, MetadataKind
from packages.workspace_sync.standard import STANDARD_SCHEMA
from packages.workspace_sync.storage import WorkspaceSyncStorage

BASE_OBJECTS = ["workspaceMember", "company", "person", "opportunity", "activity"]


def _sync(context, query_runner, flags=None):
    storage = WorkspaceSyncStorage(context.workspace_id)
    migrations = WorkspaceSyncObjectMetadataService().synchronize(
        context, query_runner.manager, storage, FeatureGate(flags or {})
    )
    return storage, migrations


def _objects(manager, context):
    return {
        entity.name_singular: entity
        for entity in manager.execute(
            select(ObjectMetadata).where(ObjectMetadata.workspace_id == context.workspace_id)
        ).scalars()
    }


def _field(manager, object_name, field_name):
    return manager.execute(
        select(FieldMetadata)
        .join(ObjectMetadata, FieldMetadata.object_metadata_id == ObjectMetadata.id)
        .where(ObjectMetadata.name_singular == object_name, FieldMetadata.name == field_name)
    ).scalars().one()


def _verbs(migrations):
    return [m.name.split("-", 2)[2] for m in migrations]


def test_first_sync_creates_ungated_objects_with_their_fields(context, query_runner):
    storage, migrations = _sync(context, query_runner)

    assert [d.key for d in storage.object_create_collection] == BASE_OBJECTS
    expected_fields = sum(
        1
        for obj in STANDARD_SCHEMA.objects
        if obj.gate is None
        for f in obj.fields
        if f.gate is None
    )
    assert len(storage.field_create_collection) == expected_fields
    assert storage.object_update_collection == storage.object_delete_collection == []
    # Fields of a new table ride along with its create_table migration.
    assert _verbs(migrations) == [f"create-object-{name}" for name in BASE_OBJECTS]

    persisted = _objects(query_runner.manager, context)
    assert set(persisted) == set(BASE_OBJECTS)
    assert persisted["company"].data_source_id == context.data_source_id
    assert persisted["company"].standard_id == STANDARD_SCHEMA.get_object("company").standard_id


def test_create_migration_carries_every_active_column(context, query_runner):
    _, migrations = _sync(context, query_runner)

    company = next(m for m in migrations if m.name.endswith("create-object-company"))
    (table_action,) = company.migrations
    columns = [column["column_name"] for column in table_action["columns"]]
    assert table_action["action"] == "create"
    assert columns[:3] == ["id", "createdAt", "updatedAt"]
    assert "domainNameUrl" in columns


def test_second_sync_is_a_noop(context, query_runner):
    _sync(context, query_runner)

    storage, migrations = _sync(context, query_runner)

    assert storage.is_empty()
    assert migrations == []


def test_changed_field_is_updated_with_alter_migration(context, query_runner):
    _sync(context, query_runner)
    entity = _field(query_runner.manager, "company", "name")
    entity.label = "Legal name"
    entity.is_nullable = False

    storage, migrations = _sync(context, query_runner)

    (diff,) = storage.field_update_collection
    assert diff.key == "company.name"
    assert diff.changes == ["label", "is_nullable"]
    assert diff.before["label"] == "Legal name"
    assert diff.after["label"] == "Name"
    assert _verbs(migrations) == ["update-field-company.name"]
    (table_action,) = migrations[0].migrations
    assert table_action["columns"][0]["action"] == "alter"
    assert entity.label == "Name" and entity.is_nullable is True


def test_object_metadata_change_queues_alter_table(context, query_runner):
    _sync(context, query_runner)
    _objects(query_runner.manager, context)["person"].icon = "IconGhost"

    storage, migrations = _sync(context, query_runner)

    assert [d.key for d in storage.object_update_collection] == ["person"]
    assert storage.object_update_collection[0].changes == ["icon"]
    assert _verbs(migrations) == ["update-object-person"]
    assert migrations[0].migrations[0]["action"] == "alter"


def test_gated_object_is_created_when_flag_is_enabled(context, query_runner):
    storage, _ = _sync(context, query_runner, {FeatureFlagKey.IS_CALENDAR_ENABLED.value: True})

    assert "calendarEvent" in [d.key for d in storage.object_create_collection]
    assert "blocklist" not in [d.key for d in storage.object_create_collection]


def test_disabled_flag_soft_deletes_object_and_fields(context, query_runner):
    _sync(context, query_runner, {"IS_BLOCKLIST_ENABLED": True})

    storage, migrations = _sync(context, query_runner, {"IS_BLOCKLIST_ENABLED": False})

    assert [d.key for d in storage.object_delete_collection] == ["blocklist"]
    deleted_fields = {d.key for d in storage.field_delete_collection}
    assert "workspaceMember.blocklist" in deleted_fields
    assert {"blocklist.id", "blocklist.handle", "blocklist.workspaceMember"} <= deleted_fields
    assert _verbs(migrations) == [
        "delete-object-blocklist",
        "delete-field-workspaceMember.blocklist",
    ]
    blocklist = _objects(query_runner.manager, context)["blocklist"]
    assert blocklist.is_active is False
    assert all(not f.is_active for f in blocklist.fields)

    storage, migrations = _sync(context, query_runner, {"IS_BLOCKLIST_ENABLED": False})
    assert storage.is_empty() and migrations == []


def test_reenabled_flag_reactivates_as_update(context, query_runner):
    _sync(context, query_runner, {"IS_BLOCKLIST_ENABLED": True})
    _sync(context, query_runner)

    storage, migrations = _sync(context, query_runner, {"IS_BLOCKLIST_ENABLED": True})

    (diff,) = storage.object_update_collection
    assert diff.key == "blocklist" and diff.changes == ["is_active"]
    assert storage.object_create_collection == []
    assert _verbs(migrations)[0] == "update-object-blocklist"
    assert migrations[0].migrations[0]["action"] == "create"
    assert _objects(query_runner.manager, context)["blocklist"].is_active is True


def test_custom_metadata_is_left_alone(context, query_runner):
    _sync(context, query_runner)
    manager = query_runner.manager
    company = _objects(manager, context)["company"]
    custom_object = ObjectMetadata(
        workspace_id=context.workspace_id,
        data_source_id=context.data_source_id,
        name_singular="invoice",
        name_plural="invoices",
        label_singular="Invoice",
        label_plural="Invoices",
        target_table_name="_invoice",
        is_custom=True,
    )
    custom_field = FieldMetadata(
        workspace_id=context.workspace_id,
        object_metadata_id=company.id,
        type=FieldType.TEXT,
        name="vatNumber",
        label="VAT",
        target_column_map={"value": "vatNumber"},
        is_custom=True,
    )
    manager.add_all([custom_object, custom_field])
    manager.flush()

    storage, migrations = _sync(context, query_runner)

    assert storage.is_empty() and migrations == []
    assert custom_object.is_active and custom_field.is_active


def test_custom_object_with_standard_name_is_a_diff_error(context, query_runner):
    query_runner.manager.add(
        ObjectMetadata(
            workspace_id=context.workspace_id,
            data_source_id=context.data_source_id,
            name_singular="company",
            name_plural="companies",
            label_singular="Company",
            label_plural="Companies",
            target_table_name="_company",
            is_custom=True,
        )
    )

    with pytest.raises(DiffComputationError, match="collides with a custom object"):
        _sync(context, query_runner)


def test_migrations_are_queued_in_the_transaction(context, query_runner):
    _, migrations = _sync(context, query_runner)

    queued = query_runner.manager.execute(
        select(WorkspaceMigration).where(WorkspaceMigration.workspace_id == context.workspace_id)
    ).scalars().all()
    assert {m.id for m in queued} == {m.id for m in migrations}


def test_workspaces_are_isolated(context, query_runner):
    _sync(context, query_runner)
    other = type(context)(workspace_id=uuid.uuid4(), data_source_id=context.data_source_id)

    storage, _ = _sync(other, query_runner)

    assert len(storage.object_create_collection) == len(BASE_OBJECTS)
    assert all(d.action == DiffAction.CREATE for d in storage.collections()["object_create"])
    assert storage.find(MetadataKind.OBJECT, "company") is not None
