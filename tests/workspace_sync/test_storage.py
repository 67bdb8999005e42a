import uuid

import pytest

from packages.workspace_sync.exceptions import DiffComputationError
from packages.workspace_sync.schema.enums import DiffAction, MetadataKind
from packages.workspace_sync.storage import MetadataDiff, WorkspaceSyncStorage


def _diff(action=DiffAction.CREATE, key="company", kind=MetadataKind.OBJECT, **kwargs):
    return MetadataDiff(kind=kind, action=action, key=key, **kwargs)


def test_record_keeps_insertion_order_per_collection():
    storage = WorkspaceSyncStorage(uuid.uuid4())

    storage.record(_diff(key="person"))
    storage.record(_diff(key="company"))
    storage.record(_diff(DiffAction.DELETE, key="person.phone", kind=MetadataKind.FIELD))

    assert [d.key for d in storage.object_create_collection] == ["person", "company"]
    assert [d.key for d in storage.field_delete_collection] == ["person.phone"]
    assert storage.relation_create_collection == []
    assert len(storage) == 3


def test_identical_diff_is_recorded_once():
    storage = WorkspaceSyncStorage(uuid.uuid4())

    assert storage.record(_diff(after={"icon": "IconUser"})) is True
    assert storage.record(_diff(after={"icon": "IconUser"})) is False
    assert len(storage.object_create_collection) == 1


def test_conflicting_diff_for_same_entity_is_rejected():
    storage = WorkspaceSyncStorage(uuid.uuid4())
    storage.record(_diff())

    with pytest.raises(DiffComputationError, match="conflicting object diffs for company"):
        storage.record(_diff(DiffAction.DELETE))


def test_counts_and_collections_cover_every_kind_and_action():
    storage = WorkspaceSyncStorage(uuid.uuid4())
    assert storage.is_empty()

    storage.record(_diff(DiffAction.UPDATE, key="company.people", kind=MetadataKind.RELATION))

    counts = storage.counts()
    assert len(counts) == 9
    assert counts["relation_update"] == 1
    assert sum(counts.values()) == 1
    assert storage.find(MetadataKind.RELATION, "company.people").action == DiffAction.UPDATE
    assert not storage.is_empty()
