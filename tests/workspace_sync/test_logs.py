import json
import uuid

from packages.workspace_sync.logs import WorkspaceLogsService
from packages.workspace_sync.models import WorkspaceMigration, utcnow
from packages.workspace_sync.schema.enums import DiffAction, MetadataKind
from packages.workspace_sync.storage import MetadataDiff, WorkspaceSyncStorage


def test_save_logs_writes_non_empty_collections_and_migrations(tmp_path):
    workspace_id = uuid.uuid4()
    storage = WorkspaceSyncStorage(workspace_id)
    storage.record(MetadataDiff(kind=MetadataKind.OBJECT, action=DiffAction.CREATE, key="company",
                                after={"name_singular": "company"}))
    storage.record(MetadataDiff(kind=MetadataKind.RELATION, action=DiffAction.DELETE,
                                key="company.people", before={"join_column_name": "companyId"}))
    migration = WorkspaceMigration(
        id=uuid.uuid4(),
        workspace_id=workspace_id,
        name="20240101000000000000-000001-create-object-company",
        migrations=[{"name": "company", "action": "create", "new_name": None, "columns": []}],
        is_custom=False,
        applied_at=None,
        created_at=utcnow(),
    )

    directory = WorkspaceLogsService(tmp_path).save_logs(storage, [migration])

    assert directory.parent == tmp_path / str(workspace_id)
    assert sorted(p.name for p in directory.iterdir()) == [
        "object-create.json",
        "relation-delete.json",
        "workspace-migrations.json",
    ]
    objects = json.loads((directory / "object-create.json").read_text(encoding="utf-8"))
    assert objects[0]["key"] == "company"
    assert objects[0]["action"] == "create"
    migrations = json.loads((directory / "workspace-migrations.json").read_text(encoding="utf-8"))
    assert migrations[0]["name"] == migration.name
    assert migrations[0]["applied_at"] is None


def test_save_logs_with_empty_diff_still_writes_migrations_file(tmp_path):
    storage = WorkspaceSyncStorage(uuid.uuid4())

    directory = WorkspaceLogsService(tmp_path / "nested").save_logs(storage, [])

    assert [p.name for p in directory.iterdir()] == ["workspace-migrations.json"]
    assert json.loads((directory / "workspace-migrations.json").read_text(encoding="utf-8")) == []
