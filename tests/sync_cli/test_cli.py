import uuid
from argparse import Namespace

import pytest

pytest.importorskip("structlog")

from packages.sync_cli import config
from packages.sync_cli.commands import database, migrations, sync
from packages.sync_cli.runner import build_parser, main
from packages.workspace_sync.config import MetadataDatabase


@pytest.fixture()
def runtime(tmp_path):
    return config.build_runtime_config(
        log_level="INFO",
        database_url=f"sqlite:///{tmp_path / 'cli.db'}",
        log_dir=str(tmp_path / "logs"),
    )


def test_parser_registers_known_commands():
    parser = build_parser()
    subparsers_action = parser._subparsers._group_actions[0]  # type: ignore[attr-defined]
    assert set(subparsers_action.choices) == {
        "init-db",
        "sync-metadata",
        "pending-migrations",
        "run-migrations",
    }


def test_sync_metadata_rejects_unknown_flag():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["sync-metadata", "--flag", "IS_UNKNOWN"])


def test_runtime_config_applies_overrides(runtime, tmp_path):
    assert runtime.settings.DATABASE_URL == f"sqlite:///{tmp_path / 'cli.db'}"
    assert runtime.settings.LOG_DIR == tmp_path / "logs"


def test_init_db_registers_data_source(runtime, capsys):
    workspace_id = uuid.uuid4()

    database.run(Namespace(workspace_id=workspace_id, schema=None), runtime)
    database.run(Namespace(workspace_id=workspace_id, schema=None), runtime)

    engine = runtime.engine()
    try:
        contexts = sync.resolve_contexts(engine)
    finally:
        engine.dispose()
    assert [c.workspace_id for c in contexts] == [workspace_id]
    assert f"workspace_{workspace_id.hex}" in capsys.readouterr().out


def test_dry_run_sync_prints_report_and_writes_logs(runtime, tmp_path, capsys):
    workspace_id = uuid.uuid4()
    database.run(Namespace(workspace_id=workspace_id, schema=None), runtime)

    sync.run(Namespace(workspace_id=workspace_id, dry_run=True, flags=None), runtime)

    out = capsys.readouterr().out
    assert f"{workspace_id}: done (dry-run)" in out
    assert "object_create: 5" in out
    assert (tmp_path / "logs" / str(workspace_id)).is_dir()

    migrations._cmd_pending(Namespace(workspace_id=workspace_id), runtime)
    assert "No pending migrations." in capsys.readouterr().out


def test_sync_then_run_migrations(runtime, capsys):
    workspace_id = uuid.uuid4()
    database.run(Namespace(workspace_id=workspace_id, schema=None), runtime)

    sync.run(Namespace(workspace_id=workspace_id, dry_run=False, flags=["IS_BLOCKLIST_ENABLED"]), runtime)
    out = capsys.readouterr().out
    assert "object_create: 6" in out

    migrations._cmd_pending(Namespace(workspace_id=workspace_id), runtime)
    assert "No pending migrations." in capsys.readouterr().out
    migrations._cmd_run(Namespace(workspace_id=workspace_id), runtime)
    assert "Applied 0 migration(s)." in capsys.readouterr().out


def test_sync_without_data_source_exits(runtime):
    engine = runtime.engine()
    try:
        MetadataDatabase(engine).create_all()
    finally:
        engine.dispose()

    with pytest.raises(SystemExit):
        sync.run(Namespace(workspace_id=uuid.uuid4(), dry_run=False, flags=None), runtime)


def test_sync_continues_past_failed_workspace(runtime, monkeypatch, capsys):
    first, second = uuid.uuid4(), uuid.uuid4()
    database.run(Namespace(workspace_id=first, schema=None), runtime)
    database.run(Namespace(workspace_id=second, schema=None), runtime)

    from packages.workspace_sync.exceptions import DiffComputationError
    from packages.workspace_sync.orchestrator import WorkspaceSyncMetadataService

    original = WorkspaceSyncMetadataService.synchronize

    def flaky(self, context, *, dry_run=False):
        if context.workspace_id == first:
            raise DiffComputationError("broken definitions")
        return original(self, context, dry_run=dry_run)

    monkeypatch.setattr(WorkspaceSyncMetadataService, "synchronize", flaky)

    with pytest.raises(SystemExit) as excinfo:
        sync.run(Namespace(workspace_id=None, dry_run=True, flags=None), runtime)

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert f"{first}: failed (DiffComputationError: broken definitions)" in captured.err
    assert f"{second}: done (dry-run)" in captured.out


def test_main_runs_init_db(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    main(["--database-url", f"sqlite:///{tmp_path / 'main.db'}", "init-db"])

    assert "Metadata tables ready." in capsys.readouterr().out
    assert (tmp_path / "main.db").exists()


def test_runtime_log_level_falls_back_to_settings(monkeypatch):
    monkeypatch.setenv("WORKSPACE_SYNC_LOG_LEVEL", "debug")

    assert config.build_runtime_config().log_level == "DEBUG"
    assert config.build_runtime_config(log_level="warning").log_level == "WARNING"


def test_main_loads_env_file_and_json_logging(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WORKSPACE_SYNC_DATABASE_URL", raising=False)
    env_file = tmp_path / "sync.env"
    env_file.write_text(
        f"WORKSPACE_SYNC_DATABASE_URL=sqlite:///{tmp_path / 'from-env.db'}\n",
        encoding="utf-8",
    )

    main(["--env-file", str(env_file), "--log-format", "json", "init-db"])

    assert "Metadata tables ready." in capsys.readouterr().out
    assert (tmp_path / "from-env.db").exists()
    monkeypatch.delenv("WORKSPACE_SYNC_DATABASE_URL", raising=False)
