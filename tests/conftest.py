"""
Shared fixtures: a file-backed SQLite metadata store per test
"""
import uuid
from pathlib import Path

import pytest

from packages.workspace_sync.config import MetadataDatabase, SyncSettings, init_engine
from packages.workspace_sync.context import WorkspaceSyncContext
from packages.workspace_sync.metadata_store import MetadataQueryRunner
from packages.workspace_sync.models import Base, DataSource


@pytest.fixture()
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "metadata.db"


@pytest.fixture()
def settings(temp_db_path: Path, tmp_path: Path) -> SyncSettings:
    return SyncSettings(
        DATABASE_URL=f"sqlite:///{temp_db_path}",
        LOG_DIR=tmp_path / "logs",
    )


@pytest.fixture()
def engine(settings):
    engine = init_engine(settings)
    MetadataDatabase(engine).create_all()
    yield engine
    engine.dispose()


@pytest.fixture()
def database(engine) -> MetadataDatabase:
    return MetadataDatabase(engine)


@pytest.fixture()
def context(database) -> WorkspaceSyncContext:
    workspace_id = uuid.uuid4()
    with database.session() as session, session.begin():
        data_source = DataSource(workspace_id=workspace_id, schema="workspace_test")
        session.add(data_source)
    return WorkspaceSyncContext(workspace_id=workspace_id, data_source_id=data_source.id)


@pytest.fixture()
def query_runner(engine):
    """An open transaction on the metadata store, rolled back unless committed."""

    runner = MetadataQueryRunner(engine)
    runner.connect()
    runner.start_transaction()
    yield runner
    if runner.is_transaction_active:
        runner.rollback_transaction()
    runner.release()


@pytest.fixture()
def snapshot(engine):
    """Return a callable dumping every metadata table's rows."""

    def _snapshot():
        with engine.connect() as conn:
            return {
                table.name: sorted(
                    (tuple(row) for row in conn.execute(table.select())), key=repr
                )
                for table in Base.metadata.sorted_tables
            }

    return _snapshot
