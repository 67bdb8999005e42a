"""Metadata store initialization command."""

from __future__ import annotations

import uuid
from argparse import Namespace, _SubParsersAction
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine

from packages.workspace_sync.config import MetadataDatabase
from packages.workspace_sync.models import DataSource

from ..config import RuntimeConfig

__all__ = ["register", "run", "ensure_data_source"]


def register(subparsers: _SubParsersAction) -> None:
    parser = subparsers.add_parser("init-db", help="Create metadata store tables")
    parser.add_argument(
        "--workspace-id",
        dest="workspace_id",
        type=uuid.UUID,
        help="Also register a data source for this workspace",
    )
    parser.add_argument(
        "--schema",
        help="Tenant schema of the registered data source (default: workspace_<hex>)",
    )
    parser.set_defaults(handler=run)


def ensure_data_source(
    engine: Engine, workspace_id: uuid.UUID, schema: Optional[str] = None
) -> DataSource:
    """Return the workspace's data source, creating it when missing."""

    database = MetadataDatabase(engine)
    with database.session() as session, session.begin():
        existing = session.execute(
            select(DataSource).where(DataSource.workspace_id == workspace_id)
        ).scalars().first()
        if existing is not None:
            return existing
        data_source = DataSource(
            workspace_id=workspace_id,
            schema=schema or f"workspace_{workspace_id.hex}",
        )
        session.add(data_source)
    return data_source


def run(args: Namespace, config: RuntimeConfig) -> None:
    engine = config.engine()
    try:
        MetadataDatabase(engine).create_all()
        print("Metadata tables ready.")
        workspace_id = getattr(args, "workspace_id", None)
        if workspace_id is not None:
            data_source = ensure_data_source(engine, workspace_id, getattr(args, "schema", None))
            print(f"Data source {data_source.id} (schema {data_source.schema}) for {workspace_id}")
    finally:
        engine.dispose()
