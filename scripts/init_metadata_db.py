#!/usr/bin/env python3
"""Initialize the metadata store and optionally register a workspace."""

from __future__ import annotations

import argparse
import sys
import uuid

from packages.sync_cli.commands.database import ensure_data_source
from packages.workspace_sync.config import MetadataDatabase, SyncSettings, init_engine


def init_metadata_db(workspace_id: uuid.UUID | None = None, schema: str | None = None) -> None:
    """Create metadata tables and the workspace's data source if requested."""
    settings = SyncSettings()
    engine = init_engine(settings)
    try:
        MetadataDatabase(engine).create_all()
        print("✓ Metadata tables ready")

        if workspace_id is not None:
            data_source = ensure_data_source(engine, workspace_id, schema)
            print(f"✓ Data source {data_source.id} (schema {data_source.schema})")
            print(f"\n📝 Sync it with: workspace-sync sync-metadata --workspace-id {workspace_id}")
    finally:
        engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--workspace-id", type=uuid.UUID)
    parser.add_argument("--schema")
    args = parser.parse_args()
    try:
        init_metadata_db(args.workspace_id, args.schema)
    except Exception as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        sys.exit(1)
