"""Workspace metadata synchronization: diff the standard schema into tenants."""

from .config import MetadataDatabase, SyncSettings, init_engine
from .context import WorkspaceSyncContext
from .exceptions import (
    CommitError,
    ConnectivityError,
    DiffComputationError,
    MigrationExecutionError,
    PreCommitError,
    ReferentialIntegrityError,
    StoreError,
    WorkspaceSyncError,
)
from .feature_flags import (
    FeatureFlagResolver,
    FeatureGate,
    StaticFeatureFlagResolver,
    WorkspaceFeatureFlagResolver,
)
from .logs import LogSink, WorkspaceLogsService
from .metadata_store import MetadataQueryRunner
from .migration_runner import MigrationRunner, WorkspaceMigrationRunner, render_migration_sql
from .object_sync import WorkspaceSyncObjectMetadataService
from .orchestrator import (
    SyncEventLogger,
    SyncReport,
    SyncState,
    SyncTransition,
    WorkspaceSyncMetadataService,
)
from .relation_sync import WorkspaceSyncRelationMetadataService
from .storage import MetadataDiff, WorkspaceSyncStorage

__all__ = [
    "CommitError",
    "ConnectivityError",
    "DiffComputationError",
    "FeatureFlagResolver",
    "FeatureGate",
    "LogSink",
    "MetadataDatabase",
    "MetadataDiff",
    "MetadataQueryRunner",
    "MigrationExecutionError",
    "MigrationRunner",
    "PreCommitError",
    "ReferentialIntegrityError",
    "StaticFeatureFlagResolver",
    "StoreError",
    "SyncEventLogger",
    "SyncReport",
    "SyncSettings",
    "SyncState",
    "SyncTransition",
    "WorkspaceFeatureFlagResolver",
    "WorkspaceLogsService",
    "WorkspaceMigrationRunner",
    "WorkspaceSyncContext",
    "WorkspaceSyncError",
    "WorkspaceSyncMetadataService",
    "WorkspaceSyncObjectMetadataService",
    "WorkspaceSyncRelationMetadataService",
    "WorkspaceSyncStorage",
    "init_engine",
    "render_migration_sql",
]
