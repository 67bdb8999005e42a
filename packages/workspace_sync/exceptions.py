"""Error taxonomy for workspace metadata synchronization."""

from __future__ import annotations

import uuid
from typing import Optional

__all__ = [
    "WorkspaceSyncError",
    "StoreError",
    "ConnectivityError",
    "PreCommitError",
    "DiffComputationError",
    "ReferentialIntegrityError",
    "CommitError",
    "MigrationExecutionError",
]


class WorkspaceSyncError(RuntimeError):
    """Base class for every failure raised by a sync run."""


class StoreError(WorkspaceSyncError):
    """Raised when the metadata store is lost during a store call."""


class ConnectivityError(StoreError):
    """Raised when the store cannot be reached at connect/begin time."""


class PreCommitError(WorkspaceSyncError):
    """Failure before commit; the run is fully rolled back."""


class DiffComputationError(PreCommitError):
    """Raised when a definition cannot be compared with persisted metadata."""


class ReferentialIntegrityError(PreCommitError):
    """Raised when a relation endpoint cannot be resolved in the store."""

    def __init__(
        self,
        message: str,
        *,
        relation: Optional[str] = None,
        missing: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.relation = relation
        self.missing = missing


class CommitError(PreCommitError):
    """Raised when committing the metadata transaction fails."""


class MigrationExecutionError(WorkspaceSyncError):
    """Raised when pending migrations fail after metadata was committed.

    Metadata changes of the run are durable at this point; only the physical
    schema lags behind until the pending migrations are executed again.
    """

    metadata_committed = True

    def __init__(self, message: str, *, workspace_id: uuid.UUID) -> None:
        super().__init__(message)
        self.workspace_id = workspace_id
