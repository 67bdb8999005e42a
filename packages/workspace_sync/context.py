"""Target of a sync run."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Union

__all__ = ["WorkspaceSyncContext"]

UUIDLike = Union[uuid.UUID, str]


@dataclass(frozen=True)
class WorkspaceSyncContext:
    """Workspace and metadata data source a sync run operates on."""

    workspace_id: uuid.UUID
    data_source_id: uuid.UUID

    @classmethod
    def from_ids(cls, workspace_id: UUIDLike, data_source_id: UUIDLike) -> "WorkspaceSyncContext":
        return cls(
            workspace_id=workspace_id if isinstance(workspace_id, uuid.UUID) else uuid.UUID(workspace_id),
            data_source_id=(
                data_source_id if isinstance(data_source_id, uuid.UUID) else uuid.UUID(data_source_id)
            ),
        )
