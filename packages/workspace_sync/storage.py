"""In-memory accumulator of the diffs computed during one sync run."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .exceptions import DiffComputationError
from .schema.enums import DiffAction, MetadataKind

__all__ = ["MetadataDiff", "WorkspaceSyncStorage"]


class MetadataDiff(BaseModel):
    """One create/update/delete of an object, field or relation."""

    kind: MetadataKind
    action: DiffAction
    key: str
    standard_id: Optional[str] = None
    entity_id: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    changes: List[str] = Field(default_factory=list)


class WorkspaceSyncStorage:
    """Created, updated and deleted entities per kind for a single run.

    Collections keep insertion order. Recording the same diff twice for an
    entity is ignored; recording a different diff for an entity that already
    has one is an error.
    """

    def __init__(self, workspace_id: uuid.UUID) -> None:
        self.workspace_id = workspace_id
        self._collections: Dict[tuple[MetadataKind, DiffAction], List[MetadataDiff]] = {
            (kind, action): [] for kind in MetadataKind for action in DiffAction
        }
        self._by_entity: Dict[tuple[MetadataKind, str], MetadataDiff] = {}

    def record(self, diff: MetadataDiff) -> bool:
        """Append ``diff``; return ``False`` when an identical entry exists."""

        entity = (diff.kind, diff.key)
        existing = self._by_entity.get(entity)
        if existing is not None:
            if existing == diff:
                return False
            raise DiffComputationError(
                f"conflicting {diff.kind.value} diffs for {diff.key}: "
                f"{existing.action.value} then {diff.action.value}"
            )
        self._by_entity[entity] = diff
        self._collections[(diff.kind, diff.action)].append(diff)
        return True

    def get(self, kind: MetadataKind, action: DiffAction) -> List[MetadataDiff]:
        return list(self._collections[(kind, action)])

    def find(self, kind: MetadataKind, key: str) -> Optional[MetadataDiff]:
        return self._by_entity.get((kind, key))

    # Named collections ------------------------------------------------------

    @property
    def object_create_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.OBJECT, DiffAction.CREATE)

    @property
    def object_update_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.OBJECT, DiffAction.UPDATE)

    @property
    def object_delete_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.OBJECT, DiffAction.DELETE)

    @property
    def field_create_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.FIELD, DiffAction.CREATE)

    @property
    def field_update_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.FIELD, DiffAction.UPDATE)

    @property
    def field_delete_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.FIELD, DiffAction.DELETE)

    @property
    def relation_create_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.RELATION, DiffAction.CREATE)

    @property
    def relation_update_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.RELATION, DiffAction.UPDATE)

    @property
    def relation_delete_collection(self) -> List[MetadataDiff]:
        return self.get(MetadataKind.RELATION, DiffAction.DELETE)

    def collections(self) -> Dict[str, List[MetadataDiff]]:
        """All collections keyed ``<kind>_<action>`` in kind/action order."""

        return {
            f"{kind.value}_{action.value}": list(entries)
            for (kind, action), entries in self._collections.items()
        }

    def counts(self) -> Dict[str, int]:
        return {name: len(entries) for name, entries in self.collections().items()}

    def is_empty(self) -> bool:
        return not self._by_entity

    def __len__(self) -> int:
        return len(self._by_entity)
