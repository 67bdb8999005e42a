"""Feature flag resolution and definition gating."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Mapping, Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from .context import WorkspaceSyncContext
from .exceptions import ConnectivityError
from .models import FeatureFlag
from .schema.enums import FeatureFlagKey

__all__ = [
    "FeatureFlagMap",
    "FeatureFlagResolver",
    "WorkspaceFeatureFlagResolver",
    "StaticFeatureFlagResolver",
    "FeatureGate",
]

logger = structlog.get_logger(__name__)

FeatureFlagMap = Dict[str, bool]


class FeatureFlagResolver(Protocol):
    """Produce the active flag set for a workspace. Read-only."""

    def resolve(self, context: WorkspaceSyncContext) -> FeatureFlagMap:
        ...


def _base_flags(enabled_by_default: Iterable[str]) -> FeatureFlagMap:
    defaults = set(enabled_by_default)
    return {key.value: key.value in defaults for key in FeatureFlagKey}


class WorkspaceFeatureFlagResolver:
    """Resolve flags from the ``feature_flags`` table of the metadata store.

    Every known :class:`FeatureFlagKey` starts as ``False`` (or ``True`` when
    listed in ``enabled_by_default``) and persisted rows override it.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        enabled_by_default: Iterable[str] = (),
    ) -> None:
        self._session_factory = session_factory
        self._enabled_by_default = tuple(enabled_by_default)

    def resolve(self, context: WorkspaceSyncContext) -> FeatureFlagMap:
        flags = _base_flags(self._enabled_by_default)
        session = self._session_factory()
        try:
            rows = session.execute(
                select(FeatureFlag).where(FeatureFlag.workspace_id == context.workspace_id)
            ).scalars()
            for row in rows:
                flags[row.key] = bool(row.value)
        except (OperationalError, InterfaceError) as exc:
            raise ConnectivityError(f"cannot read feature flags: {exc}") from exc
        finally:
            session.close()
        logger.debug(
            "feature_flags_resolved",
            workspace_id=str(context.workspace_id),
            enabled=sorted(key for key, value in flags.items() if value),
        )
        return flags


class StaticFeatureFlagResolver:
    """Return the same flag map for every workspace."""

    def __init__(self, flags: Optional[Mapping[str, bool]] = None, **overrides: bool) -> None:
        self._flags = _base_flags(())
        self._flags.update(flags or {})
        self._flags.update(overrides)

    def resolve(self, context: WorkspaceSyncContext) -> FeatureFlagMap:
        return dict(self._flags)


class FeatureGate:
    """Evaluate definition gates against one run's flag snapshot.

    A definition is active when it has no gate or its gate flag is on.
    Results are cached for the lifetime of the gate (one sync run).
    """

    def __init__(self, flags: Mapping[str, bool]) -> None:
        self._flags = dict(flags)
        self._cache: dict[Optional[str], bool] = {None: True}

    @property
    def flags(self) -> FeatureFlagMap:
        return dict(self._flags)

    def is_enabled(self, gate: Optional[str]) -> bool:
        key = gate.value if isinstance(gate, FeatureFlagKey) else gate
        if key not in self._cache:
            self._cache[key] = bool(self._flags.get(key, False))
        return self._cache[key]

    def is_active(self, definition, parent=None) -> bool:
        """Return whether ``definition`` (and its owning ``parent``) is active."""

        if parent is not None and not self.is_enabled(parent.gate):
            return False
        return self.is_enabled(definition.gate)
