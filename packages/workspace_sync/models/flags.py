"""Per-workspace feature flag rows."""

from __future__ import annotations

import uuid

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

__all__ = ["FeatureFlag"]


class FeatureFlag(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Boolean toggle scoped to one workspace."""

    __tablename__ = "feature_flags"
    __table_args__ = (
        UniqueConstraint("workspace_id", "key", name="uq_feature_flags_key"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    key: Mapped[str] = mapped_column(String(128), nullable=False)
    value: Mapped[bool] = mapped_column(default=False, nullable=False)
