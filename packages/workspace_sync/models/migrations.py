"""Durable queue of generated workspace migrations."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDPrimaryKeyMixin, utcnow

__all__ = ["WorkspaceMigration"]


class WorkspaceMigration(UUIDPrimaryKeyMixin, Base):
    """Ordered schema-change record awaiting the migration runner.

    ``applied_at`` stays ``NULL`` until the runner executes the migration.
    """

    __tablename__ = "workspace_migrations"
    __table_args__ = (
        Index("ix_workspace_migrations_pending", "workspace_id", "applied_at"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    migrations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    is_custom: Mapped[bool] = mapped_column(default=False, nullable=False)
    applied_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id) if self.id else None,
            "workspace_id": str(self.workspace_id),
            "name": self.name,
            "migrations": self.migrations,
            "is_custom": self.is_custom,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
