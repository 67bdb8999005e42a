"""Data source, object, field and relation metadata models."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..schema.enums import FieldType, OnDeleteAction, RelationType
from .base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    field_type_enum,
    on_delete_action_enum,
    relation_type_enum,
)

__all__ = ["DataSource", "ObjectMetadata", "FieldMetadata", "RelationMetadata"]


class DataSource(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tenant database schema holding a workspace's records."""

    __tablename__ = "data_sources"

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    schema: Mapped[str | None] = mapped_column(String(63))


class ObjectMetadata(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Persisted shape of an object (a tenant table)."""

    __tablename__ = "object_metadata"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name_singular", name="uq_object_metadata_name"),
        Index("ix_object_metadata_workspace", "workspace_id", "is_custom"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    data_source_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False
    )
    standard_id: Mapped[uuid.UUID | None] = mapped_column()
    name_singular: Mapped[str] = mapped_column(String(255), nullable=False)
    name_plural: Mapped[str] = mapped_column(String(255), nullable=False)
    label_singular: Mapped[str] = mapped_column(String(255), nullable=False)
    label_plural: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(64))
    target_table_name: Mapped[str] = mapped_column(String(63), nullable=False)
    is_custom: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    fields: Mapped[list["FieldMetadata"]] = relationship(
        back_populates="object_metadata", cascade="all, delete-orphan"
    )


class FieldMetadata(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Persisted shape of a field (one or more tenant columns)."""

    __tablename__ = "field_metadata"
    __table_args__ = (
        UniqueConstraint("object_metadata_id", "name", name="uq_field_metadata_name"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    object_metadata_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("object_metadata.id", ondelete="CASCADE"), nullable=False
    )
    standard_id: Mapped[uuid.UUID | None] = mapped_column()
    type: Mapped[FieldType] = mapped_column(field_type_enum(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(64))
    target_column_map: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    default_value: Mapped[Any | None] = mapped_column(JSON)
    options: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)
    is_nullable: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_custom: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    object_metadata: Mapped[ObjectMetadata] = relationship(back_populates="fields")


class RelationMetadata(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Persisted link between two objects through a pair of relation fields."""

    __tablename__ = "relation_metadata"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "from_field_metadata_id", name="uq_relation_metadata_from_field"
        ),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    relation_type: Mapped[RelationType] = mapped_column(relation_type_enum(), nullable=False)
    from_object_metadata_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("object_metadata.id", ondelete="CASCADE"), nullable=False
    )
    to_object_metadata_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("object_metadata.id", ondelete="CASCADE"), nullable=False
    )
    from_field_metadata_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("field_metadata.id", ondelete="CASCADE"), nullable=False
    )
    to_field_metadata_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("field_metadata.id", ondelete="CASCADE"), nullable=False
    )
    join_column_name: Mapped[str] = mapped_column(String(63), nullable=False)
    on_delete_action: Mapped[OnDeleteAction] = mapped_column(
        on_delete_action_enum(), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
