"""Shared SQLAlchemy base and column helpers for metadata models."""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..schema.enums import FieldType, OnDeleteAction, RelationType, sql_enum

__all__ = [
    "Base",
    "UUIDPrimaryKeyMixin",
    "TimestampMixin",
    "utcnow",
    "field_type_enum",
    "relation_type_enum",
    "on_delete_action_enum",
]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    """Declarative base class shared by all metadata models."""


class UUIDPrimaryKeyMixin:
    """Mixin providing a client-generated UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """Creation/update timestamps assigned client side.

    Values are set in Python so instances stay fully loaded after a flush,
    which keeps them readable once a dry-run transaction is rolled back.
    """

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


# Enum helper factories -----------------------------------------------------

def field_type_enum():
    """Return a configured enum column type for ``field_type``."""

    return sql_enum(FieldType)


def relation_type_enum():
    """Return a configured enum column type for ``relation_type``."""

    return sql_enum(RelationType)


def on_delete_action_enum():
    """Return a configured enum column type for ``on_delete_action``."""

    return sql_enum(OnDeleteAction)
