"""Metadata store SQLAlchemy models organized by domain."""

from .base import Base, utcnow
from .flags import FeatureFlag
from .metadata import DataSource, FieldMetadata, ObjectMetadata, RelationMetadata
from .migrations import WorkspaceMigration

__all__ = [
    "Base",
    "DataSource",
    "FeatureFlag",
    "FieldMetadata",
    "ObjectMetadata",
    "RelationMetadata",
    "WorkspaceMigration",
    "utcnow",
]
