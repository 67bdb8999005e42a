"""Command registrations for the workspace-sync CLI."""

from __future__ import annotations

from argparse import _SubParsersAction

from . import database, migrations, sync

__all__ = ["register"]


def register(subparsers: _SubParsersAction) -> None:
    """Register all CLI commands with *subparsers*."""

    database.register(subparsers)
    sync.register(subparsers)
    migrations.register(subparsers)
