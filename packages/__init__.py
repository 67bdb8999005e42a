"""Workspace metadata synchronization toolkit.

The ``packages`` namespace groups the reconciliation core
(:mod:`packages.workspace_sync`) and its command-line entry point
(:mod:`packages.sync_cli`). Importing it loads ``.env`` files once so that
settings resolved later see the same environment as the shell.
"""

from __future__ import annotations

from .env import load_env

load_env()

__all__ = ["load_env"]
