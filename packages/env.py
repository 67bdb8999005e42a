"""Locate and load `.env` files for the sync tooling."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from dotenv import find_dotenv, load_dotenv

PathLike = Union[str, Path]

# Points at an extra env file, loaded ahead of the cwd and repo-root files.
ENV_FILE_VARIABLE = "WORKSPACE_SYNC_ENV_FILE"

_loaded: Optional[List[Path]] = None


def _candidates(extra_paths: Iterable[PathLike]) -> List[Path]:
    paths = [Path(p).expanduser() for p in extra_paths]
    if os.environ.get(ENV_FILE_VARIABLE):
        paths.append(Path(os.environ[ENV_FILE_VARIABLE]).expanduser())
    found = find_dotenv(usecwd=True)
    if found:
        paths.append(Path(found))
    paths.append(Path(__file__).resolve().parent.parent / ".env")

    unique: List[Path] = []
    for path in paths:
        if not path.is_file():
            continue
        resolved = path.resolve()
        if resolved not in unique:
            unique.append(resolved)
    return unique


def load_env(*, override: bool = False, extra_paths: Iterable[PathLike] = ()) -> List[Path]:
    """Load environment files once per process and return the files read.

    Earlier files win unless ``override`` is set, in which case every file is
    re-read and later ones replace existing variables. Passing
    ``extra_paths`` forces a fresh search.
    """

    global _loaded

    extra = list(extra_paths)
    if _loaded is not None and not override and not extra:
        return list(_loaded)

    loaded = [path for path in _candidates(extra) if load_dotenv(path, override=override)]
    _loaded = loaded
    return list(loaded)


def reset_env_cache() -> None:
    global _loaded
    _loaded = None
