"""Per-user cache directory for metadata fetched from hosting providers."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from .errors import StoreError

CACHE_ENV = "GIT_FLOTILLA_CACHE"
APP_NAME = "git-flotilla"

_UNSAFE = re.compile(r"[^\w-]")


def fs_safe_component(name: str) -> str:
    """Make ``name`` usable as a single, case-insensitive path component."""
    return _UNSAFE.sub("_", name).lower()


def resolve_cache_dir() -> Path:
    """Auto-resolve the cache directory.

    Priority order:
    1. $GIT_FLOTILLA_CACHE environment variable
    2. $XDG_CACHE_HOME/git-flotilla
    3. ~/.cache/git-flotilla
    """
    env_cache = os.environ.get(CACHE_ENV)
    if env_cache:
        return Path(env_cache).expanduser()

    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache).expanduser() / APP_NAME

    return Path.home() / ".cache" / APP_NAME


def _mkdirs(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StoreError(f"creating {path}: {e}") from e
    return path


class Cache:
    """Directory layout of the cache."""

    def __init__(self, root: Path | None = None):
        self.root = _mkdirs(root or resolve_cache_dir())

    def meta_github_org(self, org: str) -> Path:
        """Directory holding metadata about a GitHub organization."""
        return _mkdirs(self.root / "meta" / "github" / fs_safe_component(org))

    def write_json(self, path: Path, data: Any) -> Path:
        """Replace ``path`` with ``data`` as JSON; readers never see a partial file."""
        try:
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"writing {path}: {e}") from e
        return path
