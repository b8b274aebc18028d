"""Spec file loading and location of the spec file and mirror store."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError, IdentityError
from .identity import RepoIdentity

SPECS_ENV = "GIT_FLOTILLA_SPECS"
ROOT_ENV = "GIT_FLOTILLA_ROOT"
SPECS_FILENAME = ".flotilla"


@dataclass(frozen=True)
class RepositorySpec:
    """One tracked repository: its locator and free-form tags."""

    locator: RepoIdentity
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def local_dir(self) -> str:
        return self.locator.local_dir()

    def to_dict(self) -> dict:
        return {
            "locator": str(self.locator),
            "local_dir": self.local_dir,
            "tags": sorted(self.tags),
        }


def parse_spec_line(line: str) -> RepositorySpec | None:
    """Parse one spec file line; None for blank lines and comments."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    locator, *tags = line.split()
    try:
        identity = RepoIdentity.parse(locator)
        # Derived eagerly so bad lines fail before any git work starts.
        identity.local_dir()
    except IdentityError as e:
        raise ConfigError(f"parsing config line {line!r}: {e}") from e
    return RepositorySpec(locator=identity, tags=frozenset(tags))


def load_specs(specs_file: Path) -> list[RepositorySpec]:
    """Load repository specs from a file (one locator per line, then tags).

    Supports:
    - Comments starting with #
    - Any number of whitespace-separated tags after the locator
    """
    path = specs_file.expanduser()
    try:
        with open(path) as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigError(f"opening {path}: {e.strerror or e}") from e

    specs = []
    for line in lines:
        spec = parse_spec_line(line)
        if spec is not None:
            specs.append(spec)
    return specs


def filter_by_tags(specs: Iterable[RepositorySpec], tags: Iterable[str]) -> list[RepositorySpec]:
    """Keep specs carrying at least one of ``tags``; all of them if no tags given."""
    wanted = set(tags)
    if not wanted:
        return list(specs)
    return [spec for spec in specs if spec.tags & wanted]


def resolve_specs_file(explicit: Path | None = None) -> Path:
    """Find the spec file.

    Priority order:
    1. Explicit path (``--specs``)
    2. $GIT_FLOTILLA_SPECS environment variable
    3. ./.flotilla
    4. ~/.config/git-flotilla/specs (XDG-compliant)
    """
    if explicit is not None:
        return explicit.expanduser()

    env_specs = os.environ.get(SPECS_ENV)
    if env_specs:
        return Path(env_specs).expanduser()

    local_path = Path(SPECS_FILENAME)
    if local_path.is_file():
        return local_path

    xdg_path = Path.home() / ".config" / "git-flotilla" / "specs"
    if xdg_path.is_file():
        return xdg_path

    raise ConfigError(
        f"no spec file: pass --specs, set ${SPECS_ENV}, or create {SPECS_FILENAME}"
    )


def resolve_store_root(explicit: Path | None = None) -> Path:
    """Directory that mirrors (and existing checkouts) live in."""
    if explicit is not None:
        return explicit.expanduser().resolve()
    env_root = os.environ.get(ROOT_ENV)
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path.cwd()
