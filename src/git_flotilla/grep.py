"""Search the upstream snapshot of every mirror."""

from __future__ import annotations

import logging
import re
import sys
import threading
from collections.abc import Callable, Iterator, Sequence
from fnmatch import fnmatchcase
from pathlib import Path
from typing import TextIO

from .config import RepositorySpec
from .core import MirrorRepository
from .errors import FlotillaError, SearchError, with_context
from .formatters import format_grep_match

logger = logging.getLogger(__name__)


class LineWriter:
    """Print whole lines from many threads without interleaving them."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            print(line, file=self._stream or sys.stdout, flush=True)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise SearchError(f"invalid pattern {pattern!r}: {e}") from e


def matches_globs(path: str, globs: Sequence[str]) -> bool:
    """True if ``path`` matches any glob, or if there are no globs at all.

    ``*`` also matches ``/``, so ``*.md`` finds markdown files at any depth.
    """
    if not globs:
        return True
    return any(fnmatchcase(path, glob) for glob in globs)


def search_lines(matcher: re.Pattern[str], content: bytes) -> Iterator[tuple[int, str]]:
    """Yield (1-based line number, line) for every line ``matcher`` finds."""
    lines = content.split(b"\n")
    if lines and not lines[-1]:
        lines.pop()
    for lineno, raw in enumerate(lines, start=1):
        line = raw.decode("utf-8", "replace")
        if matcher.search(line):
            yield lineno, line


def grep_repository(
    spec: RepositorySpec,
    store_root: Path,
    matcher: re.Pattern[str],
    globs: Sequence[str],
    emit: Callable[[str], None],
) -> int:
    """Search one mirror at ``origin/REMOTE_HEAD``; returns the match count.

    Mirrors that were never created are skipped. Errors reading individual
    files do not stop the walk; the first one is raised once it is done.
    """
    dest = store_root / spec.local_dir
    if not dest.exists():
        return 0

    repo = MirrorRepository.open(dest)
    try:
        commit = repo.remote_head()
    except FlotillaError as e:
        raise with_context(e, f"looking in {spec.local_dir}") from e

    provider = spec.locator.provider()
    errors: list[SearchError] = []
    count = 0

    with repo.ops.open_blob_reader() as blobs:
        for entry in repo.ops.list_tree(commit):
            if entry.type != "blob":
                continue
            if not matches_globs(entry.path, globs):
                continue
            try:
                content = blobs.read(entry.sha)
            except FlotillaError as e:
                errors.append(SearchError(f"reading {entry.path}: {e}"))
                continue
            for lineno, line in search_lines(matcher, content):
                emit(format_grep_match(spec.local_dir, entry.path, lineno, line, provider))
                count += 1

    if errors:
        if len(errors) > 1:
            logger.warning(
                "%s: %d more errors while searching, only the first is reported",
                spec.local_dir,
                len(errors) - 1,
            )
        raise with_context(errors[0], f"searching {spec.local_dir}")

    return count
