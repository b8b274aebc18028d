"""
git-flotilla: keep a fleet of repository mirrors in sync and see where they stand.

Mirror synchronization, divergence analysis and the parallel fan-out shared
by the status, sync and grep commands.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import IO, Any

from .config import RepositorySpec
from .errors import (
    AuthError,
    FetchFailedError,
    FlotillaError,
    NotFoundError,
    StoreError,
    VcsError,
    with_context,
)
from .identity import RepoIdentity

logger = logging.getLogger(__name__)

REMOTE = "origin"
MIRROR_REFSPEC = "+refs/heads/*:refs/heads/*"
REMOTE_HEAD_REF = f"refs/remotes/{REMOTE}/REMOTE_HEAD"
REMOTE_HEAD_REFSPEC = f"+HEAD:{REMOTE_HEAD_REF}"
MAX_WORKING_CHANGES = 3

# =============================================================================
# Domain Models
# =============================================================================


class VarianceKind(StrEnum):
    """Relationship between the local branch and upstream's HEAD."""

    EQUAL = "equal"
    NOT_ON_BRANCH = "not_on_branch"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


@dataclass(frozen=True)
class Variance:
    """How far the local branch is from ``origin/REMOTE_HEAD``."""

    kind: VarianceKind
    local: int = 0  # commits only reachable from the local branch
    remote: int = 0  # commits only reachable from upstream's HEAD

    @classmethod
    def equal(cls) -> Variance:
        return cls(VarianceKind.EQUAL)

    @classmethod
    def not_on_branch(cls) -> Variance:
        return cls(VarianceKind.NOT_ON_BRANCH)

    @classmethod
    def ahead(cls, count: int) -> Variance:
        return cls(VarianceKind.AHEAD, local=count)

    @classmethod
    def behind(cls, count: int) -> Variance:
        return cls(VarianceKind.BEHIND, remote=count)

    @classmethod
    def diverged(cls, local: int, remote: int) -> Variance:
        return cls(VarianceKind.DIVERGED, local=local, remote=remote)

    def __str__(self) -> str:
        match self.kind:
            case VarianceKind.EQUAL:
                return "Equal"
            case VarianceKind.NOT_ON_BRANCH:
                return "NotOnBranch"
            case VarianceKind.AHEAD:
                return f"Ahead({self.local})"
            case VarianceKind.BEHIND:
                return f"Behind({self.remote})"
            case _:
                return f"Diverged {{ local: {self.local}, remote: {self.remote} }}"

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "local": self.local, "remote": self.remote}


class StatusKind(StrEnum):
    """Outcome of a status check for one spec."""

    ABSENT = "absent"
    CLEAN = "clean"
    CHANGES = "changes"


@dataclass
class RepositoryStatus:
    """Status of one tracked repository."""

    spec: RepositorySpec
    kind: StatusKind
    changes: list[str] = field(default_factory=list)
    variance: Variance | None = None

    @property
    def local_dir(self) -> str:
        return self.spec.local_dir

    def to_dict(self) -> dict:
        return {
            "locator": str(self.spec.locator),
            "local_dir": self.local_dir,
            "tags": sorted(self.spec.tags),
            "status": self.kind.value,
            "variance": self.variance.to_dict() if self.variance else None,
            "changes": self.changes,
        }


@dataclass
class FleetSummary:
    """Summary of fleet status."""

    total: int = 0
    absent: int = 0
    clean: int = 0
    changed: int = 0

    @classmethod
    def from_statuses(cls, statuses: Sequence[RepositoryStatus]) -> FleetSummary:
        return cls(
            total=len(statuses),
            absent=sum(1 for s in statuses if s.kind == StatusKind.ABSENT),
            clean=sum(1 for s in statuses if s.kind == StatusKind.CLEAN),
            changed=sum(1 for s in statuses if s.kind == StatusKind.CHANGES),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncResult:
    """Result of a clone-or-fetch of one mirror."""

    path: Path
    name: str
    created: bool
    remote_head: str

    @property
    def message(self) -> str:
        verb = "Cloned" if self.created else "Fetched"
        return f"{verb} at {self.remote_head[:12]}"

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "created": self.created,
            "remote_head": self.remote_head,
        }


@dataclass(frozen=True)
class SidebandMessage:
    """Text the server sent during a fetch (``remote: ...``)."""

    text: str


@dataclass(frozen=True)
class TransferProgress:
    """Object transfer counters of a running fetch."""

    local_objects: int = 0
    received_objects: int = 0
    indexed_objects: int = 0
    total_objects: int = 0
    indexed_deltas: int = 0
    total_deltas: int = 0
    received_bytes: int = 0


FetchProgress = SidebandMessage | TransferProgress
ProgressCallback = Callable[[FetchProgress], None]


# =============================================================================
# Fetch progress parsing
# =============================================================================

_RECEIVING = re.compile(
    r"^Receiving objects:\s+\d+% \((\d+)/(\d+)\)(?:, ([\d.]+) ([KMG]?i?B))?"
)
_RESOLVING = re.compile(r"^Resolving deltas:\s+\d+% \((\d+)/(\d+)\)")
_BYTE_UNITS = {"B": 1, "KiB": 1024, "MiB": 1024**2, "GiB": 1024**3}
_AUTH_FAILURE = re.compile(
    r"Permission denied \(publickey"
    r"|Host key verification failed"
    r"|could not read Username"
    r"|terminal prompts disabled"
    r"|Authentication failed",
    re.IGNORECASE,
)


class ProgressParser:
    """Turn the lines ``git fetch --progress`` writes to stderr into events."""

    def __init__(self):
        self.counters = TransferProgress()

    def feed(self, line: str) -> FetchProgress | None:
        if line.startswith("remote:"):
            return SidebandMessage(line[len("remote:") :].replace("\x1b[K", "").strip())

        match = _RECEIVING.match(line)
        if match:
            received_bytes = self.counters.received_bytes
            if match.group(3):
                unit = _BYTE_UNITS.get(match.group(4), 1)
                received_bytes = int(float(match.group(3)) * unit)
            self.counters = replace(
                self.counters,
                received_objects=int(match.group(1)),
                total_objects=int(match.group(2)),
                received_bytes=received_bytes,
            )
            return self.counters

        match = _RESOLVING.match(line)
        if match:
            self.counters = replace(
                self.counters,
                indexed_deltas=int(match.group(1)),
                total_deltas=int(match.group(2)),
            )
            return self.counters

        return None


def iter_progress_lines(stream: IO[bytes]) -> Iterator[str]:
    """Split git's progress output on both carriage returns and newlines."""
    buffer = b""
    while chunk := stream.read1(4096):
        buffer += chunk
        *lines, buffer = re.split(rb"[\r\n]", buffer)
        for line in lines:
            if line.strip():
                yield line.decode("utf-8", "replace")
    if buffer.strip():
        yield buffer.decode("utf-8", "replace")


# =============================================================================
# Git Operations (Low-level)
# =============================================================================


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a recursive tree listing."""

    mode: str
    type: str
    sha: str
    path: str


class GitOperations:
    """Low-level Git operations for a single repository."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path.absolute()

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        # Never discover a repository above the one we were pointed at.
        env["GIT_CEILING_DIRECTORIES"] = str(self.repo_path.parent)
        # Credentials come from the SSH agent; nothing may prompt.
        env["GIT_TERMINAL_PROMPT"] = "0"
        # A user-supplied ssh command is kept, with batch mode added.
        ssh_command = env.get("GIT_SSH_COMMAND") or "ssh"
        env["GIT_SSH_COMMAND"] = f"{ssh_command} -o BatchMode=yes"
        return env

    def _run(
        self, *args: str, check: bool = True, cwd: Path | None = None
    ) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd or self.repo_path,
                env=self._env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as e:
            raise VcsError(f"running git {args[0]} in {cwd or self.repo_path}: {e}") from e
        if check and result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise VcsError(f"git {' '.join(args)} failed in {self.repo_path}: {detail}")
        return result

    def get_git_dir(self) -> Path:
        """Locate the repository's git directory; NotFoundError if there is none."""
        if not self.repo_path.is_dir():
            raise NotFoundError(f"no repository at {self.repo_path}")
        result = self._run("rev-parse", "--absolute-git-dir", check=False)
        if result.returncode != 0:
            raise NotFoundError(f"no repository at {self.repo_path}")
        return Path(result.stdout.strip())

    def init_bare(self) -> None:
        """Create a bare repository at the repository path."""
        try:
            self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"creating {self.repo_path.parent}: {e}") from e
        self._run("init", "--bare", "--quiet", str(self.repo_path), cwd=self.repo_path.parent)

    def is_bare(self) -> bool:
        result = self._run("rev-parse", "--is-bare-repository")
        return result.stdout.strip() == "true"

    def get_config(self, key: str) -> str:
        """Get a single config value."""
        result = self._run("config", "--get", key, check=False)
        if result.returncode == 1:
            raise NotFoundError(f"{key} is not set in {self.repo_path}")
        if result.returncode != 0:
            raise VcsError(f"reading {key} in {self.repo_path}: {result.stderr.strip()}")
        return result.stdout.strip()

    def get_config_all(self, key: str) -> list[str]:
        """Get every value of a multi-valued config key."""
        result = self._run("config", "--get-all", key, check=False)
        if result.returncode == 1:
            raise NotFoundError(f"{key} is not set in {self.repo_path}")
        if result.returncode != 0:
            raise VcsError(f"reading {key} in {self.repo_path}: {result.stderr.strip()}")
        return [line for line in result.stdout.splitlines() if line]

    def add_config(self, key: str, value: str) -> None:
        self._run("config", "--add", key, value)

    def unset_config_all(self, key: str) -> None:
        """Remove every value of ``key``."""
        result = self._run("config", "--unset-all", key, check=False)
        if result.returncode == 5:
            raise NotFoundError(f"{key} is not set in {self.repo_path}")
        if result.returncode != 0:
            raise VcsError(f"unsetting {key} in {self.repo_path}: {result.stderr.strip()}")

    def add_remote(self, name: str, url: str) -> None:
        self._run("remote", "add", name, url)

    def fetch(self, remote: str, on_progress: ProgressCallback | None = None) -> None:
        """Fetch ``remote`` with its configured refspecs, reporting progress."""
        parser = ProgressParser()
        tail: deque[str] = deque(maxlen=10)
        try:
            proc = subprocess.Popen(
                ["git", "fetch", "--progress", remote],
                cwd=self.repo_path,
                env=self._env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise VcsError(f"running git fetch in {self.repo_path}: {e}") from e

        with proc:
            for line in iter_progress_lines(proc.stderr):
                event = parser.feed(line)
                if not isinstance(event, TransferProgress):
                    tail.append(line)
                if event is not None and on_progress is not None:
                    on_progress(event)

        if proc.returncode != 0:
            detail = "; ".join(tail) or f"exit status {proc.returncode}"
            if _AUTH_FAILURE.search(detail):
                raise AuthError(f"no usable SSH agent credential for {remote}: {detail}")
            raise FetchFailedError(detail)

    def get_symbolic_ref(self, name: str = "HEAD") -> str:
        """Ref ``name`` points at; NotFoundError when it is detached."""
        result = self._run("symbolic-ref", "-q", name, check=False)
        if result.returncode == 1:
            raise NotFoundError(f"{name} is detached in {self.repo_path}")
        if result.returncode != 0:
            raise VcsError(f"reading {name} in {self.repo_path}: {result.stderr.strip()}")
        return result.stdout.strip()

    def set_symbolic_ref(self, name: str, target: str) -> None:
        self._run("symbolic-ref", name, target)

    def resolve_commit(self, rev: str) -> str:
        """Commit id ``rev`` resolves to."""
        result = self._run("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}", check=False)
        if result.returncode != 0:
            raise NotFoundError(f"cannot resolve {rev} in {self.repo_path}")
        return result.stdout.strip()

    def get_merge_base(self, first: str, second: str) -> str:
        result = self._run("merge-base", first, second, check=False)
        if result.returncode == 1:
            raise VcsError(f"{first[:12]} and {second[:12]} share no history")
        if result.returncode != 0:
            raise VcsError(f"merge-base in {self.repo_path}: {result.stderr.strip()}")
        return result.stdout.strip()

    def count_commits(self, start: str, hide: str) -> int:
        """Count commits reachable from ``start`` but not from ``hide``."""
        result = self._run("rev-list", "--count", start, f"^{hide}")
        return int(result.stdout.strip())

    def get_remote_head_branch(self, remote: str) -> str:
        """Branch ref the HEAD of ``remote`` names, as the remote reports it now."""
        result = self._run("ls-remote", "--symref", remote, "HEAD")
        for line in result.stdout.splitlines():
            target, _, name = line.partition("\t")
            if target.startswith("ref: ") and name == "HEAD":
                return target[len("ref: ") :]
        raise NotFoundError(f"HEAD of {remote} is not a branch")

    def get_branches_at(self, commit: str) -> list[str]:
        """Local branch refs whose tip is ``commit``."""
        result = self._run(
            "for-each-ref", "--points-at", commit, "--format=%(refname)", "refs/heads/"
        )
        return [line for line in result.stdout.splitlines() if line]

    def get_status_entries(self) -> list[tuple[str, str]]:
        """Working tree status as (XY code, path), in git's order."""
        result = self._run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        tokens = result.stdout.split("\0")
        entries = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            i += 1
            if len(token) < 4:
                continue
            xy, path = token[:2], token[3:]
            if "R" in xy or "C" in xy:
                # Renames and copies are followed by their source path.
                i += 1
            entries.append((xy, path))
        return entries

    def list_tree(self, commit: str) -> Iterator[TreeEntry]:
        """Every entry below the tree of ``commit``, depth first."""
        result = self._run("ls-tree", "-r", "-z", "--full-tree", commit)
        for record in result.stdout.split("\0"):
            if not record:
                continue
            meta, _, path = record.partition("\t")
            mode, kind, sha = meta.split()
            yield TreeEntry(mode=mode, type=kind, sha=sha, path=path)

    def open_blob_reader(self) -> BlobReader:
        return BlobReader(self)


class BlobReader:
    """Read many blobs through a single ``git cat-file --batch`` process."""

    def __init__(self, ops: GitOperations):
        self.repo_path = ops.repo_path
        try:
            self._proc = subprocess.Popen(
                ["git", "cat-file", "--batch"],
                cwd=ops.repo_path,
                env=ops._env(),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise VcsError(f"running git cat-file in {ops.repo_path}: {e}") from e

    def read(self, sha: str) -> bytes:
        assert self._proc.stdin is not None and self._proc.stdout is not None
        self._proc.stdin.write(sha.encode("ascii") + b"\n")
        self._proc.stdin.flush()

        header = self._proc.stdout.readline().split()
        if not header:
            raise VcsError(f"git cat-file exited early in {self.repo_path}")
        if header[-1] == b"missing":
            raise NotFoundError(f"object {sha} is missing from {self.repo_path}")

        data = self._proc.stdout.read(int(header[2]))
        self._proc.stdout.read(1)  # LF after the content
        return data

    def close(self) -> None:
        if self._proc.stdin is not None:
            self._proc.stdin.close()
        if self._proc.stdout is not None:
            self._proc.stdout.close()
        self._proc.wait()

    def __enter__(self) -> BlobReader:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# =============================================================================
# Mirror Repository
# =============================================================================

_CHANGE_CODES = {
    "A ": "add",
    "??": "new",
    "M ": "mod",
    " M": "mod",
    "D ": "del",
    " D": "del",
    "R ": "mov",
    " R": "mov",
}
_UNMERGED = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


def describe_change(xy: str, path: str) -> str:
    """Short ``<code> <path>`` summary of one status entry."""
    code = _CHANGE_CODES.get(xy)
    if code is None:
        code = "CON" if xy in _UNMERGED else f"?{xy}?"
    return f"{code} {path}"


class MirrorRepository:
    """A repository in the mirror store: a bare mirror or an existing checkout."""

    def __init__(self, path: Path):
        self.path = path
        self.name = path.name
        self.ops = GitOperations(path)

    @classmethod
    def open(cls, path: Path) -> MirrorRepository:
        """Open an existing repository; NotFoundError if ``path`` is not one."""
        repo = cls(path)
        repo.ops.get_git_dir()
        return repo

    @classmethod
    def init_bare(cls, path: Path) -> MirrorRepository:
        repo = cls(path)
        repo.ops.init_bare()
        return repo

    # -- synchronization ------------------------------------------------------

    def ensure_remote(self, locator: RepoIdentity) -> str:
        """Make sure ``origin`` exists, creating it to point at ``locator``.

        An existing ``origin`` is never repointed, even when its URL differs.
        """
        try:
            url = self.ops.get_config(f"remote.{REMOTE}.url")
        except NotFoundError:
            self.ops.add_remote(REMOTE, str(locator))
            return REMOTE
        if url != str(locator):
            logger.warning(
                "%s: %s points at %s, not %s; leaving it alone", self.name, REMOTE, url, locator
            )
        return REMOTE

    def ensure_fetch_mapping(self) -> None:
        """Replace every fetch refspec of ``origin`` with a 1:1 branch mirror.

        Custom refspecs set by hand are discarded.
        """
        try:
            self.ops.unset_config_all(f"remote.{REMOTE}.fetch")
        except NotFoundError:
            pass
        self.ops.add_config(f"remote.{REMOTE}.fetch", MIRROR_REFSPEC)

    def fetches_remote_head(self) -> bool:
        """Is ``origin``'s HEAD tracked as ``origin/REMOTE_HEAD``?"""
        try:
            refspecs = self.ops.get_config_all(f"remote.{REMOTE}.fetch")
        except NotFoundError:
            return False
        return REMOTE_HEAD_REFSPEC in refspecs

    def ensure_remote_head_tracking(self) -> bool:
        """Add the REMOTE_HEAD fetch mapping if missing; True if it was added."""
        if self.fetches_remote_head():
            return False
        self.ops.add_config(f"remote.{REMOTE}.fetch", REMOTE_HEAD_REFSPEC)
        return True

    def fetch(self, on_progress: ProgressCallback | None = None) -> None:
        """Fetch ``origin`` using the configured mappings."""
        self.ops.fetch(REMOTE, on_progress)

    def align_head(self) -> str | None:
        """Point an unborn HEAD at the branch upstream's HEAD resolves to.

        A fresh ``git init`` names its HEAD after the local default branch,
        which need not exist upstream. The branch upstream's HEAD names right
        now wins; if the remote cannot be asked, the first local branch at
        ``origin/REMOTE_HEAD`` is used. Returns the branch chosen, if any.
        """
        try:
            head_ref = self.ops.get_symbolic_ref("HEAD")
        except NotFoundError:
            return None
        try:
            self.ops.resolve_commit(head_ref)
            return None
        except NotFoundError:
            pass

        try:
            remote = self.remote_head()
        except NotFoundError:
            return None
        branches = self.ops.get_branches_at(remote)
        if not branches:
            return None

        branch = branches[0]
        try:
            upstream_branch = self.ops.get_remote_head_branch(REMOTE)
        except FlotillaError as e:
            logger.debug("%s: asking %s for its HEAD: %s", self.name, REMOTE, e)
        else:
            if upstream_branch in branches:
                branch = upstream_branch

        self.ops.set_symbolic_ref("HEAD", branch)
        logger.debug("%s: HEAD now points at %s", self.name, branch)
        return branch

    # -- divergence -----------------------------------------------------------

    def remote_head(self) -> str:
        """Commit upstream's HEAD pointed at when last fetched."""
        return self.ops.resolve_commit(REMOTE_HEAD_REF)

    def get_variance(self) -> Variance:
        """Compare the local branch with ``origin/REMOTE_HEAD``."""
        try:
            self.ops.get_symbolic_ref("HEAD")
        except NotFoundError:
            return Variance.not_on_branch()

        local = self.ops.resolve_commit("HEAD")
        remote = self.remote_head()
        if local == remote:
            return Variance.equal()

        base = self.ops.get_merge_base(local, remote)
        ahead = self.ops.count_commits(local, base)
        behind = self.ops.count_commits(remote, base)

        if base == remote and ahead:
            return Variance.ahead(ahead)
        if base == local and behind:
            return Variance.behind(behind)
        return Variance.diverged(ahead, behind)

    def get_working_changes(self, limit: int = MAX_WORKING_CHANGES) -> list[str]:
        """First few uncommitted changes, unsorted; none for a bare mirror."""
        if self.ops.is_bare():
            return []
        entries = [(xy, path) for xy, path in self.ops.get_status_entries() if xy != "!!"]
        return [describe_change(xy, path) for xy, path in entries[:limit]]


# =============================================================================
# Per-spec operations
# =============================================================================


def _progress_logger(name: str) -> ProgressCallback:
    def log_progress(event: FetchProgress) -> None:
        if isinstance(event, SidebandMessage):
            logger.info("%s: %s", name, event.text)
        else:
            logger.debug("%s: %s", name, event)

    return log_progress


def ensure_mirror(locator: RepoIdentity, store_root: Path) -> MirrorRepository:
    """Open the mirror for ``locator``, creating a bare repository if needed."""
    dest = store_root / locator.local_dir()
    try:
        return MirrorRepository.open(dest)
    except NotFoundError:
        logger.debug("initializing bare mirror at %s", dest)
        return MirrorRepository.init_bare(dest)


def clone_or_fetch(
    spec: RepositorySpec, store_root: Path, on_progress: ProgressCallback | None = None
) -> SyncResult:
    """Create or update the mirror of ``spec``."""
    dest = store_root / spec.local_dir
    created = not dest.exists()
    try:
        repo = ensure_mirror(spec.locator, store_root)
        repo.ensure_remote(spec.locator)
        repo.ensure_fetch_mapping()
        repo.ensure_remote_head_tracking()
        logger.info("fetching %s -> %s", spec.locator, dest)
        repo.fetch(on_progress or _progress_logger(spec.local_dir))
        repo.align_head()
        remote_head = repo.remote_head()
    except FlotillaError as e:
        raise with_context(e, f"fetching {spec.locator} -> {dest}") from e

    return SyncResult(path=dest, name=spec.local_dir, created=created, remote_head=remote_head)


def get_status(spec: RepositorySpec, store_root: Path, update: bool = False) -> RepositoryStatus:
    """Work out the status of one spec, fetching first if asked to."""
    dest = store_root / spec.local_dir
    if not dest.exists():
        return RepositoryStatus(spec=spec, kind=StatusKind.ABSENT)

    repo = MirrorRepository.open(dest)
    added = repo.ensure_remote_head_tracking()
    if update or added:
        try:
            logger.info("fetching %s -> %s", spec.locator, dest)
            repo.fetch(_progress_logger(spec.local_dir))
            repo.align_head()
        except FlotillaError as e:
            raise with_context(e, f"fetching {spec.locator} -> {dest}") from e

    try:
        variance = repo.get_variance()
        changes = repo.get_working_changes()
    except FlotillaError as e:
        raise with_context(e, f"finding status of {dest}") from e

    if changes or variance.kind != VarianceKind.EQUAL:
        return RepositoryStatus(
            spec=spec, kind=StatusKind.CHANGES, changes=changes, variance=variance
        )
    return RepositoryStatus(spec=spec, kind=StatusKind.CLEAN, variance=variance)


def infect(path: Path) -> bool:
    """Teach an existing checkout the REMOTE_HEAD convention; True if changed."""
    repo = MirrorRepository.open(path.absolute())
    return repo.ensure_remote_head_tracking()


# =============================================================================
# Fleet Manager
# =============================================================================


class FleetManager:
    """Run per-repository operations across every spec."""

    def __init__(
        self,
        specs: Sequence[RepositorySpec],
        store_root: Path,
        max_workers: int = 8,
    ):
        self.specs = list(specs)
        self.store_root = store_root
        self.max_workers = max_workers

    def _execute_parallel(
        self,
        operation: Callable[[RepositorySpec], Any],
        specs: Sequence[RepositorySpec] | None = None,
        sequential: bool = False,
    ) -> list:
        """Execute operation on every spec; results keep the order of ``specs``.

        The first failure cancels everything not yet started and is re-raised
        once the tasks already running have finished.
        """
        if specs is None:
            specs = self.specs

        if sequential or len(specs) <= 1:
            return [operation(spec) for spec in specs]

        results: list = [None] * len(specs)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(operation, spec): i for i, spec in enumerate(specs)}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                executor.shutdown(wait=False, cancel_futures=True)
                raise
        return results

    def get_all_status(
        self, update: bool = False, sequential: bool = False
    ) -> list[RepositoryStatus]:
        """Get status of all repositories."""
        return self._execute_parallel(
            lambda spec: get_status(spec, self.store_root, update=update),
            sequential=sequential,
        )

    def sync_all(self, sequential: bool = False) -> list[SyncResult]:
        """Clone missing mirrors and fetch the existing ones."""
        return self._execute_parallel(
            lambda spec: clone_or_fetch(spec, self.store_root),
            sequential=sequential,
        )

    def grep_all(
        self,
        pattern: str,
        globs: Sequence[str] = (),
        emit: Callable[[str], None] | None = None,
        sequential: bool = False,
    ) -> int:
        """Search every synced mirror; returns the number of matching lines."""
        from .grep import LineWriter, compile_pattern, grep_repository

        matcher = compile_pattern(pattern)
        writer = emit or LineWriter()
        counts = self._execute_parallel(
            lambda spec: grep_repository(spec, self.store_root, matcher, globs, writer),
            sequential=sequential,
        )
        return sum(counts)

    def get_summary(self, statuses: Sequence[RepositoryStatus]) -> FleetSummary:
        """Generate summary from statuses."""
        return FleetSummary.from_statuses(statuses)
