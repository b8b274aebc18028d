"""Repository locators: parsing, local directory names and provider links."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import SplitResult, urlsplit

from .errors import EmptyLocalDirError, InvalidLocatorError

# Schemes that are only valid URLs when they carry a host.
_HOST_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp", "ssh", "git"})

_URL_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")

GITHUB_SSH = re.compile(r"git@[^:/]*github\.com:/?([^/]+)/([^/]+)")


class LocatorKind(StrEnum):
    """How a locator string was understood."""

    REAL = "real"  # a proper URL: https://, ssh://, file://, ...
    SCP = "scp"  # user@host:path, as understood by git(1)


@dataclass(frozen=True)
class GithubOrgRepo:
    """A repository hosted on github.com."""

    org: str
    repo: str

    def browse_url(self, branch: str | None, path: str, line: int | None = None) -> str:
        """Build the web URL showing ``path`` (and optionally ``line``) on ``branch``."""
        anchor = f"#L{line}" if line is not None else ""
        return f"https://github.com/{self.org}/{self.repo}/blob/{branch or 'HEAD'}/{path}{anchor}"


@dataclass(frozen=True)
class RepoIdentity:
    """A parsed repository locator.

    The locator is kept verbatim (it is what gets handed to git as the remote
    URL); everything else is derived from it on demand.
    """

    raw: str
    kind: LocatorKind

    @classmethod
    def parse(cls, locator: str) -> RepoIdentity:
        """Parse a locator string.

        Anything that parses as a URL is a URL. Failing that, any string
        containing a colon is taken as an SCP-style remote. Everything else
        is rejected.
        """
        if not locator:
            raise InvalidLocatorError("empty repository locator")
        if _parse_url(locator) is not None:
            return cls(locator, LocatorKind.REAL)
        if ":" in locator:
            return cls(locator, LocatorKind.SCP)
        raise InvalidLocatorError(f"not a URL or SCP-style remote: {locator!r}")

    def __str__(self) -> str:
        return self.raw

    @property
    def url(self) -> SplitResult | None:
        """The parsed URL, for ``REAL`` locators."""
        if self.kind != LocatorKind.REAL:
            return None
        return _parse_url(self.raw)

    def local_dir(self) -> str:
        """Directory name the mirror of this repository lives under."""
        if self.kind == LocatorKind.REAL:
            segments = _path_segments(self.url)
            if segments is None:
                raise EmptyLocalDirError(f"no path in {self.raw!r}")
        else:
            segments = _strip_to_colon(self.raw).split("/")

        segments = [s for s in segments if s]
        if not segments:
            raise EmptyLocalDirError(f"empty path in {self.raw!r}")

        name = _strip_git(segments[-1])
        if not name:
            raise EmptyLocalDirError(f"empty directory name for {self.raw!r}")
        return name

    def provider(self) -> GithubOrgRepo | None:
        """Hosting provider details, when the locator points at github.com."""
        if self.kind == LocatorKind.REAL:
            url = self.url
            host = (url.hostname or "") if url is not None else ""
            if host != "github.com":
                return None
            segments = _path_segments(url)
            if segments is None or len(segments) < 2:
                return None
            org, repo = segments[0], _strip_git(segments[1])
        else:
            match = GITHUB_SSH.search(self.raw)
            if match is None:
                return None
            org, repo = match.group(1), _strip_git(match.group(2))

        if not org or not repo:
            return None
        return GithubOrgRepo(org=org, repo=repo)


def _parse_url(value: str) -> SplitResult | None:
    if not _URL_SCHEME.match(value):
        return None
    try:
        url = urlsplit(value)
    except ValueError:
        return None
    if url.scheme.lower() in _HOST_SCHEMES and not url.hostname:
        return None
    return url


def _path_segments(url: SplitResult | None) -> list[str] | None:
    """Path segments of a hierarchical URL; None for ``scheme:opaque`` URLs."""
    if url is None or not url.path.startswith("/"):
        return None
    return url.path[1:].split("/")


def _strip_to_colon(scp: str) -> str:
    """Drop the host part of an SCP-style remote.

    git(1) treats everything up to the *first* colon as the host, so
    ``git:foo@example.com:1337:foo`` has host ``git``.
    """
    _, sep, rest = scp.partition(":")
    return rest if sep else scp


def _strip_git(name: str) -> str:
    return name[: -len(".git")] if name.endswith(".git") else name
