"""List an organization's repositories through the GitHub REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from .cache import Cache
from .errors import AuthError, NetworkError

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
PER_PAGE = 100


@dataclass(frozen=True)
class RepoInfo:
    """The fields of a repository record the fleet cares about."""

    name: str
    ssh_url: str
    archived: bool = False

    @classmethod
    def from_payload(cls, payload: dict) -> RepoInfo:
        return cls(
            name=payload["name"],
            ssh_url=payload["ssh_url"],
            archived=bool(payload.get("archived", False)),
        )


def _with_per_page(url: str) -> str:
    parts = urlsplit(url)
    query = f"{parts.query}&per_page={PER_PAGE}" if parts.query else f"per_page={PER_PAGE}"
    return urlunsplit(parts._replace(query=query))


def all_pages(url: str, token: str, client: httpx.Client | None = None) -> list[Any]:
    """GET ``url`` and every page its ``Link: rel="next"`` headers lead to."""
    owns_client = client is None
    if client is None:
        client = httpx.Client(
            timeout=30.0, headers={"Accept": "application/vnd.github+json"}
        )

    pages: list[Any] = []
    next_url: str | None = _with_per_page(url)
    try:
        while next_url:
            response = client.get(next_url, auth=(token, ""))
            if response.status_code in (401, 403):
                raise AuthError(f"request for {response.url} was refused: {response.status_code}")
            if not response.is_success:
                raise NetworkError(f"request for {response.url} failed: {response.status_code}")
            try:
                pages.append(response.json())
            except ValueError as e:
                raise NetworkError(f"request for {response.url} returned invalid JSON") from e
            next_url = response.links.get("next", {}).get("url")
            logger.debug("fetched page %d of %s", len(pages), url)
    except httpx.HTTPError as e:
        raise NetworkError(f"requesting {url}: {e}") from e
    finally:
        if owns_client:
            client.close()
    return pages


def flatten(pages: list[Any]) -> list[dict]:
    repos: list[dict] = []
    for page in pages:
        if not isinstance(page, list):
            raise NetworkError("page wasn't a list")
        repos.extend(page)
    return repos


def list_org_repositories(
    org: str, token: str, client: httpx.Client | None = None
) -> list[dict]:
    """Every repository record of ``org``, across all pages."""
    return flatten(all_pages(f"{API_URL}/orgs/{org}/repos", token, client))


def write_org_snapshot(cache: Cache, org: str, repos: list[dict]) -> Path:
    """Store the raw repository records under the cache's metadata directory."""
    return cache.write_json(cache.meta_github_org(org) / "repos.json", repos)


def spec_lines(repos: list[dict], include_archived: bool = False) -> list[str]:
    """Spec file lines (SSH clone URLs) for the given repository records."""
    infos = [RepoInfo.from_payload(payload) for payload in repos]
    return [info.ssh_url for info in infos if include_archived or not info.archived]
