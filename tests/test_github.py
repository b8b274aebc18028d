"""Tests for listing organization repositories through the GitHub API."""

import json

import httpx
import pytest

from git_flotilla import AuthError, Cache, NetworkError, fs_safe_component
from git_flotilla.cache import resolve_cache_dir
from git_flotilla.github import (
    list_org_repositories,
    spec_lines,
    write_org_snapshot,
)

PAGE_1 = [
    {"name": "one", "ssh_url": "git@github.com:Org/one.git", "archived": False},
    {"name": "old", "ssh_url": "git@github.com:Org/old.git", "archived": True},
]
PAGE_2 = [
    {"name": "two", "ssh_url": "git@github.com:Org/two.git"},
]


def paginated_handler(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=PAGE_2)
        return httpx.Response(
            200,
            json=PAGE_1,
            headers={
                "Link": '<https://api.github.com/organizations/1/repos?per_page=100&page=2>; rel="next"'
            },
        )

    return handler


def test_follows_pagination():
    requests = []
    client = httpx.Client(transport=httpx.MockTransport(paginated_handler(requests)))

    repos = list_org_repositories("Org", "secret", client)

    assert [r["name"] for r in repos] == ["one", "old", "two"]
    assert len(requests) == 2
    assert requests[0].url.path == "/orgs/Org/repos"
    assert requests[0].url.params["per_page"] == "100"
    assert requests[0].headers["Authorization"].startswith("Basic ")
    assert not client.is_closed


@pytest.mark.parametrize("status_code", [401, 403])
def test_refused(status_code):
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(status_code)))
    with pytest.raises(AuthError):
        list_org_repositories("Org", "bad", client)


def test_server_error():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(502)))
    with pytest.raises(NetworkError, match="502"):
        list_org_repositories("Org", "secret", client)


def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError, match="connection refused"):
        list_org_repositories("Org", "secret", client)


def test_page_not_a_list():
    client = httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"message": "hi"}))
    )
    with pytest.raises(NetworkError, match="wasn't a list"):
        list_org_repositories("Org", "secret", client)


def test_invalid_json():
    client = httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"<html>"))
    )
    with pytest.raises(NetworkError, match="invalid JSON"):
        list_org_repositories("Org", "secret", client)


def test_spec_lines():
    repos = PAGE_1 + PAGE_2
    assert spec_lines(repos) == ["git@github.com:Org/one.git", "git@github.com:Org/two.git"]
    assert spec_lines(repos, include_archived=True) == [
        "git@github.com:Org/one.git",
        "git@github.com:Org/old.git",
        "git@github.com:Org/two.git",
    ]


def test_write_org_snapshot(tmp_path):
    cache = Cache(tmp_path / "cache")
    path = write_org_snapshot(cache, "My.Org", PAGE_1)

    assert path == tmp_path / "cache" / "meta" / "github" / "my_org" / "repos.json"
    assert json.loads(path.read_text()) == PAGE_1
    assert [p.name for p in path.parent.iterdir()] == ["repos.json"]

    write_org_snapshot(cache, "My.Org", PAGE_2)
    assert json.loads(path.read_text()) == PAGE_2


@pytest.mark.parametrize(
    ("name", "expected"),
    [("FauxFaux", "fauxfaux"), ("My.Org", "my_org"), ("a/b c", "a_b_c"), ("x-y_z", "x-y_z")],
)
def test_fs_safe_component(name, expected):
    assert fs_safe_component(name) == expected


class TestResolveCacheDir:
    def test_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GIT_FLOTILLA_CACHE", str(tmp_path / "c"))
        assert resolve_cache_dir() == tmp_path / "c"

    def test_xdg(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert resolve_cache_dir() == tmp_path / "git-flotilla"

    def test_home(self, git_env):
        assert resolve_cache_dir() == git_env / ".cache" / "git-flotilla"
