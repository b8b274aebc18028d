from pathlib import Path

import pytest
from gitutil import Upstream

from git_flotilla import RepoIdentity, RepositorySpec


@pytest.fixture(autouse=True)
def git_env(tmp_path_factory, monkeypatch):
    """Isolate git from the user's configuration."""
    home = tmp_path_factory.mktemp("home")
    gitconfig = home / ".gitconfig"
    # A local default branch that differs from the upstreams' "main".
    gitconfig.write_text(
        "[user]\n"
        "\tname = Test\n"
        "\temail = test@test.com\n"
        "[init]\n"
        "\tdefaultBranch = master\n"
        "[commit]\n"
        "\tgpgsign = false\n"
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in (
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_SSH_COMMAND",
        "GIT_FLOTILLA_SPECS",
        "GIT_FLOTILLA_ROOT",
        "GIT_FLOTILLA_CACHE",
        "XDG_CACHE_HOME",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def upstream(tmp_path: Path) -> Upstream:
    """An upstream repository with one commit on main."""
    remote = Upstream(tmp_path)
    remote.push({"README.md": "# upstream\n"}, "Initial commit")
    return remote


@pytest.fixture
def store(tmp_path: Path) -> Path:
    """The mirror store root."""
    root = tmp_path / "store"
    root.mkdir()
    return root


@pytest.fixture
def spec(upstream: Upstream) -> RepositorySpec:
    return RepositorySpec(locator=RepoIdentity.parse(upstream.locator), tags=frozenset({"test"}))
