"""Tests for comparing a checkout with upstream's HEAD."""

import pytest
from gitutil import commit_file, git

from git_flotilla import MirrorRepository, Variance, VarianceKind, clone_or_fetch
from git_flotilla.core import describe_change


@pytest.fixture
def checkout(upstream, store):
    """A regular checkout living in the store, tracking upstream's HEAD."""
    path = upstream.clone_into(store / "upstream")
    repo = MirrorRepository.open(path)
    repo.ensure_remote_head_tracking()
    repo.fetch()
    return repo


class TestVariance:
    def test_equal(self, checkout):
        assert checkout.get_variance() == Variance.equal()

    def test_ahead(self, checkout):
        commit_file(checkout.path, "local.txt", "mine\n", "Local work")
        variance = checkout.get_variance()
        assert variance == Variance.ahead(1)
        assert str(variance) == "Ahead(1)"

    def test_behind(self, checkout, upstream):
        upstream.push({"a.txt": "a\n"}, "Upstream one")
        upstream.push({"b.txt": "b\n"}, "Upstream two")
        checkout.fetch()
        variance = checkout.get_variance()
        assert variance == Variance.behind(2)
        assert str(variance) == "Behind(2)"

    def test_behind_needs_a_fetch(self, checkout, upstream):
        upstream.push({"a.txt": "a\n"}, "Upstream one")
        assert checkout.get_variance() == Variance.equal()

    def test_diverged(self, checkout, upstream):
        commit_file(checkout.path, "local1.txt", "1\n", "Local one")
        commit_file(checkout.path, "local2.txt", "2\n", "Local two")
        upstream.push({"remote.txt": "r\n"}, "Upstream one")
        checkout.fetch()

        variance = checkout.get_variance()
        assert variance.kind == VarianceKind.DIVERGED
        assert (variance.local, variance.remote) == (2, 1)
        assert str(variance) == "Diverged { local: 2, remote: 1 }"

    def test_detached_head(self, checkout):
        git(checkout.path, "checkout", "--detach")
        variance = checkout.get_variance()
        assert variance == Variance.not_on_branch()
        assert str(variance) == "NotOnBranch"

    def test_other_branch_compared_with_remote_head(self, checkout):
        git(checkout.path, "checkout", "-b", "topic")
        commit_file(checkout.path, "topic.txt", "t\n", "Topic work")
        assert checkout.get_variance() == Variance.ahead(1)

    def test_bare_mirror_is_equal_after_sync(self, spec, store):
        clone_or_fetch(spec, store)
        mirror = MirrorRepository.open(store / "upstream")
        assert mirror.get_variance() == Variance.equal()


class TestWorkingChanges:
    def test_clean(self, checkout):
        assert checkout.get_working_changes() == []

    def test_kinds_of_change(self, checkout):
        (checkout.path / "README.md").write_text("# changed\n")
        (checkout.path / "untracked.txt").write_text("new\n")
        (checkout.path / "staged.txt").write_text("staged\n")
        git(checkout.path, "add", "staged.txt")

        changes = checkout.get_working_changes()
        assert sorted(changes) == ["add staged.txt", "mod README.md", "new untracked.txt"]

    def test_deleted(self, checkout):
        (checkout.path / "README.md").unlink()
        assert checkout.get_working_changes() == ["del README.md"]

    def test_untracked_files_in_directories(self, checkout):
        (checkout.path / "docs").mkdir()
        (checkout.path / "docs" / "guide.md").write_text("guide\n")
        assert checkout.get_working_changes() == ["new docs/guide.md"]

    def test_ignored_paths_are_not_reported(self, checkout):
        exclude = checkout.path / ".git" / "info" / "exclude"
        exclude.parent.mkdir(exist_ok=True)
        exclude.write_text("*.log\nbuild/\n")
        (checkout.path / "debug.log").write_text("noise\n")
        (checkout.path / "build").mkdir()
        (checkout.path / "build" / "out.o").write_text("obj\n")

        assert checkout.get_working_changes() == []

        (checkout.path / "notes.txt").write_text("kept\n")
        assert checkout.get_working_changes() == ["new notes.txt"]

    def test_capped_at_three(self, checkout):
        for name in ("a.txt", "b.txt", "c.txt", "d.txt", "e.txt"):
            (checkout.path / name).write_text(name)

        changes = checkout.get_working_changes()
        assert len(changes) == 3
        assert set(changes) <= {f"new {n}" for n in ("a.txt", "b.txt", "c.txt", "d.txt", "e.txt")}

    def test_bare_mirror_has_none(self, spec, store):
        clone_or_fetch(spec, store)
        assert MirrorRepository.open(store / "upstream").get_working_changes() == []


@pytest.mark.parametrize(
    ("xy", "expected"),
    [
        ("A ", "add f"),
        ("??", "new f"),
        ("M ", "mod f"),
        (" M", "mod f"),
        ("D ", "del f"),
        (" D", "del f"),
        ("R ", "mov f"),
        ("UU", "CON f"),
        ("AA", "CON f"),
        ("MM", "?MM? f"),
        ("AM", "?AM? f"),
    ],
)
def test_describe_change(xy, expected):
    assert describe_change(xy, "f") == expected
