from pathlib import Path
from typing import List, Optional

import pytest

from gitmarks.edit import add_bookmark
from gitmarks.errors import ArgumentError, NetworkError, PushRejected, SyncConflict
from gitmarks.sync import SyncManager, SyncState, SyncStatus


class FakeGit:
    """Stands in for GitRepo; history is a list of commit names, remote is another list."""

    def __init__(self, path: Path, *, local: Optional[List[str]] = None, remote: Optional[List[str]] = None):
        self.path = path
        self.local = list(local or [])
        self.remote = list(remote or [])
        self.fetched: Optional[List[str]] = None
        self.cloned = path.exists()
        self.dirty: List[str] = []
        self.fetch_error: Optional[Exception] = None
        self.reject_push = False
        self.calls: List[str] = []

    def exists(self) -> bool:
        return self.cloned

    def clone(self, url: str) -> None:
        self.calls.append(f"clone {url}")
        self.path.mkdir(parents=True, exist_ok=True)
        self.cloned = True
        self.local = list(self.remote)
        self.fetched = list(self.remote)

    def fetch(self, remote: str, branch: str) -> bool:
        self.calls.append("fetch")
        if self.fetch_error is not None:
            raise self.fetch_error
        if not self.remote:
            return False
        self.fetched = list(self.remote)
        return True

    def head(self) -> Optional[str]:
        return self.local[-1] if self.local else None

    def rev_parse(self, ref: str) -> Optional[str]:
        return self.fetched[-1] if self.fetched else None

    def dirty_paths(self) -> List[str]:
        return list(self.dirty)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        for history in (self.local, self.fetched or []):
            if descendant in history:
                return ancestor in history[: history.index(descendant) + 1]
        return False

    def count_commits(self, base: str, tip: str) -> int:
        return self.local.index(tip) - self.local.index(base)

    def fast_forward(self, ref: str) -> None:
        self.calls.append("fast_forward")
        self.local = list(self.fetched or [])

    def add(self, relpath: str) -> None:
        self.calls.append(f"add {relpath}")

    def commit(self, message: str) -> str:
        self.calls.append(f"commit {message}")
        sha = f"c{len(self.local) + 1}"
        self.local.append(sha)
        return sha

    def push(self, remote: str, branch: str) -> None:
        self.calls.append("push")
        if self.reject_push:
            raise PushRejected("rejected")
        self.remote = list(self.local)


def _manager(tmp_path: Path, git: FakeGit, *, push_enabled: bool = False, url: Optional[str] = "https://git.example/m.git"):
    state = SyncState(working_copy=git.path, remote_url=url)
    return SyncManager(state, git, push_enabled=push_enabled)


def test_missing_working_copy_is_cloned(tmp_path: Path):
    git = FakeGit(tmp_path / "wc", remote=["r1"])
    sync = _manager(tmp_path, git)
    assert sync.ensure_up_to_date(for_write=True) is True
    assert git.calls == ["clone https://git.example/m.git"]
    assert sync.state.last_synced == "r1"


def test_clone_without_url_is_an_argument_error(tmp_path: Path):
    git = FakeGit(tmp_path / "wc")
    with pytest.raises(ArgumentError):
        _manager(tmp_path, git, url=None).ensure_up_to_date(for_write=False)


def test_behind_remote_fast_forwards(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1", "c2"])
    sync = _manager(tmp_path, git)
    sync.ensure_up_to_date(for_write=True)
    assert "fast_forward" in git.calls
    assert git.local == ["c1", "c2"]
    assert sync.state.status is SyncStatus.CLEAN
    assert sync.state.last_synced == "c2"


def test_ahead_of_remote_is_fine(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1", "c2"], remote=["c1"])
    _manager(tmp_path, git).ensure_up_to_date(for_write=True)
    assert "fast_forward" not in git.calls
    assert git.local == ["c1", "c2"]


def test_diverged_history_is_a_conflict(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1", "mine"], remote=["c1", "theirs"])
    with pytest.raises(SyncConflict) as ei:
        _manager(tmp_path, git).ensure_up_to_date(for_write=True)
    assert "pull --rebase" in ei.value.hint


def test_dirty_working_copy_is_a_conflict(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1"])
    git.dirty = ["bookmarks.xbel"]
    with pytest.raises(SyncConflict):
        _manager(tmp_path, git).ensure_up_to_date(for_write=True)


def test_network_failure_aborts_writes_but_not_reads(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1"])
    git.fetch_error = NetworkError("unreachable")
    sync = _manager(tmp_path, git)
    with pytest.raises(NetworkError):
        sync.ensure_up_to_date(for_write=True)
    assert sync.ensure_up_to_date(for_write=False) is False


def test_remote_without_branch_is_treated_as_up_to_date(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc")
    assert _manager(tmp_path, git).ensure_up_to_date(for_write=True) is True


def test_save_commit_and_push(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1"])
    sync = _manager(tmp_path, git, push_enabled=True)
    doc = sync.load_document()
    add_bookmark(doc.tree, "https://a.example/", "A")
    assert sync.save_and_commit(doc, "add bookmark A") is True
    assert sync.state.status is SyncStatus.COMMITTED
    assert sync.bookmarks_path.exists()
    assert sync.push() is True
    assert sync.state.status is SyncStatus.PUSHED
    assert git.calls == ["add bookmarks.xbel", "commit add bookmark A", "push"]
    assert git.remote == ["c1", "c2"]


def test_unchanged_document_is_not_committed(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc")
    sync = _manager(tmp_path, git)
    doc = sync.load_document()
    add_bookmark(doc.tree, "https://a.example/", "A")
    sync.save_and_commit(doc, "first")
    assert sync.save_and_commit(sync.load_document(), "again") is False
    assert [c for c in git.calls if c.startswith("commit")] == ["commit first"]


def test_push_disabled_keeps_commit_local(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1"])
    sync = _manager(tmp_path, git, push_enabled=False)
    doc = sync.load_document()
    add_bookmark(doc.tree, "https://a.example/", "A")
    sync.save_and_commit(doc, "add")
    assert sync.push() is False
    assert "push" not in git.calls
    assert git.remote == ["c1"]


def test_rejected_push_keeps_local_commit(tmp_path: Path):
    (tmp_path / "wc").mkdir()
    git = FakeGit(tmp_path / "wc", local=["c1"], remote=["c1"])
    git.reject_push = True
    sync = _manager(tmp_path, git, push_enabled=True)
    doc = sync.load_document()
    add_bookmark(doc.tree, "https://a.example/", "A")
    sync.save_and_commit(doc, "add")
    with pytest.raises(PushRejected):
        sync.push()
    assert git.local == ["c1", "c2"]
    assert sync.state.status is SyncStatus.COMMITTED
