from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ArgumentError, SyncConflict, SyncError
from .log import get_logger
from .xbel import Document, read_document, serialize, write_document

log = get_logger(__name__)


class SyncStatus(Enum):
    CLEAN = "clean"
    STALE = "stale"
    MODIFIED = "modified"
    COMMITTED = "committed"
    PUSHED = "pushed"


@dataclass
class SyncState:
    working_copy: Path
    branch: str = "main"
    remote: str = "origin"
    remote_url: Optional[str] = None
    last_synced: Optional[str] = None
    status: SyncStatus = SyncStatus.CLEAN

    @property
    def remote_ref(self) -> str:
        return f"refs/remotes/{self.remote}/{self.branch}"


class SyncManager:
    """fetch -> load -> (mutate) -> serialize -> commit -> push, for one working copy.

    `git` is the collaborator running git commands (GitRepo, or a fake in tests). It must
    provide: exists, clone, fetch, head, rev_parse, dirty_paths, is_ancestor,
    count_commits, fast_forward, add, commit, push.
    """

    def __init__(
        self,
        state: SyncState,
        git,
        *,
        bookmarks_file: str = "bookmarks.xbel",
        push_enabled: bool = False,
    ):
        self.state = state
        self.git = git
        self.bookmarks_file = bookmarks_file
        self.push_enabled = push_enabled

    @property
    def bookmarks_path(self) -> Path:
        return self.state.working_copy / self.bookmarks_file

    def ensure_up_to_date(self, *, for_write: bool) -> bool:
        """Bring the working copy level with the remote.

        Write commands need this to succeed before they touch the tree. Read commands
        fall back to the last local copy with a warning; the return value says whether
        the copy is fresh.
        """
        if not self.git.exists():
            self._clone()
            return True
        try:
            self._fetch_and_fast_forward()
        except SyncError as e:
            if for_write:
                raise
            log.warning("Could not sync with %s (%s); showing the last local copy.", self.state.remote, e)
            return False
        return True

    def load_document(self) -> Document:
        return read_document(self.bookmarks_path)

    def save_and_commit(self, document: Document, message: str) -> bool:
        """Write the document and commit it; False when the file content did not change."""
        path = self.bookmarks_path
        if path.exists() and path.read_bytes() == serialize(document):
            log.info("Nothing changed in %s; skipping commit.", path.name)
            return False
        write_document(path, document)
        self.state.status = SyncStatus.MODIFIED
        self.git.add(self.bookmarks_file)
        sha = self.git.commit(message)
        self.state.status = SyncStatus.COMMITTED
        log.info("Committed %s: %s", (sha or "")[:10], message)
        return True

    def push(self) -> bool:
        if not self.push_enabled:
            log.info("Push disabled; the commit stays in %s until a later push.", self.state.working_copy)
            return False
        self.git.push(self.state.remote, self.state.branch)
        self.state.status = SyncStatus.PUSHED
        log.info("Pushed to %s/%s", self.state.remote, self.state.branch)
        return True

    # internals

    def _clone(self) -> None:
        if not self.state.remote_url:
            raise ArgumentError(
                f"no working copy at {self.state.working_copy} and no git repository url to clone from",
                hint="Pass `-g <url>` or run `gitmarks -g <url> init` first.",
            )
        self.git.clone(self.state.remote_url)
        self.state.last_synced = self.git.rev_parse(self.state.remote_ref)
        self.state.status = SyncStatus.CLEAN

    def _fetch_and_fast_forward(self) -> None:
        st = self.state
        dirty = self.git.dirty_paths()
        if dirty:
            raise SyncConflict(
                f"the working copy has uncommitted changes ({', '.join(dirty)}) that an update would discard",
                hint=(
                    f"Inspect them with `git -C {st.working_copy} diff`; commit them or drop them with "
                    f"`git -C {st.working_copy} checkout -- {' '.join(dirty)}`."
                ),
            )

        st.last_synced = self.git.rev_parse(st.remote_ref)
        if not self.git.fetch(st.remote, st.branch):
            log.info("Remote %s has no branch %s yet.", st.remote, st.branch)
            st.status = SyncStatus.CLEAN
            return

        remote_head = self.git.rev_parse(st.remote_ref)
        local_head = self.git.head()
        if remote_head is None or local_head == remote_head:
            log.debug("Working copy is up to date (%s).", (local_head or "empty")[:10])
        elif local_head is None or self.git.is_ancestor(local_head, remote_head):
            st.status = SyncStatus.STALE
            log.info("Remote advanced; fast-forwarding to %s.", remote_head[:10])
            self.git.fast_forward(st.remote_ref)
        elif self.git.is_ancestor(remote_head, local_head):
            ahead = self.git.count_commits(remote_head, local_head)
            log.info("%d local commit(s) not pushed yet.", ahead)
        else:
            raise SyncConflict(
                f"local branch and {st.remote}/{st.branch} have diverged",
                hint=(
                    "Another client changed the bookmarks while a local commit was not pushed. "
                    f"Reconcile with `git -C {st.working_copy} pull --rebase {st.remote} {st.branch}` "
                    f"(fix {self.bookmarks_file} by hand if it conflicts), then re-run the command."
                ),
            )
        st.last_synced = remote_head
        st.status = SyncStatus.CLEAN
