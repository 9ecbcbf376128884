import shutil
import subprocess
import sys
from pathlib import Path

import pytest

# Allow `import gitmarks` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Tests must never read the user's config or write into their data dirs."""
    for name in (
        "GITMARKS_CONFIG",
        "GITMARKS_LOG",
        "GITMARKS_LOG_LEVEL",
        "GITMARKS_REPOSITORY_URL",
        "GITMARKS_REPOSITORY_TOKEN",
        "GITMARKS_REPOSITORY_SSH_KEY",
        "GITMARKS_REPOSITORY_NAME",
        "GITMARKS_REPOSITORY_FOLDER",
        "GITMARKS_DISABLE_PUSH",
        "GITMARKS_BRANCH",
        "GITMARKS_REMOTE",
        "NO_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "gitmarks tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tests@example.invalid")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "gitmarks tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tests@example.invalid")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))


@pytest.fixture
def sample_xbel() -> bytes:
    return (FIXTURES / "bookmarks.xbel").read_bytes()


def _git(*args: str, cwd: Path) -> str:
    r = subprocess.run(["git", *args], cwd=str(cwd), check=True, capture_output=True, text=True)
    return r.stdout.strip()


@pytest.fixture
def git():
    """Run a git command in a directory; returns stripped stdout."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return _git


@pytest.fixture
def remote_repo(tmp_path, git, sample_xbel) -> Path:
    """Bare repository whose `main` branch holds the sample bookmarks.xbel."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git("init", "--quiet", "--bare", cwd=remote)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=remote)

    seed = tmp_path / "seed"
    seed.mkdir()
    git("init", "--quiet", cwd=seed)
    git("checkout", "--quiet", "-b", "main", cwd=seed)
    (seed / "bookmarks.xbel").write_bytes(sample_xbel)
    git("add", "bookmarks.xbel", cwd=seed)
    git("commit", "--quiet", "-m", "seed", cwd=seed)
    git("remote", "add", "origin", str(remote), cwd=seed)
    git("push", "--quiet", "origin", "main", cwd=seed)
    return remote
