from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

CONFIG_ENV = "GITMARKS_CONFIG"
APP_NAME = "gitmarks"


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_opt(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    return default if v is None or v == "" else v


def _xdg_dir(env: str, fallback: str) -> Path:
    base = os.getenv(env)
    return Path(base) if base else Path.home() / fallback


def default_config_path() -> Path:
    explicit = os.getenv(CONFIG_ENV)
    if explicit:
        return Path(explicit)
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / APP_NAME / "config.yaml"


@dataclass
class Settings:
    # Remote
    repository_url: Optional[str] = None
    repository_token: Optional[str] = None
    repository_ssh_key: Optional[str] = None
    remote: str = "origin"
    branch: str = "main"

    # Working copy
    repository_name: str = "bookmarks"
    repository_folder: Optional[str] = None
    bookmarks_file: str = "bookmarks.xbel"

    # Sync behaviour
    disable_push: bool = True
    git_timeout_s: int = 60

    # Logging / UX
    log_level: str = "WARNING"
    no_color: bool = False

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.repository_url = _env_opt("GITMARKS_REPOSITORY_URL", s.repository_url)
        s.repository_token = _env_opt("GITMARKS_REPOSITORY_TOKEN", s.repository_token)
        s.repository_ssh_key = _env_opt("GITMARKS_REPOSITORY_SSH_KEY", s.repository_ssh_key)
        s.remote = _env_opt("GITMARKS_REMOTE", s.remote) or s.remote
        s.branch = _env_opt("GITMARKS_BRANCH", s.branch) or s.branch

        s.repository_name = _env_opt("GITMARKS_REPOSITORY_NAME", s.repository_name) or s.repository_name
        s.repository_folder = _env_opt("GITMARKS_REPOSITORY_FOLDER", s.repository_folder)
        s.bookmarks_file = _env_opt("GITMARKS_BOOKMARKS_FILE", s.bookmarks_file) or s.bookmarks_file

        s.disable_push = _env_bool("GITMARKS_DISABLE_PUSH", s.disable_push)
        s.git_timeout_s = _env_int("GITMARKS_GIT_TIMEOUT_S", s.git_timeout_s)

        # GITMARKS_LOG is the documented knob; GITMARKS_LOG_LEVEL is accepted for symmetry.
        s.log_level = _env_opt("GITMARKS_LOG", None) or _env_opt("GITMARKS_LOG_LEVEL", s.log_level) or s.log_level
        s.no_color = _env_bool("GITMARKS_NO_COLOR", s.no_color) or os.getenv("NO_COLOR") is not None
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"config file {path} is not valid YAML: {e}") from e
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping of settings")
        s = Settings.from_env()
        known = {f.name for f in fields(Settings)}
        for k, v in data.items():
            if k in known:
                setattr(s, k, v)
        try:
            s.git_timeout_s = int(s.git_timeout_s)
        except (TypeError, ValueError):
            raise ConfigError(
                f"git_timeout_s in {path} must be a whole number of seconds, not {s.git_timeout_s!r}"
            ) from None
        return s

    def working_copy(self) -> Path:
        if self.repository_folder:
            return Path(self.repository_folder).expanduser()
        return _xdg_dir("XDG_DATA_HOME", ".local/share") / APP_NAME / self.repository_name


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"config file {path} does not exist")
        return Settings.from_file(path)
    path = default_config_path()
    if path.exists():
        return Settings.from_file(path)
    return Settings.from_env()


def write_config(path: Path, settings: Settings, *, force: bool = False) -> None:
    """Write the YAML config used by later invocations (the `init` command)."""
    if path.exists() and not force:
        raise ConfigError(
            f"config file {path} already exists",
            hint="Edit it directly, or re-run `gitmarks init --force` to overwrite it.",
        )
    if not settings.repository_url:
        raise ConfigError(
            "a git repository url is required",
            hint="Pass it with `gitmarks -g <url> init`.",
        )
    keep = (
        "repository_url",
        "repository_name",
        "repository_folder",
        "repository_token",
        "repository_ssh_key",
        "remote",
        "branch",
        "disable_push",
    )
    data = {k: v for k, v in asdict(settings).items() if k in keep and v is not None}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    if settings.repository_token:
        # token in clear text: keep the file private
        path.chmod(0o600)
