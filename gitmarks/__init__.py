"""gitmarks: a Floccus-compatible XBEL bookmark collection kept in a git repository."""

from pathlib import Path


def _read_version() -> str:
    p = Path(__file__).resolve().parents[1] / "VERSION"
    try:
        return p.read_text(encoding="utf-8").strip()
    except OSError:
        # Installed without the source tree next to it.
        return "0.1.0"


__version__ = _read_version()
