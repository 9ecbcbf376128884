from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler

LOG_ENV = "GITMARKS_LOG"


@dataclass(frozen=True)
class LogConfig:
    level: str = "WARNING"
    no_color: bool = False

    @staticmethod
    def from_env(default: str = "WARNING") -> "LogConfig":
        return LogConfig(level=os.getenv(LOG_ENV) or default, no_color=os.getenv("NO_COLOR") is not None)


def setup_logging(cfg: LogConfig) -> None:
    level = getattr(logging, cfg.level.upper(), logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    # stdout carries command output; diagnostics always go to stderr.
    if not cfg.no_color and sys.stderr.isatty():
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=False,
            show_level=True,
            show_path=False,
        )
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler(sys.stderr)
        fmt = "%(levelname)s %(name)s: %(message)s"

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
