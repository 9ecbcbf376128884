from __future__ import annotations

from typing import Optional

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_ARGUMENT = 2
EXIT_NOT_FOUND = 3
EXIT_SYNC = 4
EXIT_FORMAT = 5
EXIT_IO = 6


class GitmarksError(Exception):
    """Base class for every failure reported to the user.

    `hint` is the next step the user should take; the CLI prints it under the message.
    """

    exit_code = EXIT_UNEXPECTED
    default_hint: Optional[str] = None

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint if hint is not None else self.default_hint


class ArgumentError(GitmarksError):
    exit_code = EXIT_ARGUMENT
    default_hint = "Run `gitmarks --help` for usage."


class ConfigError(GitmarksError):
    exit_code = EXIT_ARGUMENT
    default_hint = "Fix the config file or run `gitmarks init`."


class ParseError(GitmarksError):
    exit_code = EXIT_ARGUMENT


class TreeError(GitmarksError):
    exit_code = EXIT_ARGUMENT
    default_hint = "Run `gitmarks print` to list ids."


class NotFoundError(TreeError):
    exit_code = EXIT_NOT_FOUND

    def __init__(self, node_id: int, *, hint: Optional[str] = None):
        super().__init__(f"no folder or bookmark with id {node_id}", hint=hint)
        self.node_id = node_id


class NotAFolderError(TreeError):
    def __init__(self, node_id: int):
        super().__init__(f"item {node_id} is a bookmark, not a folder")
        self.node_id = node_id


class InvalidTargetError(TreeError):
    pass


class CannotRemoveRootError(TreeError):
    default_hint = "Remove the folders under the root one by one instead."


class DuplicateIdError(TreeError):
    pass


class FormatError(GitmarksError):
    exit_code = EXIT_FORMAT
    default_hint = "Check the XBEL file in the working copy (or its git history) and repair it."


class SchemaError(FormatError):
    pass


class SyncError(GitmarksError):
    exit_code = EXIT_SYNC


class NetworkError(SyncError):
    default_hint = "Check the remote URL, your credentials and network access, then retry."


class SyncTimeout(NetworkError):
    default_hint = "The remote did not answer in time; retry or raise git_timeout_s."


class SyncConflict(SyncError):
    pass


class PushRejected(SyncError):
    pass


class LocalIoError(GitmarksError):
    exit_code = EXIT_IO
