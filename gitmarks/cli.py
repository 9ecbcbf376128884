from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

from . import __version__
from .config import Settings, default_config_path, load_settings, write_config
from .edit import (
    add_bookmark,
    check_bookmark_fields,
    find_nodes,
    parse_item,
    parse_target,
    removal_preview,
    remove_node,
    resolve_item,
)
from .errors import GitmarksError
from .git_repo import GitRepo
from .log import LogConfig, get_logger, setup_logging
from .model import Field, Kind
from .render import found_lines, one_line, outline
from .sync import SyncManager, SyncState

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = _build_parser()
    args = p.parse_args(argv)
    setup_logging(LogConfig.from_env())

    try:
        # init creates the config file, so it starts from the environment alone.
        cfg = Settings.from_env() if args.cmd == "init" else load_settings(args.config)
        _apply_global_overrides(cfg, args)
        setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))
        log.debug("Working copy: %s", cfg.working_copy())

        if args.cmd == "init":
            return _cmd_init(args, cfg)
        if args.cmd == "print":
            return _cmd_print(args, cfg)
        if args.cmd == "add":
            return _cmd_add(args, cfg)
        if args.cmd == "rm":
            return _cmd_rm(args, cfg)
        if args.cmd == "find":
            return _cmd_find(args, cfg)
    except GitmarksError as e:
        log.error("%s", e)
        if e.hint:
            log.error("%s", e.hint)
        return e.exit_code
    return 2


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gitmarks",
        description="Manage an XBEL bookmark collection kept in a git repository (Floccus compatible).",
    )
    p.add_argument("-V", "--version", action="version", version=f"gitmarks {__version__}")
    p.add_argument("-c", "--config", default=None, help="YAML config file (default: $GITMARKS_CONFIG or ~/.config/gitmarks/config.yaml).")
    p.add_argument("-r", "--repository", dest="repository_folder", default=None, help="Local working copy folder.")
    p.add_argument("-g", "--git", dest="repository_url", default=None, help="Git repository url, e.g. https://github.com/you/bookmarks.git")
    p.add_argument("-n", "--name", dest="repository_name", default=None, help="Working copy name under the data dir (default: bookmarks).")
    p.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR (overrides GITMARKS_LOG and config).")
    p.add_argument("--no-color", action="store_true", help="Disable colored logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    init = sub.add_parser("init", help="Write the config file for later invocations.")
    init.add_argument("--token", default=None, help="Access token for an https remote.")
    init.add_argument("--ssh-key", default=None, help="Private key file for an ssh remote.")
    init.add_argument("--force", action="store_true", help="Overwrite an existing config file.")

    sub.add_parser("print", help="Print the bookmark tree.")

    add = sub.add_parser("add", help="Add a bookmark.")
    add.add_argument("-b", "--bookmark", dest="url", required=True, help="Url to add.")
    add.add_argument("-t", "--title", required=True, help="Bookmark title.")
    add.add_argument(
        "-u",
        "--under",
        default=None,
        help="Where to put it: root (default), after=<id>, before=<id>, append=<id>, prepend=<id>, <id>, folder=<path>.",
    )
    add.add_argument("-d", "--desc", default=None, help="Optional description.")
    add.add_argument("--tag", dest="tags", action="append", default=[], help="Tag (repeatable).")
    _add_push_flags(add, "Add the bookmark")

    rm = sub.add_parser("rm", help="Remove a bookmark or a folder (with its content).")
    rm.add_argument(
        "-i",
        "--item",
        dest="item",
        required=True,
        help="Id of the bookmark or folder, or folder=<title>/<title> for a folder.",
    )
    rm.add_argument("--dry-run", action="store_true", help="Only print what would be removed.")
    _add_push_flags(rm, "Remove the item")

    find = sub.add_parser("find", help="Find bookmarks or folders (case-insensitive).")
    find.add_argument("-t", "--title", action="store_true", help="Only search titles.")
    find.add_argument("-u", "--url", action="store_true", help="Only search urls.")
    find.add_argument("-f", "--folder", action="store_true", help="Only return folders.")
    find.add_argument("-b", "--bookmark", action="store_true", help="Only return bookmarks.")
    find.add_argument("query", help="Text to find.")
    return p


def _add_push_flags(parser: argparse.ArgumentParser, what: str) -> None:
    g = parser.add_mutually_exclusive_group()
    g.add_argument("--disable-push", dest="push", action="store_const", const=False, default=None,
                   help=f"{what} and commit locally, without git push.")
    g.add_argument("--push", dest="push", action="store_const", const=True,
                   help=f"{what}, commit and git push (overrides disable_push in config).")


def _apply_global_overrides(cfg: Settings, args) -> None:
    for name in ("repository_folder", "repository_url", "repository_name"):
        v = getattr(args, name)
        if v:
            setattr(cfg, name, v)
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True


def _sync_manager(cfg: Settings, *, push_enabled: bool = False) -> SyncManager:
    wc = cfg.working_copy()
    git = GitRepo(
        wc,
        timeout_s=cfg.git_timeout_s,
        token=cfg.repository_token,
        ssh_key=cfg.repository_ssh_key,
    )
    state = SyncState(
        working_copy=wc,
        branch=cfg.branch,
        remote=cfg.remote,
        remote_url=cfg.repository_url,
    )
    return SyncManager(state, git, bookmarks_file=cfg.bookmarks_file, push_enabled=push_enabled)


def _push_enabled(args, cfg: Settings) -> bool:
    if args.push is not None:
        return args.push
    return not cfg.disable_push


def _cmd_init(args, cfg: Settings) -> int:
    if args.token:
        cfg.repository_token = args.token
    if args.ssh_key:
        cfg.repository_ssh_key = str(Path(args.ssh_key).expanduser())
    path = Path(args.config) if args.config else default_config_path()
    write_config(path, cfg, force=args.force)
    print(f"Wrote config file: {path}")
    return 0


def _cmd_print(args, cfg: Settings) -> int:
    sync = _sync_manager(cfg)
    sync.ensure_up_to_date(for_write=False)
    doc = sync.load_document()
    lines = outline(doc.tree)
    if not lines:
        print("No bookmarks yet.")
    for line in lines:
        print(line)
    return 0


def _cmd_add(args, cfg: Settings) -> int:
    # Bad input is rejected before any git activity.
    target = parse_target(args.under)
    check_bookmark_fields(args.url, args.title, desc=args.desc, tags=args.tags)
    sync = _sync_manager(cfg, push_enabled=_push_enabled(args, cfg))
    sync.ensure_up_to_date(for_write=True)
    doc = sync.load_document()
    new_id = add_bookmark(doc.tree, args.url, args.title, target, desc=args.desc, tags=args.tags)
    if sync.save_and_commit(doc, f"add bookmark {args.title}"):
        sync.push()
    print(f"Added {one_line(doc.tree.find_node(new_id))}")
    return 0


def _cmd_rm(args, cfg: Settings) -> int:
    item = parse_item(args.item)
    if args.dry_run:
        sync = _sync_manager(cfg)
        sync.ensure_up_to_date(for_write=False)
        doc = sync.load_document()
        doomed = removal_preview(doc.tree, resolve_item(doc.tree, item))
        print(f"[Dry run] would remove {len(doomed)} item(s):")
        for node in doomed:
            print(f"  {one_line(node)}")
        return 0

    sync = _sync_manager(cfg, push_enabled=_push_enabled(args, cfg))
    sync.ensure_up_to_date(for_write=True)
    doc = sync.load_document()
    node_id = resolve_item(doc.tree, item)
    count = remove_node(doc.tree, node_id)
    if sync.save_and_commit(doc, f"remove id {node_id}"):
        sync.push()
    print(f"Removed {count} item(s) (id {node_id}).")
    return 0


def _cmd_find(args, cfg: Settings) -> int:
    if args.folder and not args.bookmark:
        kind = Kind.FOLDER
    elif args.bookmark and not args.folder:
        kind = Kind.BOOKMARK
    else:
        kind = Kind.ANY
    if args.title and not args.url:
        where = Field.TITLE
    elif args.url and not args.title:
        where = Field.URL
    else:
        where = Field.ANY

    sync = _sync_manager(cfg)
    sync.ensure_up_to_date(for_write=False)
    doc = sync.load_document()
    for line in found_lines(find_nodes(doc.tree, args.query, kind, where), kind):
        print(line)
    return 0
