from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from .errors import ArgumentError, NotFoundError, ParseError
from .log import get_logger
from .model import Bookmark, Field, Kind, Node, Position, Search, Tree

log = get_logger(__name__)

# Characters outside the XML 1.0 Char production.
_XML_ILLEGAL = re.compile(r"[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


class Placement(Enum):
    AFTER = "after"
    BEFORE = "before"
    APPEND = "append"
    PREPEND = "prepend"


@dataclass(frozen=True)
class Target:
    """Where a new bookmark goes: relative to an id, or appended to a folder path.

    `node_id` None and `path` None means the root folder.
    """

    placement: Placement = Placement.APPEND
    node_id: Optional[int] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        if self.path is not None:
            return f"folder={self.path}"
        if self.node_id is None:
            return "root"
        return f"{self.placement.value}={self.node_id}"


ROOT_TARGET = Target()

_PREFIXES = {
    "after=": Placement.AFTER,
    "before=": Placement.BEFORE,
    "append=": Placement.APPEND,
    "prepend=": Placement.PREPEND,
}


def parse_target(value: Optional[str]) -> Target:
    """Parse a `--under` value.

    Grammar: "" | "root" | "after=<id>" | "before=<id>" | "append=<id>" | "prepend=<id>"
    | "<id>" (same as append=<id>) | "folder=<title>/<title>...".
    """
    s = (value or "").strip()
    if not s or s.lower() == "root":
        return ROOT_TARGET
    if s.startswith("folder="):
        path = s[len("folder="):].strip().strip("/")
        if not path:
            raise ParseError(f"empty folder path in target {value!r}", hint="Use folder=<title>/<title>.")
        return Target(Placement.APPEND, path=path)
    placement = Placement.APPEND
    rest = s
    for prefix, p in _PREFIXES.items():
        if s.startswith(prefix):
            placement, rest = p, s[len(prefix):]
            break
    return Target(placement, node_id=_parse_id(rest, value or ""))


def _parse_id(raw: str, value: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise ParseError(
            f"cannot parse target {value!r}",
            hint="Use root, after=<id>, before=<id>, append=<id>, prepend=<id>, <id> or folder=<path>.",
        )
    return int(raw)


def parse_item(value: Optional[str]) -> Target:
    """Parse an `rm --item` value: "<id>" or "folder=<title>/<title>..."."""
    s = (value or "").strip()
    if s.startswith("folder="):
        return parse_target(s)
    if s.isascii() and s.isdigit():
        return Target(Placement.APPEND, node_id=int(s))
    raise ParseError(
        f"cannot parse item {value!r}",
        hint="Use a folder or bookmark id, or folder=<title>/<title>.",
    )


def resolve_item(tree: Tree, item: Target) -> int:
    if item.path is not None:
        return tree.folder_by_path(item.path).id
    return item.node_id  # type: ignore[return-value]


def check_bookmark_fields(
    url: str,
    title: str,
    *,
    desc: Optional[str] = None,
    tags: Iterable[str] = (),
) -> None:
    """Reject input that cannot become a bookmark; runs before any git activity."""
    if not (url or "").strip():
        raise ArgumentError("a bookmark needs a non-empty url")
    fields = [("url", url), ("title", title), ("description", desc)]
    fields.extend(("tag", t) for t in tags)
    for name, text in fields:
        if text and _XML_ILLEGAL.search(text):
            raise ArgumentError(
                f"the {name} {text!r} contains a control character that XBEL cannot store",
                hint=f"Remove the control character from the {name}.",
            )


def add_bookmark(
    tree: Tree,
    url: str,
    title: str,
    target: Target = ROOT_TARGET,
    *,
    desc: Optional[str] = None,
    tags: Iterable[str] = (),
) -> int:
    """Insert a new bookmark at `target`; returns its freshly allocated id."""
    tags = list(tags)
    check_bookmark_fields(url, title, desc=desc, tags=tags)
    url = url.strip()
    bm = Bookmark(
        id=tree.allocate_id(),
        title=title or "",
        url=url,
        desc=desc,
        tags=_clean_tags(tags),
        attrib={"added": datetime.now(timezone.utc).replace(microsecond=0).isoformat()},
    )

    if target.path is not None:
        folder = tree.folder_by_path(target.path)
        tree.insert_into_folder(folder.id, bm, Position.END)
    elif target.node_id is None:
        tree.insert_into_folder(tree.root.id, bm, Position.END)
    else:
        _require(tree, target.node_id)
        if target.placement is Placement.AFTER:
            tree.insert_after(target.node_id, bm)
        elif target.placement is Placement.BEFORE:
            tree.insert_before(target.node_id, bm)
        elif target.placement is Placement.PREPEND:
            tree.insert_into_folder(target.node_id, bm, Position.START)
        else:
            tree.insert_into_folder(target.node_id, bm, Position.END)

    log.debug("Added bookmark %d (%s) at %s", bm.id, url, target)
    return bm.id


def removal_preview(tree: Tree, node_id: int) -> List[Node]:
    """Nodes `remove_node` would delete, the node itself first; the tree is untouched."""
    return tree.subtree(node_id)


def remove_node(tree: Tree, node_id: int) -> int:
    """Remove a bookmark or a folder with its whole subtree; returns how many nodes went away."""
    removed = tree.remove(node_id)
    log.debug("Removed %d item(s) under id %d", len(removed), node_id)
    return len(removed)


def find_nodes(tree: Tree, query: str, kind: Kind = Kind.ANY, where: Field = Field.ANY) -> Search:
    text = (query or "").strip()
    if not text:
        raise ParseError("empty search query", hint="Pass the text to look for, e.g. `gitmarks find news`.")
    return tree.search(kind, where, text)


def _require(tree: Tree, node_id: int) -> None:
    if node_id not in tree.nodes:
        raise NotFoundError(node_id, hint=f"Target id {node_id} does not exist; run `gitmarks print` to list ids.")


def _clean_tags(tags: Iterable[str]) -> List[str]:
    out: List[str] = []
    for t in tags:
        t = (t or "").strip()
        if t and t not in out:
            out.append(t)
    return out
