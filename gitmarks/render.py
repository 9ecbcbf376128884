from __future__ import annotations

from typing import Iterable, List

from .model import Bookmark, Folder, Kind, Node, Tree

FOLDER_ICON = "\U0001F4C1"
LINK_ICON = "\U0001F517"
INDENT = "  "


def outline(tree: Tree) -> List[str]:
    """Indented outline: folders as `[📁 id] title`, bookmarks as `[🔗 id] title` plus `- url`."""
    lines: List[str] = []
    for depth, node in tree.walk_depth():
        pad = INDENT * depth
        lines.append(f"{pad}{label(node)}")
        if isinstance(node, Bookmark):
            lines.append(f"{pad}- {node.url}")
    return lines


def label(node: Node) -> str:
    icon = FOLDER_ICON if isinstance(node, Folder) else LINK_ICON
    return f"[{icon} {node.id}] {node.title}"


def one_line(node: Node) -> str:
    if isinstance(node, Bookmark):
        return f"{label(node)} - {node.url}"
    return label(node)


def found_lines(nodes: Iterable[Node], kind: Kind = Kind.ANY) -> List[str]:
    found = list(nodes)
    n = len(found)
    if kind is Kind.FOLDER:
        what = pluralize("folder", n)
    elif kind is Kind.BOOKMARK:
        what = pluralize("bookmark", n)
    else:
        what = f"{pluralize('folder', n)} or {pluralize('bookmark', n)}"
    if not found:
        return [f"Found 0 {what}"]
    return [f"Found {n} {what}:"] + [f"{i} - {one_line(node)}" for i, node in enumerate(found)]


def pluralize(word: str, count: int) -> str:
    return word if count in (0, 1) else f"{word}s"
