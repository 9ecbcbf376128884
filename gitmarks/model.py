from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import (
    CannotRemoveRootError,
    DuplicateIdError,
    InvalidTargetError,
    NotAFolderError,
    NotFoundError,
)

ROOT_ID = 0


class Position(Enum):
    START = "start"
    END = "end"


class Kind(Enum):
    ANY = "any"
    FOLDER = "folder"
    BOOKMARK = "bookmark"


class Field(Enum):
    ANY = "any"
    TITLE = "title"
    URL = "url"


@dataclass
class Opaque:
    """An XML fragment the model does not understand, kept for lossless writes.

    `anchor` is the id of the modeled sibling it followed (None: before all of them).
    """

    anchor: Optional[int]
    element: Any


@dataclass
class Node:
    id: int
    title: str = ""
    parent_id: Optional[int] = None
    attrib: Dict[str, str] = field(default_factory=dict)
    extras: List[Opaque] = field(default_factory=list)


@dataclass
class Folder(Node):
    children: List[int] = field(default_factory=list)


@dataclass
class Bookmark(Node):
    url: str = ""
    desc: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class Tree:
    """Arena of folders and bookmarks indexed by id, hanging off a single root folder."""

    def __init__(self, root: Optional[Folder] = None):
        self.root = root if root is not None else Folder(id=ROOT_ID)
        self.root.parent_id = None
        self.nodes: Dict[int, Node] = {self.root.id: self.root}

    def __len__(self) -> int:
        # root excluded
        return len(self.nodes) - 1

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    # lookup

    def find_node(self, node_id: int) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise NotFoundError(node_id)
        return node

    def find_folder(self, node_id: int) -> Folder:
        node = self.find_node(node_id)
        if not isinstance(node, Folder):
            raise NotAFolderError(node_id)
        return node

    def parent_of(self, node_id: int) -> Folder:
        node = self.find_node(node_id)
        if node.parent_id is None:
            raise InvalidTargetError(f"item {node_id} is the root and has no parent")
        return self.nodes[node.parent_id]  # type: ignore[return-value]

    def folder_by_path(self, path: str) -> Folder:
        """Resolve a slash-separated folder title path, starting below the root."""
        current = self.root
        walked: List[str] = []
        for part in [p.strip() for p in path.split("/") if p.strip()]:
            walked.append(part)
            nxt = None
            for cid in current.children:
                child = self.nodes[cid]
                if isinstance(child, Folder) and child.title == part:
                    nxt = child
                    break
            if nxt is None:
                raise InvalidTargetError(
                    f"no folder at path {'/'.join(walked)!r}",
                    hint="Folder paths are matched on exact titles; run `gitmarks print`.",
                )
            current = nxt
        return current

    def max_id(self) -> int:
        return max(self.nodes)

    def allocate_id(self) -> int:
        return self.max_id() + 1

    # mutation

    def insert_into_folder(self, folder_id: int, node: Node, position: Position = Position.END) -> None:
        folder = self.find_folder(folder_id)
        index = 0 if position is Position.START else len(folder.children)
        self.attach(folder, node, index)

    def insert_after(self, sibling_id: int, node: Node) -> None:
        parent = self._parent_for_sibling(sibling_id, "after")
        self.attach(parent, node, parent.children.index(sibling_id) + 1)

    def insert_before(self, sibling_id: int, node: Node) -> None:
        parent = self._parent_for_sibling(sibling_id, "before")
        self.attach(parent, node, parent.children.index(sibling_id))

    def remove(self, node_id: int) -> List[int]:
        """Detach `node_id` and delete its whole subtree; returns the removed ids."""
        if node_id == self.root.id:
            raise CannotRemoveRootError("the root folder cannot be removed")
        node = self.find_node(node_id)
        parent: Folder = self.nodes[node.parent_id]  # type: ignore[assignment]
        index = parent.children.index(node_id)
        previous = parent.children[index - 1] if index > 0 else None
        del parent.children[index]
        for extra in parent.extras:
            if extra.anchor == node_id:
                extra.anchor = previous

        removed = [n.id for n in self._walk_from(node)]
        for rid in removed:
            del self.nodes[rid]
        return removed

    # traversal

    def subtree(self, node_id: int) -> List[Node]:
        """The node and all its descendants, depth-first."""
        return list(self._walk_from(self.find_node(node_id)))

    def walk(self) -> Iterator[Node]:
        """Depth-first, parent before children, children in sibling order; root excluded."""
        for cid in self.root.children:
            yield from self._walk_from(self.nodes[cid])

    def walk_depth(self) -> Iterator[Tuple[int, Node]]:
        stack: List[Tuple[int, int]] = [(0, cid) for cid in reversed(self.root.children)]
        while stack:
            depth, nid = stack.pop()
            node = self.nodes[nid]
            yield depth, node
            if isinstance(node, Folder):
                stack.extend((depth + 1, cid) for cid in reversed(node.children))

    def search(self, kind: Kind = Kind.ANY, where: Field = Field.ANY, text: str = "") -> "Search":
        return Search(self, kind, where, text)

    def structure(self) -> Tuple:
        """Nested tuples of every modeled field, in child order; used for equality checks."""
        return tuple(self._structure(self.nodes[cid]) for cid in self.root.children)

    # internals

    def _parent_for_sibling(self, sibling_id: int, where: str) -> Folder:
        sibling = self.find_node(sibling_id)
        if sibling.parent_id is None:
            raise InvalidTargetError(
                f"cannot insert {where} the root",
                hint="Use append=<folder id> or prepend=<folder id> instead.",
            )
        return self.nodes[sibling.parent_id]  # type: ignore[return-value]

    def attach(self, parent: Folder, node: Node, index: int) -> None:
        if node.id in self.nodes:
            raise DuplicateIdError(f"id {node.id} is already used in this collection")
        node.parent_id = parent.id
        parent.children.insert(index, node.id)
        self.nodes[node.id] = node

    def _walk_from(self, node: Node) -> Iterator[Node]:
        stack = [node.id]
        while stack:
            current = self.nodes[stack.pop()]
            yield current
            if isinstance(current, Folder):
                stack.extend(reversed(current.children))

    def _structure(self, node: Node) -> Tuple:
        if isinstance(node, Folder):
            return ("folder", node.id, node.title, tuple(self._structure(self.nodes[c]) for c in node.children))
        return ("bookmark", node.id, node.title, node.url, node.desc, tuple(node.tags))  # type: ignore[attr-defined]


class Search:
    """Lazy search result; every iteration restarts the walk."""

    def __init__(self, tree: Tree, kind: Kind, where: Field, text: str):
        self.tree = tree
        self.kind = kind
        self.where = where
        self.needle = text.casefold()

    def __iter__(self) -> Iterator[Node]:
        for node in self.tree.walk():
            if self._matches(node):
                yield node

    def _matches(self, node: Node) -> bool:
        if self.kind is Kind.FOLDER and not isinstance(node, Folder):
            return False
        if self.kind is Kind.BOOKMARK and not isinstance(node, Bookmark):
            return False
        if self.where in (Field.ANY, Field.TITLE) and self.needle in node.title.casefold():
            return True
        if self.where in (Field.ANY, Field.URL) and isinstance(node, Bookmark):
            return self.needle in node.url.casefold()
        return False
