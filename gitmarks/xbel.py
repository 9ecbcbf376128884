from __future__ import annotations

import copy
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set

from lxml import etree

from .errors import FormatError, LocalIoError, SchemaError
from .log import get_logger
from .model import ROOT_ID, Bookmark, Folder, Node, Opaque, Tree

log = get_logger(__name__)

XBEL_DOCTYPE = (
    '<!DOCTYPE xbel PUBLIC "+//IDN python.org//DTD XML Bookmark Exchange Language 1.0//EN//XML" '
    '"http://pyxml.sourceforge.net/topics/dtds/xbel.dtd">'
)
XBEL_VERSION = "1.0"
TAGS_OWNER = "gitmarks"

# Floccus keeps its id counter in a comment right under <xbel>.
_HIGHEST_ID_RE = re.compile(r"highestId\s*:(\d+):")
_HIGHEST_ID_COMMENT = "- highestId :{}: for Floccus bookmark sync browser extension "


@dataclass
class Document:
    tree: Tree = field(default_factory=Tree)
    highest_id: Optional[int] = None


def parse(data: bytes) -> Document:
    if not data or not data.strip():
        raise FormatError("XBEL document is empty")
    parser = etree.XMLParser(
        remove_blank_text=True,
        resolve_entities=False,
        load_dtd=False,
        no_network=True,
    )
    try:
        root_el = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise FormatError(f"malformed XBEL document: {e}") from e
    if root_el.tag != "xbel":
        raise FormatError(f"expected an <xbel> root element, found <{root_el.tag}>")

    root = Folder(id=ROOT_ID, attrib=dict(root_el.attrib))
    doc = Document(tree=Tree(root))
    _read_container(doc, root, root_el, seen=set())
    log.debug("Parsed XBEL document with %d items (highestId=%s)", len(doc.tree), doc.highest_id)
    return doc


def serialize(doc: Document) -> bytes:
    tree = doc.tree
    attrib = {"version": XBEL_VERSION}
    attrib.update(tree.root.attrib)
    try:
        root_el = etree.Element("xbel", attrib)
        root_el.append(etree.Comment(_HIGHEST_ID_COMMENT.format(tree.max_id())))
        _write_container(tree, tree.root, root_el)
    except ValueError as e:
        # lxml refuses control characters and other text XML 1.0 cannot hold
        raise FormatError(
            f"the collection holds text that cannot be written as XML: {e}",
            hint="Remove control characters from titles, urls, descriptions and tags.",
        ) from e
    return etree.tostring(
        root_el,
        encoding="UTF-8",
        xml_declaration=True,
        pretty_print=True,
        doctype=XBEL_DOCTYPE,
    )


def read_document(path: Path) -> Document:
    if not path.exists():
        log.info("No bookmark file at %s yet; starting an empty collection.", path)
        return Document()
    try:
        data = path.read_bytes()
    except OSError as e:
        raise LocalIoError(f"cannot read {path}: {e}") from e
    return parse(data)


def write_document(path: Path, doc: Document) -> bytes:
    data = serialize(doc)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".gitmarks-", dir=str(path.parent))
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except OSError as e:
        raise LocalIoError(f"cannot write {path}: {e}") from e
    log.debug("Wrote %d bytes to %s", len(data), path)
    return data


# reading


def _read_container(doc: Document, folder: Folder, el, seen: Set[int]) -> None:
    anchor: Optional[int] = None
    has_title = False
    for child in el:
        tag = child.tag
        if tag is etree.Comment:
            m = _HIGHEST_ID_RE.search(child.text or "")
            if m and folder.id == ROOT_ID:
                doc.highest_id = int(m.group(1))
                continue
        elif tag == "title" and not has_title:
            folder.title = child.text or ""
            has_title = True
            continue
        elif tag == "folder":
            sub = Folder(id=_read_id(child, seen), attrib=_extra_attrib(child, ("id",)))
            doc.tree.attach(folder, sub, len(folder.children))
            _read_container(doc, sub, child, seen)
            anchor = sub.id
            continue
        elif tag == "bookmark":
            bm = _read_bookmark(child, seen)
            doc.tree.attach(folder, bm, len(folder.children))
            anchor = bm.id
            continue
        folder.extras.append(Opaque(anchor, _detached(child)))


def _read_bookmark(el, seen: Set[int]) -> Bookmark:
    href = el.get("href")
    if href is None:
        raise SchemaError(f"<bookmark> at line {el.sourceline} lacks the required 'href' attribute")
    bm = Bookmark(id=_read_id(el, seen), url=href, attrib=_extra_attrib(el, ("href", "id")))
    has_title = False
    for child in el:
        if child.tag == "title" and not has_title:
            bm.title = child.text or ""
            has_title = True
        elif child.tag == "desc" and bm.desc is None:
            bm.desc = child.text or ""
        elif child.tag == "info":
            rest = _split_tags(bm, child)
            if rest is not None:
                bm.extras.append(Opaque(None, rest))
        else:
            bm.extras.append(Opaque(None, _detached(child)))
    return bm


def _split_tags(bm: Bookmark, info_el):
    """Pull our tag metadata out of <info>; returns what is left of it, or None."""
    rest = _detached(info_el)
    for meta in list(rest):
        if meta.tag == "metadata" and meta.get("owner") == TAGS_OWNER:
            bm.tags.extend((t.text or "").strip() for t in meta if t.tag == "tag" and (t.text or "").strip())
            rest.remove(meta)
    return rest if len(rest) else None


def _read_id(el, seen: Set[int]) -> int:
    raw = el.get("id")
    if raw is None:
        raise SchemaError(f"<{el.tag}> at line {el.sourceline} lacks the required 'id' attribute")
    try:
        node_id = int(raw.strip())
    except ValueError:
        raise SchemaError(f"<{el.tag}> at line {el.sourceline} has a non-integer id {raw!r}") from None
    if node_id <= ROOT_ID:
        raise SchemaError(f"<{el.tag}> at line {el.sourceline} has id {node_id}; ids must be positive")
    if node_id in seen:
        raise SchemaError(f"<{el.tag}> at line {el.sourceline} reuses id {node_id}")
    seen.add(node_id)
    return node_id


def _extra_attrib(el, modeled: Iterable[str]) -> dict:
    skip = set(modeled)
    return {k: v for k, v in el.attrib.items() if k not in skip}


def _detached(el):
    c = copy.deepcopy(el)
    c.tail = None
    return c


# writing


def _write_container(tree: Tree, folder: Folder, el) -> None:
    if folder.id != ROOT_ID or folder.title:
        etree.SubElement(el, "title").text = folder.title
    _write_extras(folder.extras, None, el)
    for cid in folder.children:
        child = tree.nodes[cid]
        if isinstance(child, Folder):
            sub = etree.SubElement(el, "folder", {"id": str(child.id)})
            _set_attrib(sub, child)
            _write_container(tree, child, sub)
        else:
            _write_bookmark(child, el)  # type: ignore[arg-type]
        _write_extras(folder.extras, cid, el)


def _write_bookmark(bm: Bookmark, parent_el) -> None:
    el = etree.SubElement(parent_el, "bookmark", {"href": bm.url, "id": str(bm.id)})
    _set_attrib(el, bm)
    etree.SubElement(el, "title").text = bm.title
    if bm.desc is not None:
        etree.SubElement(el, "desc").text = bm.desc

    info = None
    for extra in bm.extras:
        if info is None and extra.element.tag == "info" and bm.tags:
            info = copy.deepcopy(extra.element)
            el.append(info)
        else:
            el.append(copy.deepcopy(extra.element))
    if bm.tags:
        if info is None:
            info = etree.SubElement(el, "info")
        meta = etree.SubElement(info, "metadata", {"owner": TAGS_OWNER})
        for tag in bm.tags:
            etree.SubElement(meta, "tag").text = tag


def _write_extras(extras: List[Opaque], anchor: Optional[int], el) -> None:
    for extra in extras:
        if extra.anchor == anchor:
            el.append(copy.deepcopy(extra.element))


def _set_attrib(el, node: Node) -> None:
    for k, v in node.attrib.items():
        el.set(k, v)
