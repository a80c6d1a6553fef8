#!/usr/bin/env python3
"""
ABOUTME: Wraps every non-empty paragraph in a uniquely tagged content control (w:sdt)
ABOUTME: Produces the anchor map used later to locate paragraphs after external edits
"""

import copy
import json
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

from lxml import etree

from .common import (
    ANCHOR_PREFIX,
    DEFAULT_DOC_PART,
    NS,
    W_DOCPART,
    W_ID,
    W_PLACEHOLDER,
    W_SDT,
    W_SDTCONTENT,
    W_SDTPR,
    W_TAG,
    W_VAL,
    ParagraphAnchor,
    StructuralError,
    format_text_preview,
)
from .package import open_package, serialize_package
from .walker import enumerate_paragraphs, paragraph_text


@dataclass
class IndexResult:
    """Indexed copy of the tree plus its anchor map (anchor id -> ParagraphAnchor)"""
    tree: etree._Element
    anchors: Dict[str, ParagraphAnchor]


def new_anchor_id() -> str:
    """Fresh anchor id; uuid4 draws from os.urandom"""
    return f"{ANCHOR_PREFIX}{uuid.uuid4()}"


def owned_tag(sdt) -> str:
    """Return the first w:tag value of a container that carries ANCHOR_PREFIX, or ''."""
    sdt_pr = sdt.find(W_SDTPR)
    if sdt_pr is None:
        return ''
    for tag in sdt_pr.findall(W_TAG):
        value = tag.get(W_VAL)
        if value and value.startswith(ANCHOR_PREFIX):
            return value
    return ''


def unwrap_anchors(root) -> int:
    """
    Remove owned containers, putting their content back in place.

    Foreign content controls are left alone.

    Returns:
        Number of containers removed
    """
    removed = 0
    for sdt in list(root.iter(W_SDT)):
        if not owned_tag(sdt):
            continue
        parent = sdt.getparent()
        if parent is None:
            continue
        content = sdt.find(W_SDTCONTENT)
        if content is not None:
            for child in list(content):
                sdt.addprevious(child)
        parent.remove(sdt)
        removed += 1
    return removed


def build_container(sequence_id: int, anchor_id: str):
    """
    Build an empty owned container:

        <w:sdt>
          <w:sdtPr>
            <w:id w:val="N"/>
            <w:tag w:val="docproof_pid_..."/>
            <w:placeholder><w:docPart w:val="DefaultPlaceholder"/></w:placeholder>
          </w:sdtPr>
          <w:sdtContent/>
        </w:sdt>
    """
    sdt = etree.Element(W_SDT, nsmap={'w': NS['w']})
    sdt_pr = etree.SubElement(sdt, W_SDTPR)
    etree.SubElement(sdt_pr, W_ID).set(W_VAL, str(sequence_id))
    etree.SubElement(sdt_pr, W_TAG).set(W_VAL, anchor_id)
    placeholder = etree.SubElement(sdt_pr, W_PLACEHOLDER)
    etree.SubElement(placeholder, W_DOCPART).set(W_VAL, DEFAULT_DOC_PART)
    etree.SubElement(sdt, W_SDTCONTENT)
    return sdt


def index_tree(root, verbose: bool = False) -> IndexResult:
    """
    Wrap every non-empty paragraph of a document tree in an owned container.

    The input tree is never modified: indexing runs on a deep copy, so a
    StructuralError leaves the caller with the original tree only.

    Args:
        root: Document tree (w:document or any root accepted by the walker)
        verbose: Print per-paragraph progress

    Returns:
        IndexResult with the indexed tree and the anchor map

    Raises:
        StructuralError: If a paragraph has no parent node
    """
    tree = copy.deepcopy(root)
    stripped = unwrap_anchors(tree)
    if stripped and verbose:
        print(f"  Removed {stripped} existing anchor container(s) before re-indexing")

    refs = enumerate_paragraphs(tree)
    if verbose:
        print(f"  Found {len(refs)} paragraphs")

    anchors: Dict[str, ParagraphAnchor] = {}
    sequence_id = 0

    for ref in refs:
        paragraph = ref.element
        text = paragraph_text(paragraph)
        if not text.strip():
            if verbose:
                print(f"  [Skip] Empty paragraph at position {ref.position}")
            continue

        parent = paragraph.getparent()
        if parent is None:
            raise StructuralError(
                f"Paragraph at position {ref.position} has no parent node: "
                f"\"{format_text_preview(text)}\""
            )

        sequence_id += 1
        anchor_id = new_anchor_id()
        while anchor_id in anchors:
            anchor_id = new_anchor_id()

        anchors[anchor_id] = ParagraphAnchor(
            id=anchor_id,
            sequence_id=sequence_id,
            text=text,
            position=ref.position,
            container_type=ref.container_type,
        )

        sdt = build_container(sequence_id, anchor_id)
        paragraph.addprevious(sdt)
        sdt.find(W_SDTCONTENT).append(paragraph)

        if verbose:
            print(f"  [{sequence_id}] {anchor_id} ({ref.container_type or 'unknown'}): "
                  f"\"{format_text_preview(text)}\"")

    return IndexResult(tree=tree, anchors=anchors)


def index_package(data: bytes, verbose: bool = False) -> Tuple[bytes, Dict[str, ParagraphAnchor]]:
    """
    Index the document part of a DOCX package.

    Returns:
        (indexed package bytes, anchor map)

    Raises:
        MalformedPackageError: If the package cannot be opened
        StructuralError: If indexing hits a detached paragraph
    """
    package = open_package(data)
    result = index_tree(package.root, verbose=verbose)
    package.root = result.tree
    indexed = serialize_package(package)
    if verbose:
        print(f"Indexed {len(result.anchors)} paragraphs ({len(indexed)} bytes)")
    return indexed, result.anchors


# ============================================================
# Anchor map files (command line hand-off only)
# ============================================================

def save_anchor_map(anchors: Dict[str, ParagraphAnchor], path) -> Path:
    """Write the anchor map as JSON, ordered by sequence id."""
    path = Path(path)
    ordered = sorted(anchors.values(), key=lambda a: a.sequence_id)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump({'anchors': [a.to_dict() for a in ordered]}, f, ensure_ascii=False, indent=2)
    return path


def load_anchor_map(path) -> Dict[str, ParagraphAnchor]:
    """
    Read an anchor map written by save_anchor_map.

    Also accepts a bare JSON list of anchor dicts.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    entries = data.get('anchors', []) if isinstance(data, dict) else data
    anchors: Dict[str, ParagraphAnchor] = {}
    for entry in entries:
        anchor = ParagraphAnchor.from_dict(entry)
        if anchor.id in anchors:
            print(f"Warning: duplicate anchor id in {path}: {anchor.id}", file=sys.stderr)
        anchors[anchor.id] = anchor
    return anchors
