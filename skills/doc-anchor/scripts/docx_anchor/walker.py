"""Paragraph enumeration for Word XML trees."""

from dataclasses import dataclass
from typing import List, Optional

from lxml import etree

from .common import (
    CONTAINER_TYPES,
    MC_FALLBACK,
    W_BODY,
    W_ENDNOTE,
    W_ENDNOTES,
    W_FOOTNOTE,
    W_FOOTNOTES,
    W_P,
    W_SDT,
    W_SDTCONTENT,
    W_T,
    W_TBL,
    W_TC,
    W_TR,
    W_TXBXCONTENT,
)


@dataclass(frozen=True)
class ParagraphRef:
    """A paragraph found by the walk, with its classification at discovery time"""
    position: int
    element: etree._Element
    container_type: Optional[str]


def classify_container(paragraph) -> Optional[str]:
    """
    Classify the immediate structural parent of a paragraph.

    Returns:
        'body', 'table-cell', 'text-box', 'footnote', 'endnote',
        or None if the parent is missing or unrecognized
    """
    parent = paragraph.getparent()
    if parent is None:
        return None
    return CONTAINER_TYPES.get(parent.tag)


def _nearest_paragraph(elem):
    """Return the closest w:p ancestor of elem (excluding elem itself)."""
    anc = elem.getparent()
    while anc is not None and anc.tag != W_P:
        anc = anc.getparent()
    return anc


def owned_text_nodes(paragraph) -> List[etree._Element]:
    """
    Return the w:t nodes that belong to this paragraph.

    Text boxes anchored inside a run contain paragraphs of their own;
    their w:t nodes belong to those nested paragraphs, not to this one.
    """
    return [t for t in paragraph.iter(W_T) if _nearest_paragraph(t) is paragraph]


def paragraph_text(paragraph) -> str:
    """Concatenate the text of a paragraph's own w:t nodes."""
    return ''.join(t.text or '' for t in owned_text_nodes(paragraph))


def _is_in_fallback(elem, stop) -> bool:
    """True if elem sits inside an mc:Fallback below stop (VML copy of a text box)."""
    anc = elem.getparent()
    while anc is not None and anc is not stop:
        if anc.tag == MC_FALLBACK:
            return True
        anc = anc.getparent()
    return False


def _text_boxes_of(paragraph) -> List[etree._Element]:
    """w:txbxContent elements anchored directly in this paragraph's runs."""
    return [
        box for box in paragraph.iter(W_TXBXCONTENT)
        if _nearest_paragraph(box) is paragraph and not _is_in_fallback(box, paragraph)
    ]


def _unwrap_sdt(elem):
    """Return the w:sdtContent of a w:sdt, or None."""
    return elem.find(W_SDTCONTENT)


def _iter_table_cells(table):
    # Rows and cells may themselves be wrapped in content controls
    for row in table:
        if row.tag == W_SDT:
            content = _unwrap_sdt(row)
            rows = list(content.iterchildren(W_TR)) if content is not None else []
        elif row.tag == W_TR:
            rows = [row]
        else:
            continue
        for tr in rows:
            for cell in tr:
                if cell.tag == W_TC:
                    yield cell
                elif cell.tag == W_SDT:
                    content = _unwrap_sdt(cell)
                    if content is not None:
                        yield from content.iterchildren(W_TC)


def _collect(container, found: List[etree._Element]):
    for child in container:
        tag = child.tag
        if tag == W_P:
            found.append(child)
            for box in _text_boxes_of(child):
                _collect(box, found)
        elif tag == W_TBL:
            for cell in _iter_table_cells(child):
                _collect(cell, found)
        elif tag == W_SDT:
            content = _unwrap_sdt(child)
            if content is not None:
                _collect(content, found)
        elif tag in (W_FOOTNOTE, W_ENDNOTE):
            _collect(child, found)


def _walk_root(root):
    """Pick the element the walk starts from."""
    if root.tag in (W_BODY, W_FOOTNOTES, W_ENDNOTES, W_TC, W_TXBXCONTENT):
        return root
    body = root.find(W_BODY)
    return body if body is not None else root


def enumerate_paragraphs(root) -> List[ParagraphRef]:
    """
    Enumerate every paragraph of a document tree in document order.

    The walk starts at w:body (or at a footnotes/endnotes root) and descends
    into table cells, text boxes, footnotes/endnotes and block-level content
    controls. A paragraph is collected only as a direct child of the container
    being walked, so nested containers never produce duplicates.

    The result is a list built before the caller mutates anything, so it stays
    valid while paragraphs are moved around.

    Args:
        root: w:document, w:body, w:footnotes/w:endnotes, or a bare w:p

    Returns:
        List of ParagraphRef in depth-first document order
    """
    if root.tag == W_P:
        # Detached paragraph: yield it as is so callers can detect the anomaly
        found = [root]
    else:
        found = []
        _collect(_walk_root(root), found)

    return [
        ParagraphRef(position=i, element=p, container_type=classify_container(p))
        for i, p in enumerate(found)
    ]
