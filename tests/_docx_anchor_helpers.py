#!/usr/bin/env python3
"""
ABOUTME: Shared helpers for docx_anchor tests: raw XML trees and real .docx packages
"""

import io
import sys
import zipfile
from pathlib import Path

from lxml import etree

# Add skills/doc-anchor/scripts directory to path (must be before import)
_scripts_dir = Path(__file__).parent.parent / 'skills' / 'doc-anchor' / 'scripts'
sys.path.insert(0, str(_scripts_dir))

from docx import Document  # noqa: E402

from docx_anchor.common import NS, W_P, W_SDT, W_T  # noqa: E402  # type: ignore[import-not-found]

# ============================================================
# XML Namespace Constants
# ============================================================

NAMESPACE_DECLS = (
    'xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main" '
    'xmlns:w14="http://schemas.microsoft.com/office/word/2010/wordml" '
    'xmlns:mc="http://schemas.openxmlformats.org/markup-compatibility/2006" '
    'xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing" '
    'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:wps="http://schemas.microsoft.com/office/word/2010/wordprocessingShape" '
    'xmlns:v="urn:schemas-microsoft-com:vml"'
)

SECT_PR = '<w:sectPr><w:pgSz w:w="11906" w:h="16838"/></w:sectPr>'


# ============================================================
# XML builders
# ============================================================

def p_xml(*runs: str) -> str:
    """Paragraph XML with one run per text argument (no runs when called without args)."""
    inner = ''.join(f'<w:r><w:t xml:space="preserve">{text}</w:t></w:r>' for text in runs)
    return f'<w:p>{inner}</w:p>'


def tbl_xml(*rows) -> str:
    """Table XML; each row is a list of cell inner XML strings."""
    rows_xml = ''.join(
        '<w:tr>' + ''.join(f'<w:tc>{cell}</w:tc>' for cell in row) + '</w:tr>'
        for row in rows
    )
    return f'<w:tbl><w:tblPr/><w:tblGrid/>{rows_xml}</w:tbl>'


def sdt_xml(tag: str, inner: str, with_pr: bool = True, with_content: bool = True) -> str:
    """Content control XML with the given w:tag value."""
    pr = f'<w:sdtPr><w:id w:val="900"/><w:tag w:val="{tag}"/></w:sdtPr>' if with_pr else ''
    content = f'<w:sdtContent>{inner}</w:sdtContent>' if with_content else ''
    return f'<w:sdt>{pr}{content}</w:sdt>'


def text_box_paragraph_xml(host_text: str, box_text: str) -> str:
    """
    Paragraph hosting a text box, written the way Word does it: a DrawingML
    copy in mc:Choice and a VML copy in mc:Fallback.
    """
    box = f'<w:txbxContent>{p_xml(box_text)}</w:txbxContent>'
    return (
        '<w:p>'
        f'<w:r><w:t>{host_text}</w:t></w:r>'
        '<w:r><mc:AlternateContent>'
        '<mc:Choice Requires="wps"><w:drawing><wp:anchor><a:graphic><a:graphicData>'
        f'<wps:wsp><wps:txbx>{box}</wps:txbx></wps:wsp>'
        '</a:graphicData></a:graphic></wp:anchor></w:drawing></mc:Choice>'
        f'<mc:Fallback><w:pict><v:shape><v:textbox>{box}</v:textbox></v:shape></w:pict></mc:Fallback>'
        '</mc:AlternateContent></w:r>'
        '</w:p>'
    )


def document_xml(body_inner: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document {NAMESPACE_DECLS}><w:body>{body_inner}{SECT_PR}</w:body></w:document>'
    )


def make_tree(body_inner: str):
    """Parse a w:document tree from body XML."""
    return etree.fromstring(document_xml(body_inner).encode('utf-8'))


def make_paragraph_tree(*texts: str):
    """Document tree with one single-run paragraph per text ('' gives an empty paragraph)."""
    return make_tree(''.join(p_xml(t) if t else p_xml() for t in texts))


# ============================================================
# Tree queries
# ============================================================

def all_text_nodes(paragraph):
    return list(paragraph.iter(W_T))


def body_paragraph_texts(root):
    """Texts of every w:p in document order (including nested ones)."""
    return [''.join(t.text or '' for t in p.iter(W_T)) for p in root.iter(W_P)]


def count_containers(root) -> int:
    return sum(1 for _ in root.iter(W_SDT))


def tag_values(root):
    return [tag.get(f'{{{NS["w"]}}}val') for tag in root.iter(f'{{{NS["w"]}}}tag')]


# ============================================================
# Package builders
# ============================================================

def make_docx(paragraphs, table_rows=None) -> bytes:
    """
    Build a real .docx with python-docx.

    Args:
        paragraphs: Body paragraph texts ('' gives an empty paragraph)
        table_rows: Optional list of rows (list of cell texts) appended as a table
    """
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if table_rows:
        table = doc.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, text in enumerate(row):
                table.cell(r, c).text = text
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def make_zip(entries) -> bytes:
    """
    Build a zip archive from (name, bytes, compress_type) tuples.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as zf:
        for name, data, compress_type in entries:
            zf.writestr(zipfile.ZipInfo(name, date_time=(2024, 5, 17, 10, 30, 0)), data,
                        compress_type=compress_type)
    return buffer.getvalue()


def zip_entries(data: bytes):
    """Return {name: bytes} and the ordered list of names of an archive."""
    with zipfile.ZipFile(io.BytesIO(data), 'r') as zf:
        names = zf.namelist()
        return {name: zf.read(name) for name in names}, names
