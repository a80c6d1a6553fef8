"""
ABOUTME: Opens and re-serializes DOCX packages held in memory
ABOUTME: Only word/document.xml is parsed; every other entry passes through untouched
"""

import io
import zipfile
from dataclasses import dataclass, field
from typing import Dict, List

from lxml import etree

from .common import DOCUMENT_PART, MalformedPackageError


def _make_parser() -> etree.XMLParser:
    # Document parts never need DTD entities or network access
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


@dataclass
class DocxPackage:
    """
    In-memory DOCX package.

    Attributes:
        root: Parsed root element of the document part (w:document)
        infos: ZipInfo of every entry, in archive order
        raw_entries: Uncompressed bytes of every entry except the document part
    """
    root: etree._Element
    infos: List[zipfile.ZipInfo] = field(default_factory=list)
    raw_entries: Dict[str, bytes] = field(default_factory=dict)


def read_document_part(data: bytes) -> bytes:
    """
    Return the raw XML bytes of the document part.

    Raises:
        MalformedPackageError: If data is not a zip archive or lacks the document part
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data), 'r') as zf:
            if DOCUMENT_PART not in zf.namelist():
                raise MalformedPackageError(f"Package has no {DOCUMENT_PART} part")
            return zf.read(DOCUMENT_PART)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise MalformedPackageError(f"Not a readable zip archive: {e}") from e
    except (NotImplementedError, RuntimeError) as e:
        # Unsupported compression method or encrypted entry
        raise MalformedPackageError(f"Cannot decompress package: {e}") from e


def open_package(data: bytes) -> DocxPackage:
    """
    Open a DOCX package from bytes.

    Args:
        data: Raw bytes of the .docx archive

    Returns:
        DocxPackage owning the parsed document tree

    Raises:
        MalformedPackageError: If the archive cannot be read, the document part
            is absent, or the document part is not well-formed XML
    """
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedPackageError(f"Expected bytes, got {type(data).__name__}")

    infos: List[zipfile.ZipInfo] = []
    raw_entries: Dict[str, bytes] = {}
    document_xml = None

    try:
        with zipfile.ZipFile(io.BytesIO(data), 'r') as zf:
            for info in zf.infolist():
                infos.append(info)
                content = zf.read(info)
                if info.filename == DOCUMENT_PART:
                    document_xml = content
                else:
                    raw_entries[info.filename] = content
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise MalformedPackageError(f"Not a readable zip archive: {e}") from e
    except (NotImplementedError, RuntimeError) as e:
        raise MalformedPackageError(f"Cannot decompress package: {e}") from e

    if document_xml is None:
        raise MalformedPackageError(f"Package has no {DOCUMENT_PART} part")

    try:
        root = etree.fromstring(document_xml, _make_parser())
    except etree.XMLSyntaxError as e:
        raise MalformedPackageError(f"{DOCUMENT_PART} is not well-formed XML: {e}") from e

    return DocxPackage(root=root, infos=infos, raw_entries=raw_entries)


def serialize_document(root: etree._Element) -> bytes:
    """Serialize a document tree the way Word writes document.xml"""
    return etree.tostring(root, xml_declaration=True, encoding='UTF-8', standalone=True)


def serialize_package(package: DocxPackage) -> bytes:
    """
    Write the package back to bytes.

    Entries keep their archive order, names, timestamps and compression type.
    Only the document part is re-serialized from the tree.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as zf:
        for info in package.infos:
            out_info = zipfile.ZipInfo(info.filename, date_time=info.date_time)
            out_info.compress_type = info.compress_type
            out_info.external_attr = info.external_attr
            out_info.create_system = info.create_system
            if info.filename == DOCUMENT_PART:
                zf.writestr(out_info, serialize_document(package.root))
            else:
                zf.writestr(out_info, package.raw_entries[info.filename])
    return buffer.getvalue()
