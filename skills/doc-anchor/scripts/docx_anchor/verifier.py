#!/usr/bin/env python3
"""
ABOUTME: Checks whether anchor containers survived an external round trip
ABOUTME: Separates owned, foreign and malformed content controls for diagnostics
"""

import sys
from dataclasses import dataclass
from xml.etree.ElementTree import ParseError

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from .common import (
    ANCHOR_PREFIX,
    W_ID,
    W_P,
    W_SDT,
    W_SDTCONTENT,
    W_SDTPR,
    W_T,
    W_TAG,
    W_VAL,
    IntegrityReport,
    MalformedContainerWarning,
    MalformedPackageError,
    format_text_preview,
)
from .indexer import owned_tag
from .package import open_package, read_document_part
from .walker import paragraph_text


def check_integrity(root, verbose: bool = False) -> IntegrityReport:
    """
    Scan a document tree for structured containers and classify them.

    A container missing w:sdtPr or w:sdtContent is counted as malformed and
    skipped. A well-formed container is owned when one of its w:tag values
    starts with ANCHOR_PREFIX. The tree is never modified.

    Args:
        root: Document tree to inspect
        verbose: Print one line per owned container and a summary

    Returns:
        IntegrityReport
    """
    report = IntegrityReport()

    for index, sdt in enumerate(root.iter(W_SDT), 1):
        report.total_containers += 1

        sdt_pr = sdt.find(W_SDTPR)
        sdt_content = sdt.find(W_SDTCONTENT)
        if sdt_pr is None or sdt_content is None:
            missing = [name for name, elem in (('sdtPr', sdt_pr), ('sdtContent', sdt_content))
                       if elem is None]
            warning = MalformedContainerWarning(index=index, missing=missing)
            report.malformed_count += 1
            report.warnings.append(warning)
            if verbose:
                print(f"  Warning: {warning}", file=sys.stderr)
            continue

        tag_value = owned_tag(sdt)
        if not tag_value:
            continue

        report.owned_container_count += 1
        report.found_ids.append(tag_value)
        if verbose:
            first_para = next(sdt_content.iter(W_P), None)
            sample = paragraph_text(first_para) if first_para is not None else ''
            print(f"  [Owned] #{index} {tag_value}: \"{format_text_preview(sample, 50)}\"")

    if verbose:
        print(f"  Containers: {report.total_containers} total, "
              f"{report.owned_container_count} owned, {report.malformed_count} malformed")
        print(f"  Integrity preserved: {'yes' if report.preserved else 'no'}")

    return report


def check_package(data: bytes, verbose: bool = False) -> IntegrityReport:
    """
    Open a package and check its anchor containers.

    Raises:
        MalformedPackageError: If the package cannot be opened
    """
    package = open_package(data)
    return check_integrity(package.root, verbose=verbose)


# ============================================================
# Read-only inspection (no tree is kept)
# ============================================================

def _plain_text(paragraph) -> str:
    return ''.join(t.text or '' for t in paragraph.iter(W_T))


def _parse_readonly(data: bytes):
    """Parse the document part with defusedxml; nothing is kept for writing."""
    try:
        return ET.fromstring(read_document_part(data))
    except (ParseError, DefusedXmlException) as e:
        raise MalformedPackageError(f"Document part cannot be parsed: {e}") from e


@dataclass
class IndexStatus:
    """Container counts of a package, as seen by a read-only scan"""
    container_count: int = 0             # Every w:sdt in the document part
    owned_container_count: int = 0       # w:sdt whose w:sdtPr carries an owned w:tag

    @property
    def indexed(self) -> bool:
        return self.owned_container_count > 0


def index_status(data: bytes) -> IndexStatus:
    """
    Count all containers and owned containers without building a mutable tree.

    Only w:tag elements directly inside a container's w:sdtPr are considered.

    Raises:
        MalformedPackageError: If the package cannot be read
    """
    root = _parse_readonly(data)
    status = IndexStatus()
    for sdt in root.iter(W_SDT):
        status.container_count += 1
        sdt_pr = sdt.find(W_SDTPR)
        if sdt_pr is None:
            continue
        if any((tag.get(W_VAL) or '').startswith(ANCHOR_PREFIX) for tag in sdt_pr.findall(W_TAG)):
            status.owned_container_count += 1
    return status


def is_indexed(data: bytes) -> bool:
    """
    Quick check: does the package contain at least one owned container?

    Raises:
        MalformedPackageError: If the package cannot be read
    """
    return index_status(data).indexed


def build_container_report(data: bytes) -> str:
    """
    Build a human-readable report of every content control in the package.

    Lists, per container, its numeric id, tag, ownership, paragraph count and
    a preview of its first paragraph.

    Raises:
        MalformedPackageError: If the package cannot be read
    """
    root = _parse_readonly(data)
    containers = list(root.iter(W_SDT))

    lines = [
        "CONTENT CONTROL REPORT",
        "=" * 40,
        "",
        f"Containers in document: {len(containers)}",
        "",
    ]

    for index, sdt in enumerate(containers, 1):
        lines.append(f"Container #{index}:")
        lines.append("-" * 12)

        sdt_pr = sdt.find(W_SDTPR)
        if sdt_pr is None:
            lines.append("WARNING: no sdtPr element")
            lines.append("")
            continue

        id_elem = sdt_pr.find(W_ID)
        lines.append(f"ID: {id_elem.get(W_VAL) if id_elem is not None else 'none'}")

        tag_elem = sdt_pr.find(W_TAG)
        if tag_elem is not None:
            tag_value = tag_elem.get(W_VAL) or ''
            lines.append(f"Tag: {tag_value or 'none'}")
            owned = tag_value.startswith(ANCHOR_PREFIX)
            lines.append(f"  {'owned anchor' if owned else 'foreign tag'}")
        else:
            lines.append("Tag: none")

        sdt_content = sdt.find(W_SDTCONTENT)
        if sdt_content is None:
            lines.append("WARNING: no sdtContent element")
            lines.append("")
            continue

        paragraphs = list(sdt_content.iter(W_P))
        lines.append(f"Paragraphs: {len(paragraphs)}")
        if paragraphs:
            lines.append(f"First paragraph: \"{format_text_preview(_plain_text(paragraphs[0]), 100)}\"")
        lines.append("")

    return '\n'.join(lines)
