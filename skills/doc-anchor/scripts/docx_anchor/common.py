#!/usr/bin/env python3
"""
ABOUTME: Shared constants, exceptions and data classes for paragraph anchoring
ABOUTME: Everything here is plain data; the XML work lives in the sibling modules
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from docx.oxml.ns import qn


# ============================================================
# Constants
# ============================================================

NS = {
    'w': 'http://schemas.openxmlformats.org/wordprocessingml/2006/main',
    'w14': 'http://schemas.microsoft.com/office/word/2010/wordml',
    'mc': 'http://schemas.openxmlformats.org/markup-compatibility/2006',
}

# Internal path of the main document part inside the package
DOCUMENT_PART = 'word/document.xml'

# Reserved tag prefix of the structured containers this system injects
ANCHOR_PREFIX = 'docproof_pid_'

# Owned tags look like docproof_pid_<uuid4>
ANCHOR_TAG_PATTERN = re.compile(re.escape(ANCHOR_PREFIX) + r'[0-9a-f-]+')

# Written into the first non-empty paragraph when no placeholder could be applied
SENTINEL_MARKER = '{{TEST_PLACEHOLDER}}'

# w:docPart value of the placeholder marker inside w:sdtPr
DEFAULT_DOC_PART = 'DefaultPlaceholder'

# Clark-notation tag names used throughout the package
W_BODY = qn('w:body')
W_P = qn('w:p')
W_R = qn('w:r')
W_T = qn('w:t')
W_TBL = qn('w:tbl')
W_TR = qn('w:tr')
W_TC = qn('w:tc')
W_SDT = qn('w:sdt')
W_SDTPR = qn('w:sdtPr')
W_SDTCONTENT = qn('w:sdtContent')
W_ID = qn('w:id')
W_TAG = qn('w:tag')
W_VAL = qn('w:val')
W_PLACEHOLDER = qn('w:placeholder')
W_DOCPART = qn('w:docPart')
W_TXBXCONTENT = qn('w:txbxContent')
W_FOOTNOTE = qn('w:footnote')
W_ENDNOTE = qn('w:endnote')
W_FOOTNOTES = qn('w:footnotes')
W_ENDNOTES = qn('w:endnotes')
MC_FALLBACK = f'{{{NS["mc"]}}}Fallback'
XML_SPACE = qn('xml:space')

# Immediate parent tag -> container classification recorded on each anchor
CONTAINER_TYPES = {
    W_BODY: 'body',
    W_TC: 'table-cell',
    W_TXBXCONTENT: 'text-box',
    W_FOOTNOTE: 'footnote',
    W_ENDNOTE: 'endnote',
}

# Lifecycle states of a generation binding ('editing' is the legacy name of 'draft')
GENERATION_STATUSES = ('draft', 'saved')
LEGACY_STATUS_ALIASES = {'editing': 'draft'}

# Resolution methods reported by the placeholder generator
RESOLVED_BY_ANCHOR = 'anchor'
RESOLVED_BY_TEXT_EXACT = 'text-exact'
RESOLVED_BY_TEXT_CONTAINS = 'text-contains'
UNRESOLVED = 'unresolved'


# ============================================================
# Exceptions
# ============================================================

class DocxAnchorError(Exception):
    """Base class for fatal anchoring errors"""


class MalformedPackageError(DocxAnchorError):
    """Archive unreadable, document part missing or not well-formed"""


class StructuralError(DocxAnchorError):
    """Tree invariant violated while indexing (e.g. paragraph without parent)"""


# ============================================================
# Data Classes
# ============================================================

@dataclass(frozen=True)
class ParagraphAnchor:
    """Snapshot of one indexed paragraph"""
    id: str                              # ANCHOR_PREFIX + uuid4, stored in w:tag
    sequence_id: int                     # Numeric w:id of the container, starts at 1
    text: str                            # Paragraph text at indexing time
    position: int                        # Zero-based order in the paragraph walk
    container_type: Optional[str] = None  # body | table-cell | text-box | footnote | endnote

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'sequence_id': self.sequence_id,
            'text': self.text,
            'position': self.position,
            'container_type': self.container_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParagraphAnchor':
        return cls(
            id=data['id'],
            sequence_id=int(data.get('sequence_id', data.get('numericId', 0))),
            text=data.get('text', ''),
            position=int(data.get('position', 0)),
            container_type=data.get('container_type', data.get('parentType')),
        )


@dataclass
class MalformedContainerWarning:
    """A w:sdt without w:sdtPr or w:sdtContent, found during verification"""
    index: int                   # 1-based order of the container in the document
    missing: List[str]           # Missing parts, e.g. ['sdtPr']

    def __str__(self) -> str:
        return f"Container #{self.index} is malformed (missing {', '.join(self.missing)})"


@dataclass
class UnresolvedAnchorWarning:
    """A binding group that could not be matched to any paragraph"""
    paragraph_id: str
    reason: str

    def __str__(self) -> str:
        return f"{self.paragraph_id}: {self.reason}"


@dataclass
class IntegrityReport:
    """Result of scanning a tree for structured containers"""
    total_containers: int = 0
    owned_container_count: int = 0
    found_ids: List[str] = field(default_factory=list)
    malformed_count: int = 0
    warnings: List[MalformedContainerWarning] = field(default_factory=list)

    @property
    def preserved(self) -> bool:
        return self.owned_container_count > 0

    @property
    def foreign_container_count(self) -> int:
        return self.total_containers - self.owned_container_count - self.malformed_count


def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: remove newlines and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = ' '.join(text.split())
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean
