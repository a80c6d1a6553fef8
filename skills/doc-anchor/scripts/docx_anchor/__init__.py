"""
ABOUTME: Paragraph anchoring and placeholder substitution for DOCX packages
"""

from .bindings import (
    GenerationBinding,
    ParagraphBindingGroup,
    ValueBinding,
    group_bindings,
    load_bindings,
)
from .common import (
    ANCHOR_PREFIX,
    SENTINEL_MARKER,
    DocxAnchorError,
    IntegrityReport,
    MalformedContainerWarning,
    MalformedPackageError,
    ParagraphAnchor,
    StructuralError,
    UnresolvedAnchorWarning,
)
from .indexer import (
    IndexResult,
    index_package,
    index_tree,
    load_anchor_map,
    save_anchor_map,
    unwrap_anchors,
)
from .package import DocxPackage, open_package, serialize_package
from .placeholder import (
    GenerationResult,
    PlaceholderToken,
    Resolution,
    generate_package,
    generate_placeholders,
    parse_placeholder_token,
)
from .verifier import (
    IndexStatus,
    build_container_report,
    check_integrity,
    check_package,
    index_status,
    is_indexed,
)
from .walker import ParagraphRef, enumerate_paragraphs, paragraph_text

__all__ = [
    'ANCHOR_PREFIX',
    'SENTINEL_MARKER',
    'DocxAnchorError',
    'DocxPackage',
    'GenerationBinding',
    'GenerationResult',
    'IndexResult',
    'IndexStatus',
    'IntegrityReport',
    'MalformedContainerWarning',
    'MalformedPackageError',
    'ParagraphAnchor',
    'ParagraphBindingGroup',
    'ParagraphRef',
    'PlaceholderToken',
    'Resolution',
    'StructuralError',
    'UnresolvedAnchorWarning',
    'ValueBinding',
    'build_container_report',
    'check_integrity',
    'check_package',
    'enumerate_paragraphs',
    'generate_package',
    'generate_placeholders',
    'group_bindings',
    'index_package',
    'index_status',
    'index_tree',
    'is_indexed',
    'load_anchor_map',
    'load_bindings',
    'open_package',
    'paragraph_text',
    'parse_placeholder_token',
    'save_anchor_map',
    'serialize_package',
    'unwrap_anchors',
]
