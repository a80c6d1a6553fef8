#!/usr/bin/env python3
"""
ABOUTME: Collapses each bound paragraph into one JSON placeholder token
ABOUTME: Locates paragraphs by anchor container first, then by recorded text
"""

import copy
import json
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from lxml import etree

from .bindings import (
    GenerationBinding,
    ParagraphBindingGroup,
    ValueBinding,
    group_bindings,
)
from .common import (
    RESOLVED_BY_ANCHOR,
    RESOLVED_BY_TEXT_CONTAINS,
    RESOLVED_BY_TEXT_EXACT,
    SENTINEL_MARKER,
    UNRESOLVED,
    W_P,
    W_R,
    W_SDT,
    W_SDTCONTENT,
    W_SDTPR,
    W_T,
    W_TAG,
    W_VAL,
    XML_SPACE,
    ParagraphAnchor,
    UnresolvedAnchorWarning,
    format_text_preview,
)
from .package import open_package, serialize_package
from .walker import enumerate_paragraphs, owned_text_nodes, paragraph_text


# ============================================================
# Placeholder token
# ============================================================

TOKEN_KEYS = ('paragraph_id', 'original_text', 'value_bindings', 'generation_bindings')


@dataclass
class PlaceholderToken:
    """Everything the renderer needs to expand one paragraph"""
    paragraph_id: str
    original_text: str
    value_bindings: List[ValueBinding] = field(default_factory=list)
    generation_bindings: List[GenerationBinding] = field(default_factory=list)

    @classmethod
    def from_group(cls, group: ParagraphBindingGroup, original_text: str) -> 'PlaceholderToken':
        return cls(
            paragraph_id=group.paragraph_id,
            original_text=original_text,
            value_bindings=list(group.value_bindings),
            generation_bindings=list(group.generation_bindings),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'paragraph_id': self.paragraph_id,
            'original_text': self.original_text,
            'value_bindings': [b.to_token_dict() for b in self.value_bindings],
            'generation_bindings': [b.to_token_dict() for b in self.generation_bindings],
        }

    def to_json(self) -> str:
        # Single line, key order fixed by to_dict()
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_placeholder_token(text: str) -> PlaceholderToken:
    """
    Parse the text of a placeholder paragraph back into a PlaceholderToken.

    Raises:
        ValueError: If text is not a serialized token
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Not a placeholder token: {e}") from e
    if not isinstance(data, dict) or any(key not in data for key in TOKEN_KEYS):
        raise ValueError(f"Placeholder token must be an object with keys {', '.join(TOKEN_KEYS)}")

    paragraph_id = data['paragraph_id']
    return PlaceholderToken(
        paragraph_id=paragraph_id,
        original_text=data['original_text'],
        value_bindings=[
            ValueBinding.from_dict({**item, 'paragraph_id': paragraph_id})
            for item in data['value_bindings']
        ],
        generation_bindings=[
            GenerationBinding.from_dict({**item, 'paragraph_id': paragraph_id})
            for item in data['generation_bindings']
        ],
    )


# ============================================================
# Paragraph resolution
# ============================================================

@dataclass
class Resolution:
    """Outcome of locating the paragraph for one binding group"""
    paragraph_id: str
    method: str                          # anchor | text-exact | text-contains | unresolved
    paragraph: Optional[etree._Element] = None

    @property
    def resolved(self) -> bool:
        return self.method != UNRESOLVED


class _Resolver:
    """
    Ordered lookup strategies over one tree.

    Every resolved paragraph is claimed, and a claimed paragraph is never
    handed to a second group.
    """

    def __init__(self, tree, anchors: Dict[str, ParagraphAnchor]):
        self.tree = tree
        self.anchors = anchors
        self._containers = self._index_containers(tree)
        self._claimed: Set[etree._Element] = set()
        self.fallbacks: List[Callable[[str], Optional[Resolution]]] = [
            self._by_exact_text,
            self._by_contained_text,
        ]

    @staticmethod
    def _index_containers(tree) -> Dict[str, etree._Element]:
        """Map every w:tag value to the first container carrying it."""
        containers: Dict[str, etree._Element] = {}
        for sdt in tree.iter(W_SDT):
            sdt_pr = sdt.find(W_SDTPR)
            if sdt_pr is None:
                continue
            for tag in sdt_pr.findall(W_TAG):
                value = tag.get(W_VAL)
                if value and value not in containers:
                    containers[value] = sdt
        return containers

    def _recorded_text(self, paragraph_id: str) -> str:
        anchor = self.anchors.get(paragraph_id)
        return anchor.text if anchor is not None else ''

    def _by_anchor(self, paragraph_id: str) -> Optional[Resolution]:
        sdt = self._containers.get(paragraph_id)
        if sdt is None:
            return None
        content = sdt.find(W_SDTCONTENT)
        if content is None:
            return None
        paragraph = next(content.iter(W_P), None)
        if paragraph is None or paragraph in self._claimed:
            return None
        return Resolution(paragraph_id, RESOLVED_BY_ANCHOR, paragraph)

    def _match_text(self, paragraph_id: str, method: str,
                    predicate: Callable[[str, str], bool]) -> Optional[Resolution]:
        recorded = self._recorded_text(paragraph_id)
        if not recorded:
            return None
        for ref in enumerate_paragraphs(self.tree):
            if ref.element in self._claimed:
                continue
            if predicate(paragraph_text(ref.element), recorded):
                return Resolution(paragraph_id, method, ref.element)
        return None

    def _by_exact_text(self, paragraph_id: str) -> Optional[Resolution]:
        return self._match_text(paragraph_id, RESOLVED_BY_TEXT_EXACT,
                                lambda text, recorded: text == recorded)

    def _by_contained_text(self, paragraph_id: str) -> Optional[Resolution]:
        # First match in document order wins, even if several paragraphs qualify
        return self._match_text(paragraph_id, RESOLVED_BY_TEXT_CONTAINS,
                                lambda text, recorded: recorded in text)

    def _claim(self, resolution: Resolution) -> Resolution:
        if resolution.paragraph is not None:
            self._claimed.add(resolution.paragraph)
        return resolution

    def resolve_all(self, paragraph_ids: List[str]) -> List[Resolution]:
        """
        Resolve every id before any paragraph is rewritten.

        Anchor lookups run for all ids first, so a paragraph whose container
        survived stays with its own group. Text fallbacks then only see
        paragraphs nobody has claimed.

        Returns:
            One Resolution per id, in the order of paragraph_ids
        """
        found: Dict[str, Resolution] = {}
        for paragraph_id in paragraph_ids:
            resolution = self._by_anchor(paragraph_id)
            if resolution is not None:
                found[paragraph_id] = self._claim(resolution)

        for paragraph_id in paragraph_ids:
            if paragraph_id in found:
                continue
            resolution = Resolution(paragraph_id, UNRESOLVED)
            for strategy in self.fallbacks:
                match = strategy(paragraph_id)
                if match is not None:
                    resolution = self._claim(match)
                    break
            found[paragraph_id] = resolution

        return [found[paragraph_id] for paragraph_id in paragraph_ids]


# ============================================================
# Paragraph rewriting
# ============================================================

def replace_paragraph_text(paragraph, text: str):
    """
    Replace the whole visible text of a paragraph.

    The first w:t receives the text; every other w:t of the paragraph is
    emptied but kept, so run formatting survives. A run is appended when the
    paragraph has no w:t at all.
    """
    nodes = owned_text_nodes(paragraph)
    if not nodes:
        run = etree.SubElement(paragraph, W_R)
        nodes = [etree.SubElement(run, W_T)]

    first = nodes[0]
    first.text = text
    first.set(XML_SPACE, 'preserve')
    for node in nodes[1:]:
        node.text = ''


def mark_first_paragraph(tree, marker: str = SENTINEL_MARKER) -> Optional[etree._Element]:
    """
    Prefix the first non-empty paragraph with a marker.

    Returns:
        The marked paragraph, or None if the document has no text
    """
    for ref in enumerate_paragraphs(tree):
        for node in owned_text_nodes(ref.element):
            if node.text and node.text.strip():
                node.text = f"{marker} {node.text}"
                node.set(XML_SPACE, 'preserve')
                return ref.element
    return None


# ============================================================
# Generation
# ============================================================

@dataclass
class GenerationResult:
    """Placeholder tree plus per-group outcome"""
    tree: etree._Element
    applied_count: int = 0
    unresolved: List[str] = field(default_factory=list)
    resolutions: List[Resolution] = field(default_factory=list)
    warnings: List[UnresolvedAnchorWarning] = field(default_factory=list)
    sentinel_applied: bool = False


def generate_placeholders(
    root,
    anchors: Dict[str, ParagraphAnchor],
    binding_groups: Dict[str, ParagraphBindingGroup],
    verbose: bool = False,
) -> GenerationResult:
    """
    Write one placeholder token into every bound paragraph.

    Each group is resolved by anchor container, then by exact recorded text,
    then by contained recorded text. All groups are resolved before any
    paragraph is rewritten, and no paragraph receives more than one token.
    Unresolved groups are reported in the
    result and do not stop processing. When nothing could be applied, the
    first non-empty paragraph is prefixed with SENTINEL_MARKER so the failure
    is visible in the output document.

    The input tree is not modified; the result carries a modified copy.

    Args:
        root: Indexed document tree
        anchors: Anchor map from indexing (anchor id -> ParagraphAnchor)
        binding_groups: Output of group_bindings()
        verbose: Print one line per group

    Returns:
        GenerationResult
    """
    tree = copy.deepcopy(root)
    result = GenerationResult(tree=tree)
    resolver = _Resolver(tree, anchors)

    resolutions = resolver.resolve_all(list(binding_groups))
    for resolution in resolutions:
        paragraph_id = resolution.paragraph_id
        group = binding_groups[paragraph_id]
        result.resolutions.append(resolution)

        if not resolution.resolved:
            if paragraph_id in anchors:
                reason = "no container with this tag and no paragraph matching its recorded text"
            else:
                reason = "no container with this tag and no recorded text to fall back on"
            warning = UnresolvedAnchorWarning(paragraph_id=paragraph_id, reason=reason)
            result.unresolved.append(paragraph_id)
            result.warnings.append(warning)
            if verbose:
                print(f"  [Unresolved] {warning}", file=sys.stderr)
            continue

        anchor = anchors.get(paragraph_id)
        original_text = anchor.text if anchor is not None else paragraph_text(resolution.paragraph)
        token = PlaceholderToken.from_group(group, original_text)
        replace_paragraph_text(resolution.paragraph, token.to_json())
        result.applied_count += 1

        if verbose:
            print(f"  [{resolution.method}] {paragraph_id}: "
                  f"{len(group.value_bindings)} value, {len(group.generation_bindings)} generation "
                  f"binding(s) on \"{format_text_preview(original_text)}\"")

    if result.applied_count == 0:
        marked = mark_first_paragraph(tree)
        result.sentinel_applied = marked is not None
        if verbose:
            if marked is not None:
                print(f"  Warning: no placeholder applied, marked first paragraph with {SENTINEL_MARKER}",
                      file=sys.stderr)
            else:
                print("  Warning: no placeholder applied and document has no text to mark",
                      file=sys.stderr)

    return result


def generate_package(
    data: bytes,
    anchors: Dict[str, ParagraphAnchor],
    value_bindings: Iterable[ValueBinding],
    generation_bindings: Iterable[GenerationBinding],
    verbose: bool = False,
) -> Tuple[bytes, GenerationResult]:
    """
    Produce the placeholder package for an indexed DOCX.

    Returns:
        (placeholder package bytes, GenerationResult)

    Raises:
        MalformedPackageError: If the package cannot be opened
    """
    package = open_package(data)
    groups = group_bindings(value_bindings, generation_bindings)
    if verbose:
        print(f"Binding groups: {len(groups)}")
    result = generate_placeholders(package.root, anchors, groups, verbose=verbose)
    package.root = result.tree
    return serialize_package(package), result
