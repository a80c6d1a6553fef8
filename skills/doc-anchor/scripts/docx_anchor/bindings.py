"""
ABOUTME: Binding records (value and generation) and their grouping by paragraph
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from .common import GENERATION_STATUSES, LEGACY_STATUS_ALIASES


@dataclass(frozen=True)
class ValueBinding:
    """A substring of a paragraph bound to an external data field"""
    paragraph_id: str
    binding_id: str
    source_field: str
    selected_text: str

    def to_token_dict(self) -> Dict[str, Any]:
        return {
            'binding_id': self.binding_id,
            'source_field': self.source_field,
            'selected_text': self.selected_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValueBinding':
        """Build from a record; camelCase names of stored configurations are accepted."""
        return cls(
            paragraph_id=data.get('paragraph_id', data.get('paragraphId', '')),
            binding_id=data.get('binding_id', data.get('id', '')),
            source_field=data.get('source_field', data.get('excelHeader', '')),
            selected_text=data.get('selected_text', data.get('selectedText', '')),
        )


@dataclass(frozen=True)
class GenerationBinding:
    """An instruction for generating the replacement text of a paragraph"""
    paragraph_id: str
    binding_id: str
    instruction_text: str
    status: str = 'draft'
    order: int = 0

    def __post_init__(self):
        if self.status not in GENERATION_STATUSES:
            raise ValueError(
                f"Invalid status '{self.status}' for binding {self.binding_id} "
                f"(expected one of: {', '.join(GENERATION_STATUSES)})"
            )

    def to_token_dict(self) -> Dict[str, Any]:
        return {
            'binding_id': self.binding_id,
            'instruction_text': self.instruction_text,
            'status': self.status,
            'order': self.order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationBinding':
        status = data.get('status', 'draft')
        status = LEGACY_STATUS_ALIASES.get(status, status)
        return cls(
            paragraph_id=data.get('paragraph_id', data.get('paragraphId', '')),
            binding_id=data.get('binding_id', data.get('id', '')),
            instruction_text=data.get('instruction_text', data.get('prompt', '')),
            status=status,
            order=int(data.get('order', 0)),
        )


@dataclass
class ParagraphBindingGroup:
    """All bindings that target one paragraph"""
    paragraph_id: str
    value_bindings: List[ValueBinding] = field(default_factory=list)
    generation_bindings: List[GenerationBinding] = field(default_factory=list)


def group_bindings(
    value_bindings: Iterable[ValueBinding],
    generation_bindings: Iterable[GenerationBinding],
) -> Dict[str, ParagraphBindingGroup]:
    """
    Group bindings by paragraph_id.

    Input order is preserved inside each group. A paragraph with bindings of
    only one kind still gets a group with an empty list for the other kind.
    """
    groups: Dict[str, ParagraphBindingGroup] = {}

    for binding in value_bindings:
        group = groups.setdefault(binding.paragraph_id, ParagraphBindingGroup(binding.paragraph_id))
        group.value_bindings.append(binding)

    for binding in generation_bindings:
        group = groups.setdefault(binding.paragraph_id, ParagraphBindingGroup(binding.paragraph_id))
        group.generation_bindings.append(binding)

    return groups


def load_bindings(path) -> Tuple[List[ValueBinding], List[GenerationBinding]]:
    """
    Load bindings from a JSON file.

    Expected shape:
        {"value_bindings": [...], "generation_bindings": [...]}

    The stored configuration names "linkMappings" / "aiInstructions" are
    accepted as aliases of the two lists.

    Raises:
        ValueError: If a generation binding carries an unknown status
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    raw_values = data.get('value_bindings', data.get('linkMappings', [])) or []
    raw_generations = data.get('generation_bindings', data.get('aiInstructions', [])) or []

    value_bindings = [ValueBinding.from_dict(item) for item in raw_values]
    generation_bindings = [GenerationBinding.from_dict(item) for item in raw_generations]
    return value_bindings, generation_bindings
