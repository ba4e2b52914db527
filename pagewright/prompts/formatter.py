"""
Prompt formatting for Pagewright.

Renders a FieldDescriptor tree as text for a language model system prompt,
either as readable prose (verbose) or as terse tokens (compact), and builds an
example answer skeleton in the structured-text format the model should echo.
"""

from typing import Any, Dict, List, Optional, Set

import yaml

from ..config import StructureSettings
from ..models import BlockTypeDescriptor, FieldDescriptor, FieldKind, ScalarType


VERBOSE = "verbose"
COMPACT = "compact"
MODES = (VERBOSE, COMPACT)

SECTION_HEADINGS = [
    ("fields", "Content fields"),
    ("relations", "Related items"),
    ("blocks", "Block areas"),
]

COMPACT_LEGEND = (
    "Legend: name:type | name:choice[values] | name:one:Type{fields} | "
    "name:many:Type{fields} | name:blocks[Type{fields}|...] | Type^ = described above"
)

EXAMPLE_VALUES = {
    ScalarType.TEXT.value: "Short text",
    ScalarType.LONG_TEXT.value: "A plain text paragraph.",
    ScalarType.RICH_TEXT.value: "<p>HTML content</p>",
    ScalarType.NUMBER.value: 0,
    ScalarType.BOOLEAN.value: 1,
    ScalarType.DATE.value: "2024-01-31",
}


def partition_fields(tree: List[FieldDescriptor]) -> Dict[str, List[FieldDescriptor]]:
    """
    Split a descriptor list into scalar, relation and block-area buckets.

    Args:
        tree: Descriptor list

    Returns:
        Mapping of bucket name to descriptors, each in original order
    """
    buckets: Dict[str, List[FieldDescriptor]] = {"fields": [], "relations": [], "blocks": []}
    for descriptor in tree:
        if descriptor.is_block_area:
            buckets["blocks"].append(descriptor)
        elif descriptor.is_relation:
            buckets["relations"].append(descriptor)
        else:
            buckets["fields"].append(descriptor)
    return buckets


def format_options(options: Dict[str, Any]) -> str:
    """Render options as '[Label: value, ...]'."""
    return "[" + ", ".join(f"{label}: {value}" for label, value in options.items()) + "]"


class PromptFormatter:
    """
    Renders schema trees for language model prompts.
    """

    def __init__(self, settings: Optional[StructureSettings] = None):
        """
        Initialize the formatter.

        Args:
            settings: Settings providing the type-tag key used in examples
        """
        self.settings = settings or StructureSettings.from_config()

    def format(self, tree: List[FieldDescriptor], mode: str = VERBOSE) -> str:
        """
        Render a descriptor tree.

        Args:
            tree: Top-level descriptors of an object
            mode: 'verbose' or 'compact'

        Returns:
            The rendered structure, one heading per non-empty bucket

        Raises:
            ValueError: If the mode is unknown
        """
        if mode not in MODES:
            raise ValueError(f"Unknown prompt mode '{mode}', expected one of {', '.join(MODES)}")

        described: Set[str] = set()
        buckets = partition_fields(tree)
        sections = []

        if mode == COMPACT:
            sections.append(COMPACT_LEGEND)

        for key, heading in SECTION_HEADINGS:
            if not buckets[key]:
                continue
            lines = [f"{heading}:"]
            for descriptor in buckets[key]:
                if mode == VERBOSE:
                    lines.extend(self._verbose_lines(descriptor, 0, described))
                else:
                    lines.append(self._compact_token(descriptor, described))
            sections.append("\n".join(lines))

        return "\n\n".join(sections)

    def _verbose_lines(self, descriptor: FieldDescriptor, level: int, described: Set[str]) -> List[str]:
        indent = "  " * level
        description = f" - {descriptor.description}" if descriptor.description else ""

        if descriptor.kind == FieldKind.SCALAR:
            line = f"{indent}- {descriptor.title} ({descriptor.name}): {descriptor.value_type}{description}"
            if descriptor.options:
                line += f" Options: {format_options(descriptor.options)}"
            return [line]

        if descriptor.is_block_area:
            lines = [f"{indent}- {descriptor.title} ({descriptor.name}): list of blocks{description}. Allowed block types:"]
            for block_type in descriptor.allowed_types:
                lines.extend(self._verbose_block_lines(block_type, level + 1, described))
            if not descriptor.allowed_types:
                lines.append(f"{indent}  (no block types available)")
            return lines

        shape = "single item" if descriptor.kind == FieldKind.RELATION_SINGLE else "list of items"
        lines = [f"{indent}- {descriptor.title} ({descriptor.name}): {shape} of type {descriptor.value_type}{description}"]
        for child in descriptor.children:
            lines.extend(self._verbose_lines(child, level + 1, described))
        return lines

    def _verbose_block_lines(self, block_type: BlockTypeDescriptor, level: int, described: Set[str]) -> List[str]:
        indent = "  " * level
        if block_type.type_name in described:
            return [f"{indent}- {block_type.title} ({block_type.type_name}): fields as described above"]

        described.add(block_type.type_name)
        if not block_type.children:
            return [f"{indent}- {block_type.title} ({block_type.type_name}): no fields"]

        lines = [f"{indent}- {block_type.title} ({block_type.type_name}) with fields:"]
        for child in block_type.children:
            lines.extend(self._verbose_lines(child, level + 1, described))
        return lines

    def _compact_token(self, descriptor: FieldDescriptor, described: Set[str]) -> str:
        if descriptor.kind == FieldKind.SCALAR:
            token = f"{descriptor.name}:{descriptor.value_type}"
            if descriptor.options:
                token += "[" + "|".join(str(value) for value in descriptor.options.values()) + "]"
            return token

        if descriptor.is_block_area:
            types = [self._compact_block_token(block_type, described) for block_type in descriptor.allowed_types]
            return f"{descriptor.name}:blocks[{'|'.join(types)}]"

        shape = "one" if descriptor.kind == FieldKind.RELATION_SINGLE else "many"
        children = ";".join(self._compact_token(child, described) for child in descriptor.children)
        return f"{descriptor.name}:{shape}:{descriptor.value_type}{{{children}}}"

    def _compact_block_token(self, block_type: BlockTypeDescriptor, described: Set[str]) -> str:
        if block_type.type_name in described:
            return f"{block_type.type_name}^"
        described.add(block_type.type_name)
        children = ";".join(self._compact_token(child, described) for child in block_type.children)
        return f"{block_type.type_name}{{{children}}}"

    def field_names(self, tree: List[FieldDescriptor]) -> List[str]:
        return [descriptor.name for descriptor in tree]

    def build_example(self, tree: List[FieldDescriptor]) -> Dict[str, Any]:
        """
        Build an example value tree matching a descriptor tree.

        Block areas show one entry of their first allowed block type.

        Args:
            tree: Descriptor list

        Returns:
            Example value tree
        """
        example: Dict[str, Any] = {}
        for descriptor in tree:
            if descriptor.kind == FieldKind.SCALAR:
                example[descriptor.name] = self._example_scalar(descriptor)
            elif descriptor.kind == FieldKind.RELATION_SINGLE:
                example[descriptor.name] = self.build_example(descriptor.children)
            elif descriptor.kind == FieldKind.RELATION_MANY:
                example[descriptor.name] = [self.build_example(descriptor.children)]
            elif descriptor.allowed_types:
                block_type = descriptor.allowed_types[0]
                entry = {self.settings.primary_type_tag_key: block_type.type_name}
                entry.update(self.build_example(block_type.children))
                example[descriptor.name] = [entry]
            else:
                example[descriptor.name] = []
        return example

    def _example_scalar(self, descriptor: FieldDescriptor) -> Any:
        if descriptor.options:
            return next(iter(descriptor.options.values()))
        return EXAMPLE_VALUES.get(descriptor.value_type, "Short text")

    def render_example(self, tree: List[FieldDescriptor]) -> str:
        """Render build_example() as structured text."""
        return yaml.safe_dump(self.build_example(tree), sort_keys=False, allow_unicode=True, default_flow_style=False).strip()

    def build_system_prompt(self, tree: List[FieldDescriptor], template: str, mode: str = VERBOSE) -> str:
        """
        Embed a rendered structure into an instruction template.

        The template may use the placeholders {structure}, {field_names},
        {type_tag_key} and {example}; other braces are left untouched.

        Args:
            tree: Descriptor list of the target object
            template: Instruction template
            mode: Structure encoding

        Returns:
            The system prompt
        """
        values = {
            "structure": self.format(tree, mode),
            "field_names": ", ".join(self.field_names(tree)),
            "type_tag_key": self.settings.primary_type_tag_key,
            "example": self.render_example(tree),
        }
        prompt = template
        for placeholder, value in values.items():
            prompt = prompt.replace("{" + placeholder + "}", value)
        return prompt
