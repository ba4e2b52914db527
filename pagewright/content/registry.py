"""
Content type registry for Pagewright.

This module keeps the declared content types, resolves inheritance between them
and answers the structural questions introspection and population ask: which
types are instantiable, how a relation is linked, and which block types an area
accepts.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..config import StructureSettings
from ..exceptions import UnknownContentTypeError
from ..models import ContentType, FieldDefinition, RelationCardinality, RelationDefinition


def normalise_type_name(name: str) -> str:
    """Read '\\' and '-' as namespace separators ('App-Blocks-Text' -> 'App.Blocks.Text')."""
    return name.strip().replace("\\", ".").replace("-", ".")


def short_type_name(name: str) -> str:
    return normalise_type_name(name).split(".")[-1]


class TypeRegistry:
    """
    Registry of all declared content types.
    """

    def __init__(self, settings: Optional[StructureSettings] = None):
        """
        Initialize an empty registry.

        Args:
            settings: Structure settings naming the block-area and block base types
        """
        self.settings = settings or StructureSettings.from_config()
        self._types: Dict[str, ContentType] = {}

    @classmethod
    def from_yaml(cls, path: str, settings: Optional[StructureSettings] = None) -> "TypeRegistry":
        """
        Build a registry from a YAML content model file.

        Args:
            path: Path to the content model file
            settings: Structure settings to use

        Returns:
            A populated registry
        """
        registry = cls(settings)
        registry.load_yaml(path)
        return registry

    def load_yaml(self, path: str) -> int:
        """
        Register every content type declared in a YAML file.

        Args:
            path: Path to the content model file

        Returns:
            Number of types registered
        """
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        count = self.load_dict(data)
        logging.info(f"Loaded {count} content types from {path}")
        return count

    def load_dict(self, data: Dict[str, Any]) -> int:
        """
        Register content types from a parsed content model.

        Accepts either ``{"types": [{...}, ...]}`` or a mapping of type name to
        type definition.

        Args:
            data: Parsed content model

        Returns:
            Number of types registered
        """
        entries = data.get("types", data) if isinstance(data, dict) else data
        count = 0

        if isinstance(entries, dict):
            for name, definition in entries.items():
                definition = dict(definition or {})
                definition.setdefault("name", name)
                self.register_type(ContentType(**definition))
                count += 1
        else:
            for definition in entries or []:
                self.register_type(ContentType(**definition))
                count += 1

        return count

    def register_type(self, content_type: ContentType) -> None:
        """
        Register a content type, replacing any type of the same name.

        Args:
            content_type: The content type to register
        """
        self._types[content_type.name] = content_type

    def list_types(self) -> List[str]:
        """
        Get all registered type names in registration order.

        Returns:
            List of type names
        """
        return list(self._types.keys())

    def resolve_type_name(self, name: Optional[str]) -> Optional[str]:
        """
        Resolve a possibly abbreviated type name to a registered one.

        Tries the exact name, then the name with '\\' and '-' read as namespace
        separators, then an unambiguous short name.

        Args:
            name: Type name as given by configuration or model output

        Returns:
            The registered type name, or None if it cannot be resolved
        """
        if not name or not isinstance(name, str):
            return None
        if name in self._types:
            return name

        wanted = normalise_type_name(name)
        for registered in self._types:
            if normalise_type_name(registered) == wanted:
                return registered

        if "." not in wanted:
            matches = [registered for registered in self._types if short_type_name(registered) == wanted]
            if len(matches) == 1:
                return matches[0]

        return None

    def has_type(self, name: str) -> bool:
        return self.resolve_type_name(name) is not None

    def get_type(self, name: str) -> ContentType:
        """
        Get a content type by name.

        Args:
            name: Type name

        Returns:
            The content type

        Raises:
            UnknownContentTypeError: If the type is not registered
        """
        resolved = self.resolve_type_name(name)
        if resolved is None:
            raise UnknownContentTypeError(str(name))
        return self._types[resolved]

    def ancestry(self, name: str) -> List[str]:
        """
        List a type and its ancestors, nearest first.

        Args:
            name: Type name

        Returns:
            Type names from the type itself up to its root

        Raises:
            UnknownContentTypeError: If the type is not registered
        """
        chain = []
        current: Optional[ContentType] = self.get_type(name)

        while current is not None and current.name not in chain:
            chain.append(current.name)
            if not current.parent:
                break
            parent_name = self.resolve_type_name(current.parent)
            if parent_name is None:
                logging.warning(f"Parent type '{current.parent}' of {current.name} is not registered")
                break
            current = self._types[parent_name]

        return chain

    def is_a(self, name: str, base: str) -> bool:
        """
        Check whether a type is, or inherits from, another type.

        Args:
            name: Type name to check
            base: Candidate ancestor

        Returns:
            True if name is base or a descendant of it
        """
        if not name or not base:
            return False
        if normalise_type_name(name) == normalise_type_name(base):
            return True
        if not self.has_type(name):
            return False

        base_resolved = self.resolve_type_name(base) or base
        return base_resolved in self.ancestry(name)

    def is_instantiable(self, name: str) -> bool:
        """Registered, concrete and creatable."""
        resolved = self.resolve_type_name(name)
        if resolved is None:
            return False
        content_type = self._types[resolved]
        return not content_type.abstract and content_type.can_create

    def fields_for(self, name: str) -> List[FieldDefinition]:
        """Stored fields of a type including inherited ones, ancestors first."""
        return self._merge(name, lambda content_type: content_type.fields)

    def editor_fields_for(self, name: str) -> List[FieldDefinition]:
        """Editor fields of a type including inherited ones, ancestors first."""
        return self._merge(name, lambda content_type: content_type.editor_fields)

    def relations_for(self, name: str) -> List[RelationDefinition]:
        """Relations of a type including inherited ones, ancestors first."""
        return self._merge(name, lambda content_type: content_type.relations)

    def get_relation(self, type_name: str, relation_name: str) -> Optional[RelationDefinition]:
        for relation in self.relations_for(type_name):
            if relation.name == relation_name:
                return relation
        return None

    def _merge(self, name: str, attribute) -> List[Any]:
        merged: List[Any] = []
        positions: Dict[str, int] = {}

        for type_name in reversed(self.ancestry(name)):
            for item in attribute(self._types[type_name]):
                if item.name in positions:
                    merged[positions[item.name]] = item
                else:
                    positions[item.name] = len(merged)
                    merged.append(item)

        return merged

    def cardinality_of(self, relation: RelationDefinition) -> RelationCardinality:
        """
        Resolve the cardinality of a declared relation.

        A has_one whose target is the block-area container type (or inherits
        from it) is a block area.

        Args:
            relation: The relation definition

        Returns:
            The relation cardinality
        """
        if relation.kind == "has_one":
            if self.is_a(relation.target, self.settings.block_area_type):
                return RelationCardinality.BLOCK_AREA
            return RelationCardinality.SINGLE
        if relation.kind == "has_many":
            return RelationCardinality.MULTI_OWNED
        return RelationCardinality.MULTI_ASSOCIATED

    def find_owner_key(self, child_type: str, owner_type: str, relation: Optional[RelationDefinition] = None) -> Optional[str]:
        """
        Find the has_one relation on a child type that points back at its owner.

        Args:
            child_type: Type of the owned objects
            owner_type: Type of the owning object
            relation: The owner's has_many relation, whose declared owner_key wins

        Returns:
            Name of the has_one relation on the child, or None if there is none
        """
        if relation is not None and relation.owner_key:
            return relation.owner_key

        for candidate in self.relations_for(child_type):
            if candidate.kind == "has_one" and self.is_a(owner_type, candidate.target):
                return candidate.name
        return None

    def concrete_subtypes(self, base: str) -> List[str]:
        """
        List every instantiable type that is-a the given base, in registration order.

        Args:
            base: Base type name

        Returns:
            Type names
        """
        return [
            name for name in self._types
            if self.is_a(name, base) and self.is_instantiable(name)
        ]

    def block_types(self) -> List[str]:
        """Every concrete, creatable block type."""
        return self.concrete_subtypes(self.settings.block_base_type)

    def is_block_type(self, name: str) -> bool:
        return self.is_instantiable(name) and self.is_a(name, self.settings.block_base_type)

    def allowed_block_types(self, owner_type: str, area_name: str) -> List[str]:
        """
        Discover the block types a block area accepts.

        Uses the area's configured ``allowed_blocks`` entry, then the type-wide
        ``allowed_elements`` list (nearest declaring type wins), and falls back to
        every concrete block type when neither is configured or none of the
        configured names resolves to a block type.

        Args:
            owner_type: Type owning the block area
            area_name: Name of the block-area relation

        Returns:
            Registered block type names
        """
        configured: List[str] = []
        for type_name in self.ancestry(owner_type):
            content_type = self._types[type_name]
            if content_type.allowed_blocks.get(area_name):
                configured = content_type.allowed_blocks[area_name]
                break
        if not configured:
            for type_name in self.ancestry(owner_type):
                if self._types[type_name].allowed_elements:
                    configured = self._types[type_name].allowed_elements
                    break

        allowed: List[str] = []
        for name in configured:
            resolved = self.resolve_type_name(name)
            if resolved is None:
                logging.warning(f"Allowed block type '{name}' for {owner_type}.{area_name} is not registered")
                continue
            if not self.is_block_type(resolved):
                logging.warning(f"Allowed block type '{name}' for {owner_type}.{area_name} is not a creatable block type")
                continue
            if resolved not in allowed:
                allowed.append(resolved)

        if allowed:
            return allowed
        return self.block_types()
