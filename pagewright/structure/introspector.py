"""
Schema introspection for Pagewright.

Walks the declared fields and relations of a content object into a bounded
FieldDescriptor tree that can be rendered into a language model prompt.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..cache import StructureCache
from ..config import StructureSettings
from ..content.registry import TypeRegistry, short_type_name
from ..exceptions import PagewrightError
from ..models import (
    BlockTypeDescriptor,
    CARDINALITY_KINDS,
    FieldDefinition,
    FieldDescriptor,
    FieldKind,
    RelationCardinality,
    RelationDefinition,
    ScalarType,
)
from ..models.schema import format_field_title


BOOLEAN_OPTIONS = {"No": 0, "Yes": 1}


def parse_enum_options(type_arguments: str) -> Optional[Dict[str, Any]]:
    """
    Read the value list of an Enum declaration.

    Args:
        type_arguments: Text inside the parentheses, e.g. "'Draft,Published', 'Draft'"

    Returns:
        Options as value -> value, or None if no values are declared
    """
    if not type_arguments.strip():
        return None

    quoted = re.match(r"""\s*(['"])(.*?)\1""", type_arguments, re.DOTALL)
    values_text = quoted.group(2) if quoted else type_arguments
    values = [value.strip().strip("'\"") for value in values_text.split(",")]
    values = [value for value in values if value]
    if not values:
        return None
    return {value: value for value in values}


class SchemaIntrospector:
    """
    Builds FieldDescriptor trees from the content model.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        settings: Optional[StructureSettings] = None,
        cache: Optional[StructureCache] = None
    ):
        """
        Initialize the introspector.

        Args:
            registry: Registry of declared content types
            settings: Inclusion, exclusion and depth settings (defaults to the registry's)
            cache: Optional cache used by get_structure
        """
        self.registry = registry
        self.settings = settings or registry.settings
        self.cache = cache
        self._block_types: Dict[Tuple[str, int], BlockTypeDescriptor] = {}

    def introspect(self, content_object: Any, depth: int = 0) -> List[FieldDescriptor]:
        """
        Describe the content fields of an object.

        Never raises: problems with the content model are logged and the
        affected fields are left out.

        Args:
            content_object: Object exposing get_type()
            depth: Relation depth the object sits at

        Returns:
            Scalars, then relations, then block areas, each in declaration order
        """
        return self.introspect_type(content_object.get_type(), depth)

    def introspect_type(self, type_name: str, depth: int = 0) -> List[FieldDescriptor]:
        """Same as introspect(), for a type name instead of an object."""
        if depth == 0:
            self._block_types = {}
        try:
            return self.describe_type(type_name, depth)
        except PagewrightError as e:
            logging.warning(f"Could not introspect {type_name}: {e}")
            return []

    def get_structure(self, content_object: Any, refresh_cache: bool = False) -> List[FieldDescriptor]:
        """
        Introspect an object through the structure cache.

        Args:
            content_object: Object to describe
            refresh_cache: Drop any cached structure for the object first

        Returns:
            The descriptor tree
        """
        if self.cache is None:
            return self.introspect(content_object)

        key = self.cache.generate_cache_key(content_object)
        if refresh_cache:
            self.cache.delete(key)
        self.cache.delete_other_versions(key)
        return self.cache.get_or_create(key, lambda: self.introspect(content_object))

    def describe_type(self, type_name: str, depth: int = 0, block_depth: int = 0) -> List[FieldDescriptor]:
        """
        Describe a content type at a given depth.

        Args:
            type_name: Type to describe
            depth: Relation depth; nothing is described at or beyond the maximum
            block_depth: Number of block areas above this type

        Returns:
            The type's descriptors, empty once the depth bound is reached
        """
        if depth >= self.settings.max_relation_depth:
            return []

        content_type = self.registry.get_type(type_name)
        scalars = self.describe_scalar_fields(content_type.name)
        relations: List[FieldDescriptor] = []
        areas: List[FieldDescriptor] = []

        for relation in self.registry.relations_for(content_type.name):
            if not self.should_include_relation(content_type.name, relation):
                logging.debug(f"Excluding relation {content_type.name}.{relation.name}")
                continue

            descriptor = self._describe_relation(content_type.name, relation, depth, block_depth)
            if descriptor is None:
                continue
            if descriptor.is_block_area:
                areas.append(descriptor)
            else:
                relations.append(descriptor)

        return scalars + relations + areas

    def describe_scalar_fields(self, type_name: str) -> List[FieldDescriptor]:
        """
        Describe the scalar content fields of a type.

        Editor fields are consulted before stored fields; the first definition
        of a name decides whether it is a content field.

        Args:
            type_name: Type to describe

        Returns:
            Scalar descriptors in declaration order
        """
        relation_names = set()
        for relation in self.registry.relations_for(type_name):
            relation_names.add(relation.name)
            relation_names.add(f"{relation.name}ID")

        seen = set()
        descriptors = []
        definitions = self.registry.editor_fields_for(type_name) + self.registry.fields_for(type_name)

        for definition in definitions:
            if definition.name in seen:
                continue
            seen.add(definition.name)

            if definition.name in self.settings.excluded_field_names or definition.name in relation_names:
                continue

            scalar_type = self.content_field_type(definition)
            if scalar_type is None:
                logging.debug(f"Skipping non-content field {type_name}.{definition.name} ({definition.field_type})")
                continue

            descriptors.append(FieldDescriptor(
                name=definition.name,
                title=definition.title or format_field_title(definition.name),
                kind=FieldKind.SCALAR,
                value_type=scalar_type.value,
                description=definition.description,
                options=self.field_options(definition, scalar_type)
            ))

        return descriptors

    def content_field_type(self, definition: FieldDefinition) -> Optional[ScalarType]:
        """Map a declared field type onto a scalar subtype, or None for non-content fields."""
        mapped = self.settings.content_field_types.get(definition.base_type)
        if mapped is None:
            return None
        try:
            return ScalarType(mapped)
        except ValueError:
            logging.warning(f"Unknown scalar type '{mapped}' configured for {definition.base_type}")
            return None

    def field_options(self, definition: FieldDefinition, scalar_type: ScalarType) -> Optional[Dict[str, Any]]:
        if definition.options:
            return dict(definition.options)
        if scalar_type == ScalarType.BOOLEAN:
            return dict(BOOLEAN_OPTIONS)
        if scalar_type == ScalarType.CHOICE and definition.base_type == "Enum":
            return parse_enum_options(definition.type_arguments)
        return None

    def should_include_relation(self, owner_type: str, relation: RelationDefinition) -> bool:
        """
        Decide whether a relation belongs in the schema tree.

        Block areas are always included, except a block's own Parent link
        back to its area. Other relations need an explicit
        'Owner.Relation' entry or a target that is-a an allow-listed type;
        targets that are-a system type are excluded unless named explicitly.

        Args:
            owner_type: Type declaring the relation
            relation: The relation

        Returns:
            True if the relation should be described
        """
        if self.registry.cardinality_of(relation) == RelationCardinality.BLOCK_AREA:
            return relation.name != "Parent"

        if self._is_specifically_included(owner_type, relation.name):
            return True

        for system_type in self.settings.excluded_system_types:
            if self.registry.is_a(relation.target, system_type):
                return False

        for included in self.settings.included_relationship_types:
            if self.registry.is_a(relation.target, included):
                return True

        return False

    def _is_specifically_included(self, owner_type: str, relation_name: str) -> bool:
        specific = set(self.settings.included_specific_relations)
        if not specific:
            return False
        for type_name in self.registry.ancestry(owner_type):
            if f"{type_name}.{relation_name}" in specific:
                return True
            if f"{short_type_name(type_name)}.{relation_name}" in specific:
                return True
        return False

    def _describe_relation(
        self,
        owner_type: str,
        relation: RelationDefinition,
        depth: int,
        block_depth: int
    ) -> Optional[FieldDescriptor]:
        target = self.registry.resolve_type_name(relation.target)
        if target is None:
            logging.warning(f"Skipping relation {owner_type}.{relation.name}: target type '{relation.target}' is not registered")
            return None

        cardinality = self.registry.cardinality_of(relation)
        if cardinality == RelationCardinality.BLOCK_AREA:
            return self._describe_block_area(owner_type, relation, target, block_depth)

        target_type = self.registry.get_type(target)
        label = self.settings.relationship_labels.get(relation.kind, relation.kind)

        return FieldDescriptor(
            name=relation.name,
            kind=CARDINALITY_KINDS[cardinality],
            value_type=target,
            cardinality=cardinality,
            description=relation.description or f"{label} ({target_type.display_title})",
            children=self.describe_type(target, depth + 1, block_depth)
        )

    def _describe_block_area(
        self,
        owner_type: str,
        relation: RelationDefinition,
        target: str,
        block_depth: int
    ) -> FieldDescriptor:
        allowed_types: List[BlockTypeDescriptor] = []
        if block_depth < self.settings.max_block_depth:
            for block_type in self.registry.allowed_block_types(owner_type, relation.name):
                allowed_types.append(self.describe_block_type(block_type, block_depth + 1))
        else:
            logging.debug(f"Block depth limit reached at {owner_type}.{relation.name}")

        return FieldDescriptor(
            name=relation.name,
            kind=FieldKind.BLOCK_AREA,
            value_type=target,
            cardinality=RelationCardinality.BLOCK_AREA,
            description=relation.description or "Ordered list of content blocks",
            allowed_types=allowed_types
        )

    def describe_block_type(self, type_name: str, block_depth: int = 1) -> BlockTypeDescriptor:
        """
        Describe one block type, once per block depth.

        Args:
            type_name: Block type name
            block_depth: Block nesting level of the block

        Returns:
            The memoized block type descriptor
        """
        key = (type_name, block_depth)
        if key not in self._block_types:
            content_type = self.registry.get_type(type_name)
            self._block_types[key] = BlockTypeDescriptor(
                type_name=content_type.name,
                title=content_type.display_title,
                children=self.describe_type(content_type.name, 0, block_depth)
            )
        return self._block_types[key]
