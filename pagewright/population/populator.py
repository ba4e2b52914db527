"""
Content population for Pagewright.

Applies a recovered value tree to a live content object: scalar fields are
written directly, relations create and link new related objects, and block
areas get typed, sorted blocks. The whole call runs in one transaction.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import StructureSettings
from ..content import ContentObject, ContentStore
from ..exceptions import PopulationError
from ..models import RelationCardinality, RelationDefinition


class ContentPopulator:
    """
    Writes value trees onto content object graphs.
    """

    def __init__(self, store: ContentStore, settings: Optional[StructureSettings] = None):
        """
        Initialize the populator.

        Args:
            store: Store creating and persisting objects
            settings: Type-tag, block and relation settings (defaults to the registry's)
        """
        self.store = store
        self.registry = store.registry
        self.settings = settings or self.registry.settings
        self._created = 0

    def populate(
        self,
        content_object: ContentObject,
        values: Dict[str, Any],
        persist: bool = True,
        replace_relations: Optional[bool] = None
    ) -> ContentObject:
        """
        Apply a value tree to an object, all or nothing.

        Args:
            content_object: Object to populate
            values: Recovered value tree
            persist: Persist the object itself at the end; related objects are
                always persisted since linking them needs identities
            replace_relations: Remove existing items of populated many relations
                and block areas first (defaults to the configured setting)

        Returns:
            The populated object

        Raises:
            PopulationError: If any write failed; nothing is committed and the
                object's field values are restored
        """
        if not isinstance(values, dict):
            logging.warning(f"Cannot populate {content_object.get_type()} from a {type(values).__name__} value")
            return content_object

        replace = self.settings.replace_relations if replace_relations is None else replace_relations
        snapshot = content_object.snapshot()
        self._created = 0

        try:
            with self.store.transaction():
                self.apply_values(content_object, values, replace)
                if persist:
                    content_object.persist()
        except Exception as e:
            content_object.restore(snapshot)
            logging.error(f"Failed to populate {content_object.get_type()}, all changes rolled back: {e}")
            raise PopulationError(
                f"Failed to populate {content_object.get_type()}: {e}",
                content_object.get_type(),
                content_object.identity()
            ) from e

        logging.info(
            f"Populated {content_object.get_type()} ID {content_object.identity()} "
            f"with {len(values)} fields and {self._created} new related objects"
        )
        return content_object

    def apply_values(self, content_object: ContentObject, values: Dict[str, Any], replace: bool = False) -> None:
        for name, value in values.items():
            self.populate_field(content_object, name, value, replace)

    def populate_field(self, content_object: ContentObject, name: Any, value: Any, replace: bool = False) -> None:
        """
        Dispatch one value on the shape of the field it names.

        Single relations, many relations and block areas are checked in that
        order; anything else is a scalar write. Empty values are skipped.

        Args:
            content_object: Object being populated
            name: Field or relation name
            value: Value from the tree
            replace: Replace existing relation items
        """
        if not isinstance(name, str):
            logging.debug(f"Skipping non-string key {name!r} on {content_object.get_type()}")
            return
        if self.is_empty(value):
            return

        relation = content_object.get_relation(name)
        if relation is None:
            self.populate_scalar(content_object, name, value)
            return

        target = self.registry.resolve_type_name(relation.target)
        if target is None:
            logging.warning(f"Skipping {content_object.get_type()}.{name}: target type '{relation.target}' is not registered")
            return

        cardinality = self.registry.cardinality_of(relation)
        if cardinality == RelationCardinality.SINGLE:
            self.populate_single_relation(content_object, relation, target, value, replace)
        elif cardinality in (RelationCardinality.MULTI_OWNED, RelationCardinality.MULTI_ASSOCIATED):
            self.populate_multi_relation(content_object, relation, target, value, cardinality, replace)
        else:
            self.populate_block_area(content_object, relation, target, value, replace)

    @staticmethod
    def is_empty(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        if isinstance(value, (list, dict)):
            return not value
        return False

    def populate_scalar(self, content_object: ContentObject, name: str, value: Any) -> None:
        if not content_object.has_field(name):
            logging.debug(f"Skipping unknown field {content_object.get_type()}.{name}")
            return
        if isinstance(value, (dict, list)):
            logging.warning(f"Skipping {content_object.get_type()}.{name}: expected a scalar, got a {type(value).__name__}")
            return
        content_object.write(name, value)

    def populate_single_relation(
        self,
        content_object: ContentObject,
        relation: RelationDefinition,
        target: str,
        value: Any,
        replace: bool = False
    ) -> Optional[ContentObject]:
        """
        Create, populate and link the object of a has_one relation.

        Args:
            content_object: Owning object
            relation: The has_one relation
            target: Resolved target type
            value: Mapping of the related object's fields
            replace: Passed on to nested relations

        Returns:
            The new related object, or None if the value was skipped
        """
        if not isinstance(value, dict):
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: expected a mapping")
            return None
        if not self.registry.is_instantiable(target):
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: {target} cannot be created")
            return None

        related = content_object.create(target)
        self.apply_values(related, value, replace)
        related.persist()
        self._created += 1

        content_object.write(f"{relation.name}ID", related.identity())
        return related

    def populate_multi_relation(
        self,
        content_object: ContentObject,
        relation: RelationDefinition,
        target: str,
        value: Any,
        cardinality: RelationCardinality,
        replace: bool = False
    ) -> List[ContentObject]:
        """
        Create, populate and link the items of a has_many or many_many relation.

        Owned items get the owner's identity in their owning key; associated
        items are added through the relation. Items that are not mappings are
        skipped individually.

        Args:
            content_object: Owning object
            relation: The relation
            target: Resolved target type
            value: Sequence of item mappings
            cardinality: MULTI_OWNED or MULTI_ASSOCIATED
            replace: Remove existing items first

        Returns:
            The new items
        """
        if not isinstance(value, list):
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: expected a list of items")
            return []
        if not self.registry.is_instantiable(target):
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: {target} cannot be created")
            return []

        owner_key = None
        if cardinality == RelationCardinality.MULTI_OWNED:
            owner_key = self.registry.find_owner_key(target, content_object.get_type(), relation)
            if owner_key is None:
                logging.warning(
                    f"Skipping {content_object.get_type()}.{relation.name}: "
                    f"{target} has no has_one relation back to {content_object.get_type()}"
                )
                return []

        if not content_object.exists():
            content_object.persist()

        if replace:
            removed = self.store.remove_all(content_object, relation.name)
            logging.debug(f"Removed {removed} existing items from {content_object.get_type()}.{relation.name}")

        created = []
        for index, item in enumerate(value, 1):
            if not isinstance(item, dict) or not item:
                logging.warning(f"Skipping item {index} of {content_object.get_type()}.{relation.name}: expected a mapping")
                continue

            child = content_object.create(target)
            self.apply_values(child, item, replace)
            if owner_key is not None:
                child.write(f"{owner_key}ID", content_object.identity())
                child.persist()
            else:
                child.persist()
                content_object.add(relation.name, child)

            created.append(child)
            self._created += 1

        return created

    def populate_block_area(
        self,
        content_object: ContentObject,
        relation: RelationDefinition,
        target: str,
        value: Any,
        replace: bool = False
    ) -> List[ContentObject]:
        """
        Create typed blocks in a block area.

        Each entry names its block type through a type-tag key. Entries without
        a tag, or whose type is unknown or not allowed in this area, are skipped.
        Blocks get sort positions from 1 in input order.

        Args:
            content_object: Object owning the block area
            relation: The block-area relation
            target: Resolved block-area container type
            value: Sequence of block entries, or a mapping wrapping one
            replace: Remove existing blocks first

        Returns:
            The new blocks
        """
        entries = self.normalize_block_list(value)
        if entries is None:
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: expected a list of blocks")
            return []

        area = self.ensure_block_area(content_object, relation, target)
        if area is None:
            return []

        blocks_relation = self.find_blocks_relation(area)
        if blocks_relation is None:
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: {area.get_type()} declares no block list")
            return []

        if replace:
            removed = self.store.remove_all(area, blocks_relation.name)
            logging.debug(f"Removed {removed} existing blocks from {content_object.get_type()}.{relation.name}")

        allowed = self.registry.allowed_block_types(content_object.get_type(), relation.name)
        tag_keys = self.settings.all_type_tag_keys
        sort = 1
        created = []

        for index, entry in enumerate(entries, 1):
            if not isinstance(entry, dict):
                logging.warning(f"Skipping block {index} of {content_object.get_type()}.{relation.name}: expected a mapping")
                continue

            tag = self.resolve_type_tag(entry)
            if tag is None:
                logging.warning(f"Skipping block {index} of {content_object.get_type()}.{relation.name}: no type tag ({', '.join(tag_keys)})")
                continue

            block_type = self.registry.resolve_type_name(tag)
            if block_type is None or not self.registry.is_block_type(block_type):
                logging.warning(f"Skipping block {index} of {content_object.get_type()}.{relation.name}: unknown block type '{tag}'")
                continue
            if block_type not in allowed:
                logging.warning(f"Skipping block {index} of {content_object.get_type()}.{relation.name}: {block_type} is not allowed here")
                continue

            block = area.create(block_type)
            if block.has_field(self.settings.block_sort_field):
                block.write(self.settings.block_sort_field, sort)

            remaining = {key: item for key, item in entry.items() if key not in tag_keys}
            self.apply_values(block, remaining, replace)
            area.add(blocks_relation.name, block)

            created.append(block)
            self._created += 1
            sort += 1

        return created

    def normalize_block_list(self, value: Any) -> Optional[List[Any]]:
        """
        Coerce a block-area value into a list of entries.

        Accepts a list, a mapping wrapping the list under one of the nested
        block keys, a single tagged entry, or a mapping of tagged entries.

        Args:
            value: Block-area value from the tree

        Returns:
            The entries, or None if the value has no usable shape
        """
        if isinstance(value, list):
            return value
        if not isinstance(value, dict):
            return None

        for key in self.settings.nested_block_keys:
            if isinstance(value.get(key), list):
                return value[key]

        if self.resolve_type_tag(value) is not None:
            return [value]

        entries = [item for item in value.values() if isinstance(item, dict) and self.resolve_type_tag(item) is not None]
        return entries or None

    def resolve_type_tag(self, entry: Dict[str, Any]) -> Optional[str]:
        """The value of the first type-tag key present in a block entry."""
        for key in self.settings.all_type_tag_keys:
            tag = entry.get(key)
            if isinstance(tag, str) and tag.strip():
                return tag.strip()
        return None

    def ensure_block_area(
        self,
        content_object: ContentObject,
        relation: RelationDefinition,
        target: str
    ) -> Optional[ContentObject]:
        """
        Get the object's block-area container, creating and linking one if absent.

        Args:
            content_object: Object owning the area
            relation: The block-area relation
            target: Resolved container type

        Returns:
            The container, or None if none exists and none can be created
        """
        area = content_object.related(relation.name)
        if area is not None:
            return area

        if not self.registry.is_instantiable(target):
            logging.warning(f"Skipping {content_object.get_type()}.{relation.name}: {target} cannot be created")
            return None

        area = content_object.create(target)
        area.persist()
        content_object.write(f"{relation.name}ID", area.identity())
        content_object.persist()
        logging.debug(f"Created {target} ID {area.identity()} for {content_object.get_type()}.{relation.name}")
        return area

    def find_blocks_relation(self, area: ContentObject) -> Optional[RelationDefinition]:
        """The many relation of a container that holds its blocks."""
        for relation in area.get_relation_list():
            if relation.kind == "has_one":
                continue
            if self.registry.is_a(relation.target, self.settings.block_base_type):
                return relation
        return None
