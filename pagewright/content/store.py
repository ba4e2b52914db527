"""
Content store for Pagewright.

Binds the type registry to the database: creates, loads and persists content
objects, follows their relations and scopes writes in transactions.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..database import DatabaseManager
from ..exceptions import ContentTypeError
from ..models import RelationCardinality, RelationDefinition
from .objects import ContentObject
from .registry import TypeRegistry


class ContentStore:
    """
    Creates, loads and persists content objects.
    """

    def __init__(self, registry: TypeRegistry, database: DatabaseManager):
        """
        Initialize the store.

        Args:
            registry: Registry of declared content types
            database: Connected database manager with initialized tables
        """
        self.registry = registry
        self.database = database
        self._inserted: List[ContentObject] = []

    def create(self, type_name: str) -> ContentObject:
        """
        Create a new, unsaved object.

        Args:
            type_name: Type name (abbreviated names are resolved)

        Returns:
            The new object

        Raises:
            UnknownContentTypeError: If the type is not registered
            ContentTypeError: If the type is abstract or not creatable
        """
        content_type = self.registry.get_type(type_name)
        if content_type.abstract:
            raise ContentTypeError(f"Cannot create abstract content type {content_type.name}")
        if not content_type.can_create:
            raise ContentTypeError(f"Content type {content_type.name} does not allow creation")
        return ContentObject(self, content_type.name)

    def get(self, object_id: Optional[int]) -> Optional[ContentObject]:
        """
        Load a stored object.

        Args:
            object_id: Database ID

        Returns:
            The object, or None if not found
        """
        if object_id is None:
            return None
        record = self.database.fetch_object(int(object_id))
        if not record:
            return None
        return ContentObject(
            self,
            record["content_type"],
            object_id=record["object_id"],
            field_data=record["field_data"],
            last_edited=record["last_edited"]
        )

    def persist(self, content_object: ContentObject) -> None:
        """
        Insert or update an object.

        Args:
            content_object: The object to store
        """
        data = {key: value for key, value in content_object._data.items()}

        if content_object._object_id is None:
            object_id, edited = self.database.insert_object(content_object.get_type(), data)
            content_object._object_id = object_id
            content_object._last_edited = edited
            if self.database.in_transaction:
                self._inserted.append(content_object)
            logging.debug(f"Inserted {content_object.get_type()} ID {object_id}")
        else:
            content_object._last_edited = self.database.update_object(content_object._object_id, data)

    def delete(self, content_object: ContentObject) -> None:
        if content_object._object_id is None:
            return
        self.database.delete_object(content_object._object_id)
        content_object._object_id = None

    @contextmanager
    def transaction(self) -> Iterator["ContentStore"]:
        """
        Scope writes in one database transaction.

        When the outermost transaction rolls back, objects first inserted
        inside it lose their identity again.

        Yields:
            This store
        """
        outermost = not self.database.in_transaction
        if outermost:
            self._inserted = []

        try:
            with self.database.transaction():
                yield self
        except BaseException:
            if outermost:
                for content_object in self._inserted:
                    content_object._object_id = None
                    content_object._last_edited = None
                self._inserted = []
            raise
        else:
            if outermost:
                self._inserted = []

    def _require_relation(self, content_object: ContentObject, relation_name: str) -> RelationDefinition:
        relation = content_object.get_relation(relation_name)
        if relation is None:
            raise ContentTypeError(f"{content_object.get_type()} has no relation '{relation_name}'")
        return relation

    def related(self, content_object: ContentObject, relation_name: str) -> Optional[ContentObject]:
        """
        Follow a has_one relation.

        Args:
            content_object: Owning object
            relation_name: Name of the has_one relation

        Returns:
            The related object, or None if unset or missing
        """
        relation = self._require_relation(content_object, relation_name)
        if relation.kind != "has_one":
            raise ContentTypeError(f"{content_object.get_type()}.{relation_name} is not a has_one relation")
        return self.get(content_object._data.get(f"{relation_name}ID"))

    def children(self, content_object: ContentObject, relation_name: str) -> List[ContentObject]:
        """
        List the objects of a has_many or many_many relation.

        Args:
            content_object: Owning object
            relation_name: Name of the relation

        Returns:
            Related objects; owned children in ID order, associated ones in sort order
        """
        relation = self._require_relation(content_object, relation_name)
        if content_object._object_id is None:
            return []

        cardinality = self.registry.cardinality_of(relation)
        if cardinality == RelationCardinality.MULTI_OWNED:
            owner_key = self.registry.find_owner_key(relation.target, content_object.get_type(), relation)
            if owner_key is None:
                return []
            types = [name for name in self.registry.list_types() if self.registry.is_a(name, relation.target)]
            records = self.database.find_referencing_objects(types, f"{owner_key}ID", content_object._object_id)
            return [self.get(record["object_id"]) for record in records]

        if cardinality == RelationCardinality.MULTI_ASSOCIATED:
            target_ids = self.database.get_associations(content_object._object_id, relation_name)
            related = [self.get(target_id) for target_id in target_ids]
            return [item for item in related if item is not None]

        raise ContentTypeError(f"{content_object.get_type()}.{relation_name} is not a many relation")

    def add(self, content_object: ContentObject, relation_name: str, other: ContentObject) -> None:
        """
        Add an object to a has_many or many_many relation, persisting as needed.

        Args:
            content_object: Owning object
            relation_name: Name of the relation
            other: Object to add
        """
        relation = self._require_relation(content_object, relation_name)
        cardinality = self.registry.cardinality_of(relation)

        if not content_object.exists():
            self.persist(content_object)

        if cardinality == RelationCardinality.MULTI_OWNED:
            owner_key = self.registry.find_owner_key(other.get_type(), content_object.get_type(), relation)
            if owner_key is None:
                raise ContentTypeError(
                    f"{other.get_type()} has no has_one relation back to {content_object.get_type()}"
                )
            other.write(f"{owner_key}ID", content_object.identity())
            self.persist(other)
            return

        if cardinality == RelationCardinality.MULTI_ASSOCIATED:
            if not other.exists():
                self.persist(other)
            sort_order = len(self.database.get_associations(content_object._object_id, relation_name)) + 1
            self.database.add_association(content_object._object_id, relation_name, other.identity(), sort_order)
            return

        raise ContentTypeError(f"{content_object.get_type()}.{relation_name} is not a many relation")

    def remove_all(self, content_object: ContentObject, relation_name: str) -> int:
        """
        Empty a has_many or many_many relation.

        Owned children are deleted; associated objects are only unlinked.

        Args:
            content_object: Owning object
            relation_name: Name of the relation

        Returns:
            Number of objects removed or unlinked
        """
        relation = self._require_relation(content_object, relation_name)
        if content_object._object_id is None:
            return 0

        existing = self.children(content_object, relation_name)
        if self.registry.cardinality_of(relation) == RelationCardinality.MULTI_OWNED:
            for child in existing:
                self.delete(child)
        else:
            self.database.remove_associations(content_object._object_id, relation_name)
        return len(existing)
