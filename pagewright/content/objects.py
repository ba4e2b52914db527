"""
Content objects for Pagewright.

A ContentObject is a live record of some content type. It reads and writes
declared fields, creates related objects and persists itself through the
ContentStore it belongs to.
"""

import copy
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..exceptions import UnknownFieldError
from ..models import FieldDefinition, RelationDefinition

if TYPE_CHECKING:
    from .store import ContentStore


class ContentObject:
    """
    A live content object backed by a ContentStore.
    """

    def __init__(
        self,
        store: "ContentStore",
        content_type: str,
        object_id: Optional[int] = None,
        field_data: Optional[Dict[str, Any]] = None,
        last_edited: Optional[datetime] = None
    ):
        """
        Initialize a content object.

        Args:
            store: The store the object belongs to
            content_type: Registered type name
            object_id: Database ID, None until persisted
            field_data: Initial field values
            last_edited: Timestamp of the last persist
        """
        self._store = store
        self._content_type = content_type
        self._object_id = object_id
        self._data: Dict[str, Any] = dict(field_data or {})
        self._last_edited = last_edited

    def __repr__(self) -> str:
        return f"<ContentObject {self._content_type}#{self._object_id}>"

    def get_type(self) -> str:
        return self._content_type

    def get_field_list(self) -> List[FieldDefinition]:
        """Stored fields, inherited ones first."""
        return self._store.registry.fields_for(self._content_type)

    def get_editor_field_list(self) -> List[FieldDefinition]:
        """Editor form fields, inherited ones first."""
        return self._store.registry.editor_fields_for(self._content_type)

    def get_relation_list(self) -> List[RelationDefinition]:
        return self._store.registry.relations_for(self._content_type)

    def get_relation(self, name: str) -> Optional[RelationDefinition]:
        return self._store.registry.get_relation(self._content_type, name)

    def foreign_keys(self) -> List[str]:
        """Foreign key field names of the has_one relations ('Author' -> 'AuthorID')."""
        return [f"{relation.name}ID" for relation in self.get_relation_list() if relation.kind == "has_one"]

    def has_field(self, name: str) -> bool:
        """
        Check whether a name is a writable field of this object.

        Args:
            name: Field name

        Returns:
            True for stored fields, editor fields and has_one foreign keys
        """
        if any(definition.name == name for definition in self.get_field_list()):
            return True
        if any(definition.name == name for definition in self.get_editor_field_list()):
            return True
        return name in self.foreign_keys()

    def read(self, name: str) -> Any:
        """
        Read a field value.

        Args:
            name: Field name

        Returns:
            The value, or None if unset

        Raises:
            UnknownFieldError: If the type declares no such field
        """
        if not self.has_field(name):
            raise UnknownFieldError(self._content_type, name)
        return self._data.get(name)

    def write(self, name: str, value: Any) -> None:
        """
        Write a field value. Nothing is stored until persist() is called.

        Args:
            name: Field name
            value: New value

        Raises:
            UnknownFieldError: If the type declares no such field
        """
        if not self.has_field(name):
            raise UnknownFieldError(self._content_type, name)
        self._data[name] = value

    def create(self, type_name: str) -> "ContentObject":
        """
        Create a new, unsaved object in the same store.

        Args:
            type_name: Type of the new object

        Returns:
            The new object
        """
        return self._store.create(type_name)

    def persist(self) -> "ContentObject":
        self._store.persist(self)
        return self

    def identity(self) -> Optional[int]:
        return self._object_id

    def last_modified_marker(self) -> Optional[datetime]:
        return self._last_edited

    def exists(self) -> bool:
        """True once the object has been persisted."""
        return self._object_id is not None

    def related(self, relation_name: str) -> Optional["ContentObject"]:
        """The object a has_one relation points at, if any."""
        return self._store.related(self, relation_name)

    def children(self, relation_name: str) -> List["ContentObject"]:
        """Objects held by a has_many or many_many relation."""
        return self._store.children(self, relation_name)

    def add(self, relation_name: str, other: "ContentObject") -> None:
        """Add an object to a has_many or many_many relation."""
        self._store.add(self, relation_name, other)

    def to_dict(self) -> Dict[str, Any]:
        """Field values plus ID and ClassName, suitable for display."""
        result = {"ID": self._object_id, "ClassName": self._content_type}
        result.update(self._data)
        return result

    def snapshot(self) -> Dict[str, Any]:
        return {
            "object_id": self._object_id,
            "data": copy.deepcopy(self._data),
            "last_edited": self._last_edited
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._object_id = snapshot["object_id"]
        self._data = copy.deepcopy(snapshot["data"])
        self._last_edited = snapshot["last_edited"]
