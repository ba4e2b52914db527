"""Content types, objects and their store."""

from .registry import TypeRegistry
from .objects import ContentObject
from .store import ContentStore

__all__ = ["TypeRegistry", "ContentObject", "ContentStore"]
