"""Schema introspection."""

from .introspector import SchemaIntrospector

__all__ = ["SchemaIntrospector"]
