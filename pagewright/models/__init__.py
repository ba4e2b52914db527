"""Data models for Pagewright."""

from .content import ContentType, FieldDefinition, RelationDefinition
from .schema import (
    CARDINALITY_KINDS,
    BlockTypeDescriptor,
    FieldDescriptor,
    FieldKind,
    RelationCardinality,
    ScalarType,
    format_field_title,
)

__all__ = [
    "ContentType",
    "FieldDefinition",
    "RelationDefinition",
    "CARDINALITY_KINDS",
    "BlockTypeDescriptor",
    "FieldDescriptor",
    "FieldKind",
    "RelationCardinality",
    "ScalarType",
    "format_field_title"
]
