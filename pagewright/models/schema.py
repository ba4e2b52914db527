"""
Schema tree models for Pagewright.

A FieldDescriptor tree is the bounded, serializable description of a content
object that gets rendered into language model prompts.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class FieldKind(str, Enum):
    """What a descriptor describes."""
    SCALAR = "scalar"
    RELATION_SINGLE = "relation_single"
    RELATION_MANY = "relation_many"
    BLOCK_AREA = "block_area"


class RelationCardinality(str, Enum):
    """How many related objects a relation holds and how they are linked."""
    SINGLE = "single"
    MULTI_OWNED = "multi_owned"
    MULTI_ASSOCIATED = "multi_associated"
    BLOCK_AREA = "block_area"


class ScalarType(str, Enum):
    """Semantic subtype of a scalar content field."""
    TEXT = "text"
    LONG_TEXT = "long_text"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    CHOICE = "choice"


CARDINALITY_KINDS = {
    RelationCardinality.SINGLE: FieldKind.RELATION_SINGLE,
    RelationCardinality.MULTI_OWNED: FieldKind.RELATION_MANY,
    RelationCardinality.MULTI_ASSOCIATED: FieldKind.RELATION_MANY,
    RelationCardinality.BLOCK_AREA: FieldKind.BLOCK_AREA,
}


def format_field_title(field_name: str) -> str:
    """
    Turn a field name into a human-readable title.

    Args:
        field_name: e.g. 'MetaDescription' or 'hero_image'

    Returns:
        e.g. 'Meta description' or 'Hero image'
    """
    title = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", field_name)
    title = re.sub(r"\s+", " ", title.replace("_", " ")).strip()
    if not title:
        return field_name
    words = title.split(" ")
    words = [words[0]] + [w if w.isupper() else w.lower() for w in words[1:]]
    title = " ".join(words)
    return title[0].upper() + title[1:]


class BlockTypeDescriptor(BaseModel):
    """
    One block type allowed inside a block area.
    """

    type_name: str = Field(
        ...,
        description="Content type identifier used as the type-tag value"
    )

    title: str = Field(
        ...,
        description="Human-readable block type name"
    )

    children: List["FieldDescriptor"] = Field(
        default_factory=list,
        description="Field list of the block type"
    )


class FieldDescriptor(BaseModel):
    """
    One node of the schema tree: a scalar field, a relation or a block area.
    """

    name: str = Field(
        ...,
        description="Field name, unique within its parent's field list"
    )

    title: str = Field(
        default="",
        description="Human-readable label"
    )

    kind: FieldKind = Field(
        ...,
        description="Scalar, single relation, multi relation or block area"
    )

    value_type: str = Field(
        ...,
        description="Scalar subtype, or the related type identifier for relations"
    )

    cardinality: Optional[RelationCardinality] = Field(
        default=None,
        description="Resolved relation cardinality; None for scalars"
    )

    description: str = Field(
        default="",
        description="Free text shown to the language model"
    )

    options: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Choice set as label -> value"
    )

    children: List["FieldDescriptor"] = Field(
        default_factory=list,
        description="Field list of the related type"
    )

    allowed_types: List[BlockTypeDescriptor] = Field(
        default_factory=list,
        description="Allowed block types, for block areas only"
    )

    @model_validator(mode="after")
    def _default_title(self) -> "FieldDescriptor":
        if not self.title:
            self.title = format_field_title(self.name)
        return self

    @property
    def is_relation(self) -> bool:
        return self.kind in (FieldKind.RELATION_SINGLE, FieldKind.RELATION_MANY)

    @property
    def is_block_area(self) -> bool:
        return self.kind == FieldKind.BLOCK_AREA

    def max_depth(self) -> int:
        """Number of nested levels below this node (0 for a leaf)."""
        depths = [child.max_depth() + 1 for child in self.children]
        for block_type in self.allowed_types:
            depths.extend(child.max_depth() + 1 for child in block_type.children)
        return max(depths, default=0)


# Enable forward references for self-referencing models
BlockTypeDescriptor.model_rebuild()
FieldDescriptor.model_rebuild()
