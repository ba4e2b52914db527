"""
Content model declarations for Pagewright.

These models describe content types the way a CMS declares them: stored
fields, editor fields, relations and block-area constraints. Content types are
usually loaded from a YAML content model file.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


RelationKind = Literal["has_one", "has_many", "many_many", "belongs_many_many"]


class FieldDefinition(BaseModel):
    """
    A declared scalar field on a content type.
    """

    name: str = Field(
        ...,
        description="The field name as stored on the object"
    )

    field_type: str = Field(
        ...,
        description="Declared type, e.g. 'Varchar(255)', 'HTMLText', \"Enum('A,B')\" or an editor widget name"
    )

    title: Optional[str] = Field(
        default=None,
        description="Human-readable label; derived from the name when absent"
    )

    description: str = Field(
        default="",
        description="Help text shown to content authors and the language model"
    )

    options: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Choice set as label -> value"
    )

    @property
    def base_type(self) -> str:
        """The declared type without parameters ('Varchar(255)' -> 'Varchar')."""
        return self.field_type.split("(", 1)[0].strip()

    @property
    def type_arguments(self) -> str:
        """The raw parameter text of the declared type, if any."""
        if "(" not in self.field_type:
            return ""
        return self.field_type.split("(", 1)[1].rsplit(")", 1)[0]


class RelationDefinition(BaseModel):
    """
    A declared relation from one content type to another.
    """

    name: str = Field(
        ...,
        description="The relation name"
    )

    kind: RelationKind = Field(
        ...,
        description="Relation kind as declared by the object model"
    )

    target: str = Field(
        ...,
        description="Name of the related content type"
    )

    owner_key: Optional[str] = Field(
        default=None,
        description="For has_many: the has_one relation on the target pointing back to the owner"
    )

    description: str = Field(
        default="",
        description="Optional help text"
    )


class ContentType(BaseModel):
    """
    A content type: the schema of one kind of content object.
    """

    name: str = Field(
        ...,
        description="Type identifier, e.g. 'BlogPage' or 'app.blocks.TextBlock'"
    )

    title: Optional[str] = Field(
        default=None,
        description="Human-readable type name"
    )

    description: str = Field(
        default="",
        description="Optional description of the type"
    )

    parent: Optional[str] = Field(
        default=None,
        description="Parent type for is-a inheritance"
    )

    abstract: bool = Field(
        default=False,
        description="Abstract types cannot be instantiated"
    )

    can_create: bool = Field(
        default=True,
        description="Whether new objects of this type may be created"
    )

    fields: List[FieldDefinition] = Field(
        default_factory=list,
        description="Stored fields in declaration order"
    )

    editor_fields: List[FieldDefinition] = Field(
        default_factory=list,
        description="Editor form fields; consulted before stored fields"
    )

    relations: List[RelationDefinition] = Field(
        default_factory=list,
        description="Declared relations in declaration order"
    )

    allowed_blocks: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Allowed block types per block-area relation"
    )

    allowed_elements: List[str] = Field(
        default_factory=list,
        description="Allowed block types for every block area of this type"
    )

    @property
    def display_title(self) -> str:
        return self.title or self.name.replace("\\", ".").split(".")[-1]
