"""Property definition and property value models."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from propgraph.models.entities import EntityKey, EntityType


class PropertyType(StrEnum):
    """Declared type of a property definition."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    STATUS = "status"
    PRIORITY = "priority"
    PERSON = "person"
    CHECKBOX = "checkbox"


# Types whose values reference entries of the definition's option list
OPTION_TYPES = frozenset(
    {PropertyType.SELECT, PropertyType.MULTI_SELECT, PropertyType.STATUS, PropertyType.PRIORITY}
)


class PropertyOption(BaseModel):
    """One entry of a select-like option set."""

    id: str = Field(..., min_length=1, max_length=128, description="Stable option identifier")
    label: str = Field(..., min_length=1, max_length=255, description="User-facing label")
    color: str = Field(default="gray", max_length=64, description="Color token")


class PropertyDefinitionCreate(BaseModel):
    """Input for creating a property definition."""

    workspace_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    type: PropertyType
    options: list[PropertyOption] = Field(default_factory=list)
    empty_label: str | None = Field(
        default=None,
        max_length=255,
        description="Label of the no-value group (defaults from name/type)",
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Property name cannot be blank")
        return v


class PropertyDefinitionUpdate(BaseModel):
    """Input for renaming a definition and/or replacing its options."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    options: list[PropertyOption] | None = None
    empty_label: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Property name cannot be blank")
        return v


class PropertyOptionUpdate(BaseModel):
    """Partial update of one option (the id is immutable)."""

    label: str | None = Field(default=None, min_length=1, max_length=255)
    color: str | None = Field(default=None, max_length=64)


class PropertyDefinitionRead(BaseModel):
    """A stored property definition."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workspace_id: UUID
    name: str
    type: PropertyType
    options: list[PropertyOption] = Field(default_factory=list)
    empty_label: str | None = None
    created_at: datetime
    updated_at: datetime


class PropertyDefinitionCreated(BaseModel):
    """Result of a create, with a non-blocking near-duplicate warning."""

    definition: PropertyDefinitionRead
    warning: str | None = None


class EntityPropertyRead(BaseModel):
    """A stored (direct) property value with its definition."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entity_type: EntityType
    entity_id: UUID
    property_definition_id: UUID
    value: Any = None
    created_at: datetime
    updated_at: datetime
    definition: PropertyDefinitionRead | None = None


class InheritedProperty(BaseModel):
    """A property value contributed by an entity linking to the target."""

    property: EntityPropertyRead
    source: EntityKey
    is_visible: bool = True


class EntityPropertiesResult(BaseModel):
    """Direct and inherited properties of one entity.

    ``values`` is the merged ``{definition_id: value}`` view (direct values
    win; several inherited contributions accumulate into a list).
    """

    direct: list[EntityPropertyRead] = Field(default_factory=list)
    inherited: list[InheritedProperty] = Field(default_factory=list)
    values: dict[UUID, Any] = Field(default_factory=dict)


class MergeOptionsResult(BaseModel):
    """Outcome of merging one option into another."""

    updated_count: int = 0
    definition: PropertyDefinitionRead
