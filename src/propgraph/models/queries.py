"""Query, filter and grouping models."""

from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from propgraph.models.entities import EntityReference, EntityType

NO_VALUE_GROUP_KEY = "__no_value__"


class QueryScope(StrEnum):
    """Query boundary."""

    ALL = "all"
    PROJECT = "project"
    TAB = "tab"


class FilterOperator(StrEnum):
    """Supported property filter operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class PropertyFilter(BaseModel):
    """One predicate on one property definition."""

    property_definition_id: UUID
    operator: FilterOperator
    value: Any = None


class QueryEntitiesParams(BaseModel):
    """Parameters for querying entities by their properties."""

    workspace_id: UUID
    entity_types: list[EntityType] | None = Field(
        default=None, description="Entity types to include (all registered types if omitted)"
    )
    scope: QueryScope = QueryScope.ALL
    project_id: UUID | None = None
    tab_id: UUID | None = None
    properties: list[PropertyFilter] = Field(default_factory=list)
    include_inherited: bool = False

    @field_validator("scope", mode="before")
    @classmethod
    def accept_workspace_alias(cls, v: Any) -> Any:
        """``workspace`` is accepted as a synonym of ``all``."""
        if v == "workspace":
            return QueryScope.ALL
        return v

    @model_validator(mode="after")
    def require_scope_target(self) -> "QueryEntitiesParams":
        if self.scope == QueryScope.PROJECT and self.project_id is None:
            raise ValueError("project_id is required for project scope")
        if self.scope == QueryScope.TAB and self.tab_id is None:
            raise ValueError("tab_id is required for tab scope")
        return self

    @property
    def filter_property_ids(self) -> set[UUID]:
        return {f.property_definition_id for f in self.properties}


class GroupedEntitiesResult(BaseModel):
    """One bucket of a grouped query."""

    group_key: str
    group_label: str
    entities: list[EntityReference] = Field(default_factory=list)
