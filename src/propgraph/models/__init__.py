"""Pydantic models for the properties and linking engine."""

from propgraph.models.entities import EntityKey, EntityReference, EntityType
from propgraph.models.links import EntityLinkRead, EntityLinks
from propgraph.models.properties import (
    OPTION_TYPES,
    EntityPropertiesResult,
    EntityPropertyRead,
    InheritedProperty,
    MergeOptionsResult,
    PropertyDefinitionCreate,
    PropertyDefinitionCreated,
    PropertyDefinitionRead,
    PropertyDefinitionUpdate,
    PropertyOption,
    PropertyOptionUpdate,
    PropertyType,
)
from propgraph.models.queries import (
    NO_VALUE_GROUP_KEY,
    FilterOperator,
    GroupedEntitiesResult,
    PropertyFilter,
    QueryEntitiesParams,
    QueryScope,
)
from propgraph.models.results import ActionResult

__all__ = [
    # Entities
    "EntityKey",
    "EntityReference",
    "EntityType",
    # Links
    "EntityLinkRead",
    "EntityLinks",
    # Properties
    "OPTION_TYPES",
    "EntityPropertiesResult",
    "EntityPropertyRead",
    "InheritedProperty",
    "MergeOptionsResult",
    "PropertyDefinitionCreate",
    "PropertyDefinitionCreated",
    "PropertyDefinitionRead",
    "PropertyDefinitionUpdate",
    "PropertyOption",
    "PropertyOptionUpdate",
    "PropertyType",
    # Queries
    "NO_VALUE_GROUP_KEY",
    "FilterOperator",
    "GroupedEntitiesResult",
    "PropertyFilter",
    "QueryEntitiesParams",
    "QueryScope",
    # Results
    "ActionResult",
]
