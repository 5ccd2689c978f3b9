"""Property definitions, entity property values and inheritance."""

from propgraph.properties.definitions import PropertyDefinitionStore
from propgraph.properties.inheritance import InheritanceResolver, InheritedValue, merge_values
from propgraph.properties.names import (
    find_conflicting_name,
    find_similar_name,
    normalize_property_name,
)
from propgraph.properties.store import EntityPropertyStore
from propgraph.properties.values import (
    comparable_strings,
    default_empty_label,
    is_empty_value,
    validate_property_value,
)

__all__ = [
    "EntityPropertyStore",
    "InheritanceResolver",
    "InheritedValue",
    "PropertyDefinitionStore",
    "comparable_strings",
    "default_empty_label",
    "find_conflicting_name",
    "find_similar_name",
    "is_empty_value",
    "merge_values",
    "normalize_property_name",
    "validate_property_value",
]
