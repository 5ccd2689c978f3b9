"""Entity queries: property filtering and grouping."""

from propgraph.query.engine import QueryEngine, group_entities, group_key
from propgraph.query.filters import filter_by_properties, matches_filter

__all__ = [
    "QueryEngine",
    "filter_by_properties",
    "group_entities",
    "group_key",
    "matches_filter",
]
