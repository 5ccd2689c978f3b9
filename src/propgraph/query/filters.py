"""Property filter predicates."""

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar
from uuid import UUID

from propgraph.errors import ValidationError
from propgraph.models.entities import EntityReference
from propgraph.models.queries import FilterOperator, PropertyFilter
from propgraph.properties.values import comparable_strings, is_empty_value

R = TypeVar("R", bound=EntityReference)


def _equals(value: Any, flt: PropertyFilter) -> bool:
    # String filter values compare against every comparable form of the value
    if isinstance(flt.value, str) and flt.value:
        return flt.value.lower() in set(comparable_strings(value))
    return value == flt.value


def matches_filter(value: Any, flt: PropertyFilter) -> bool:
    """Whether one property value satisfies one filter."""
    match flt.operator:
        case FilterOperator.EQUALS:
            return _equals(value, flt)
        case FilterOperator.NOT_EQUALS:
            return not _equals(value, flt)
        case FilterOperator.CONTAINS:
            if not (isinstance(flt.value, str) and flt.value):
                return False
            needle = flt.value.lower()
            return any(needle in text for text in comparable_strings(value))
        case FilterOperator.IS_EMPTY:
            return is_empty_value(value)
        case FilterOperator.IS_NOT_EMPTY:
            return not is_empty_value(value)
    raise ValidationError(f"Unsupported filter operator: {flt.operator}")


def filter_by_properties(
    entities: Sequence[R],
    values: Mapping[UUID, Mapping[UUID, Any]],
    filters: Sequence[PropertyFilter],
) -> list[R]:
    """Entities that satisfy every filter (logical AND).

    ``values`` maps entity id to its ``{definition_id: value}``; a missing
    entry means the entity has no value for that property.
    """
    if not filters:
        return list(entities)
    return [
        entity
        for entity in entities
        if all(
            matches_filter(values.get(entity.id, {}).get(flt.property_definition_id), flt)
            for flt in filters
        )
    ]
