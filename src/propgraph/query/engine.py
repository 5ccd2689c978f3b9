"""Query entities by property values, optionally grouped by one property."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Self
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from propgraph.errors import StoreError
from propgraph.models.entities import EntityReference, EntityType
from propgraph.models.properties import OPTION_TYPES, PropertyOption
from propgraph.models.queries import (
    NO_VALUE_GROUP_KEY,
    GroupedEntitiesResult,
    QueryEntitiesParams,
)
from propgraph.properties.definitions import PropertyDefinitionStore
from propgraph.properties.inheritance import InheritanceResolver
from propgraph.properties.values import default_empty_label, is_empty_value, option_reference
from propgraph.query.filters import filter_by_properties

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from propgraph.db.models import PropertyDefinition
    from propgraph.entities.registry import EntityRegistry

log = structlog.get_logger()


def group_key(value: Any) -> str:
    """Group key of one scalar value (or one element of a list value)."""
    if isinstance(value, dict):
        return option_reference(value) or str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _group_items(value: Any) -> Iterator[Any]:
    """Non-empty scalar items of a value, with nested lists flattened."""
    if isinstance(value, list):
        for item in value:
            yield from _group_items(item)
    elif not is_empty_value(value):
        yield value


def no_value_label(definition: PropertyDefinition) -> str:
    return definition.empty_label or default_empty_label(definition.name, definition.type)


def group_entities(
    definition: PropertyDefinition,
    entities: Sequence[EntityReference],
    values: dict[tuple[EntityType, UUID], Any],
) -> list[GroupedEntitiesResult]:
    """Bucket entities by their value of ``definition``.

    Option groups come first in definition order, then groups for any other
    value in encounter order, then the no-value group, which is always present.
    List values put the entity in every group they name.
    """
    groups: dict[str, list[EntityReference]] = {}
    labels: dict[str, str] = {}
    if definition.type in OPTION_TYPES:
        for raw in definition.options or []:
            option = PropertyOption.model_validate(raw)
            groups[option.id] = []
            labels[option.id] = option.label

    no_value: list[EntityReference] = []
    for entity in entities:
        value = values.get((entity.type, entity.id))
        keys = [group_key(item) for item in _group_items(value)]
        if not keys:
            no_value.append(entity)
            continue
        for key in dict.fromkeys(keys):
            groups.setdefault(key, []).append(entity)

    results = [
        GroupedEntitiesResult(group_key=key, group_label=labels.get(key, key), entities=members)
        for key, members in groups.items()
        if key in labels or members
    ]
    results.append(
        GroupedEntitiesResult(
            group_key=NO_VALUE_GROUP_KEY,
            group_label=no_value_label(definition),
            entities=no_value,
        )
    )
    return results


class QueryEngine:
    """Candidate listing per entity type, property filtering and grouping."""

    def __init__(self, session: AsyncSession, registry: EntityRegistry) -> None:
        self._session = session
        self._registry = registry
        self._resolver = InheritanceResolver.from_session(session, registry)
        self._definitions = PropertyDefinitionStore.from_session(session)

    @classmethod
    def from_session(cls, session: AsyncSession, registry: EntityRegistry) -> Self:
        return cls(session, registry)

    def _entity_types(self, params: QueryEntitiesParams) -> list[EntityType]:
        requested = (
            params.entity_types if params.entity_types is not None else self._registry.types()
        )
        return [self._registry.get(t).entity_type for t in dict.fromkeys(requested)]

    async def _candidates(
        self, entity_type: EntityType, params: QueryEntitiesParams
    ) -> list[EntityReference]:
        adapter = self._registry.get(entity_type)
        try:
            return await adapter.list_candidates(
                self._session,
                params.workspace_id,
                scope=params.scope,
                project_id=params.project_id,
                tab_id=params.tab_id,
            )
        except SQLAlchemyError as e:
            log.exception("query_candidates_failed", entity_type=entity_type.value)
            raise StoreError(f"Failed to load {entity_type.value} entities: {e}") from e

    async def query_entities(self, params: QueryEntitiesParams) -> list[EntityReference]:
        """Entities of the requested types in scope that pass every filter.

        A failure loading any one type fails the whole query.
        """
        results: list[EntityReference] = []
        for entity_type in self._entity_types(params):
            candidates = await self._candidates(entity_type, params)
            if params.properties and candidates:
                values = await self._resolver.resolve(
                    entity_type,
                    [c.id for c in candidates],
                    params.filter_property_ids,
                    include_inherited=params.include_inherited,
                )
                candidates = filter_by_properties(candidates, values, params.properties)
            results.extend(candidates)

        log.debug(
            "entities_queried",
            workspace_id=str(params.workspace_id),
            scope=params.scope.value,
            filters=len(params.properties),
            results=len(results),
        )
        return results

    async def query_entities_grouped_by(
        self, params: QueryEntitiesParams, group_by_property_id: UUID
    ) -> list[GroupedEntitiesResult]:
        """Run the query without filters on the grouping property, then bucket the results."""
        definition = await self._definitions.require(
            group_by_property_id, workspace_id=params.workspace_id
        )

        base = params.model_copy(
            update={
                "properties": [
                    f for f in params.properties if f.property_definition_id != group_by_property_id
                ]
            }
        )
        entities = await self.query_entities(base)

        ids_by_type: dict[EntityType, list[UUID]] = defaultdict(list)
        for entity in entities:
            ids_by_type[entity.type].append(entity.id)

        values: dict[tuple[EntityType, UUID], Any] = {}
        for entity_type, ids in ids_by_type.items():
            resolved = await self._resolver.resolve(
                entity_type,
                ids,
                {group_by_property_id},
                include_inherited=params.include_inherited,
            )
            for entity_id, entity_values in resolved.items():
                if group_by_property_id in entity_values:
                    values[(entity_type, entity_id)] = entity_values[group_by_property_id]

        return group_entities(definition, entities, values)
