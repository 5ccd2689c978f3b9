"""Property inheritance along incoming links.

A target entity inherits the direct values of every entity that links to it,
for the properties it has no direct value for. Inheritance is single-hop: a
source's own inherited values are not passed on.

When several sources contribute the same property, the merged value becomes a
list of the contributions in link order (oldest link first).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self
from uuid import UUID

import structlog

from propgraph.links.graph import EntityLinkGraph
from propgraph.models.entities import EntityKey, EntityType
from propgraph.properties.store import EntityPropertyStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from propgraph.db.models import EntityProperty
    from propgraph.entities.registry import EntityRegistry

log = structlog.get_logger()


@dataclass(frozen=True)
class InheritedValue:
    """One source's direct value offered to one target."""

    target_id: UUID
    source: EntityKey
    row: EntityProperty

    @property
    def definition_id(self) -> UUID:
        return self.row.property_definition_id

    @property
    def value(self) -> Any:
        return self.row.value


def merge_values(
    direct: Mapping[UUID, Any], contributions: Iterable[InheritedValue]
) -> dict[UUID, Any]:
    """Merged ``{definition_id: value}`` view of one target.

    Direct values are kept as they are. A second contribution for the same
    property turns the inherited value into a list, further ones extend it.
    """
    merged = dict(direct)
    for contribution in contributions:
        definition_id = contribution.definition_id
        if definition_id in direct:
            continue
        if definition_id not in merged:
            merged[definition_id] = contribution.value
        elif isinstance(merged[definition_id], list):
            merged[definition_id] = [*merged[definition_id], contribution.value]
        else:
            merged[definition_id] = [merged[definition_id], contribution.value]
    return merged


class InheritanceResolver:
    """Merges direct values with values inherited over incoming links."""

    def __init__(self, session: AsyncSession, registry: EntityRegistry) -> None:
        self._store = EntityPropertyStore.from_session(session)
        self._graph = EntityLinkGraph.from_session(session, registry)

    @classmethod
    def from_session(cls, session: AsyncSession, registry: EntityRegistry) -> Self:
        return cls(session, registry)

    async def collect_inherited(
        self,
        target_type: EntityType,
        target_ids: Collection[UUID],
        property_ids: Collection[UUID] | None = None,
    ) -> list[InheritedValue]:
        """Every source value offered to the targets, in link order.

        Direct values of the targets are not consulted here.
        """
        links = await self._graph.incoming_links(target_type, target_ids)
        if not links:
            return []

        source_ids_by_type: dict[EntityType, set[UUID]] = defaultdict(set)
        for link in links:
            source_ids_by_type[EntityType(link.source_entity_type)].add(link.source_entity_id)

        # One round trip per source type, sequentially
        rows_by_source: dict[EntityKey, list[EntityProperty]] = defaultdict(list)
        for source_type, source_ids in source_ids_by_type.items():
            for row in await self._store.get_many(source_type, source_ids, property_ids):
                rows_by_source[EntityKey(type=source_type, id=row.entity_id)].append(row)

        contributions: list[InheritedValue] = []
        for link in links:
            source = EntityKey(type=EntityType(link.source_entity_type), id=link.source_entity_id)
            for row in rows_by_source.get(source, ()):
                contributions.append(
                    InheritedValue(target_id=link.target_entity_id, source=source, row=row)
                )
        return contributions

    async def resolve(
        self,
        target_type: EntityType,
        target_ids: Collection[UUID],
        property_ids: Collection[UUID] | None = None,
        *,
        include_inherited: bool = True,
    ) -> dict[UUID, dict[UUID, Any]]:
        """``{target_id: {definition_id: value}}`` with direct values always winning."""
        direct = await self._store.value_map(target_type, target_ids, property_ids)
        if not include_inherited:
            return {target_id: dict(values) for target_id, values in direct.items()}

        contributions = await self.collect_inherited(target_type, target_ids, property_ids)
        by_target: dict[UUID, list[InheritedValue]] = defaultdict(list)
        for contribution in contributions:
            by_target[contribution.target_id].append(contribution)

        merged: dict[UUID, dict[UUID, Any]] = {}
        for target_id in direct.keys() | by_target.keys():
            merged[target_id] = merge_values(direct.get(target_id, {}), by_target.get(target_id, ()))

        log.debug(
            "inherited_properties_resolved",
            target_type=target_type.value,
            targets=len(target_ids),
            contributions=len(contributions),
        )
        return merged
