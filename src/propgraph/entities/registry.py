"""Lookup table from entity type to its adapter.

Adding an entity type means writing one adapter and registering it here.
"""

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from propgraph.entities.adapters import (
    BlockAdapter,
    SubtaskAdapter,
    TableRowAdapter,
    TaskAdapter,
    TimelineEventAdapter,
)
from propgraph.entities.base import EntityAdapter
from propgraph.errors import ValidationError
from propgraph.models.entities import EntityKey, EntityReference, EntityType

log = structlog.get_logger()


class EntityRegistry:
    """Registered adapters, kept in registration order."""

    def __init__(self, adapters: Iterable[EntityAdapter] = ()) -> None:
        self._adapters: dict[EntityType, EntityAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: EntityAdapter) -> None:
        self._adapters[adapter.entity_type] = adapter

    def get(self, entity_type: EntityType | str) -> EntityAdapter:
        try:
            return self._adapters[EntityType(entity_type)]
        except (KeyError, ValueError) as e:
            raise ValidationError(f"Unsupported entity type: {entity_type}") from e

    def types(self) -> list[EntityType]:
        return list(self._adapters)

    async def resolve_workspace_id(self, session: AsyncSession, key: EntityKey) -> UUID | None:
        return await self.get(key.type).resolve_workspace_id(session, key.id)

    async def resolve_references(
        self,
        session: AsyncSession,
        keys: Iterable[EntityKey],
        *,
        workspace_id: UUID | None = None,
    ) -> list[EntityReference]:
        """Resolve keys to references, one batch per type.

        Keys that do not resolve (deleted, or outside ``workspace_id``) are
        dropped. Input order is preserved.
        """
        keys = list(keys)
        by_type: dict[EntityType, set[UUID]] = defaultdict(set)
        for key in keys:
            by_type[key.type].add(key.id)

        resolved: dict[EntityKey, EntityReference] = {}
        for entity_type, ids in by_type.items():
            refs = await self.get(entity_type).get_references(
                session, ids, workspace_id=workspace_id
            )
            for entity_id, ref in refs.items():
                resolved[EntityKey(type=entity_type, id=entity_id)] = ref

        dropped = len(keys) - sum(1 for key in keys if key in resolved)
        if dropped:
            log.debug("entity_references_dropped", count=dropped)
        return [resolved[key] for key in keys if key in resolved]


def default_registry() -> EntityRegistry:
    """Registry with the five built-in entity types."""
    return EntityRegistry(
        [
            BlockAdapter(),
            TaskAdapter(),
            SubtaskAdapter(),
            TimelineEventAdapter(),
            TableRowAdapter(),
        ]
    )
