"""Per-entity property values and inherited-display preferences."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection
from typing import Any, Self
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from propgraph.db.connection import is_unique_violation
from propgraph.db.models import (
    EntityInheritedDisplay,
    EntityProperty,
    PropertyDefinition,
    utcnow_naive,
)
from propgraph.errors import StoreError
from propgraph.models.entities import EntityKey, EntityType
from propgraph.models.properties import PropertyOption
from propgraph.properties.values import validate_property_value

log = structlog.get_logger()


class EntityPropertyStore:
    """CRUD over ``(entity_type, entity_id, property_definition_id) -> value``.

    Callers authorize access to the entity's workspace first.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    def from_session(cls, session: AsyncSession) -> Self:
        return cls(session)

    async def _get_row(
        self, entity_type: EntityType, entity_id: UUID, definition_id: UUID
    ) -> EntityProperty | None:
        result = await self._session.execute(
            select(EntityProperty).where(
                EntityProperty.entity_type == entity_type.value,
                EntityProperty.entity_id == entity_id,
                EntityProperty.property_definition_id == definition_id,
            )
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Writes
    # =========================================================================

    async def set(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        definition: PropertyDefinition,
        value: Any,
    ) -> EntityProperty:
        """Validate ``value`` against the definition and upsert it (last write wins)."""
        stored = validate_property_value(
            definition.type,
            value,
            options=[PropertyOption.model_validate(o) for o in definition.options],
            name=definition.name,
        )

        row = await self._get_row(entity_type, entity_id, definition.id)
        if row is None:
            row = await self._insert(entity_type, entity_id, definition.id, stored)
        else:
            await self._overwrite(row, stored)

        log.debug(
            "entity_property_set",
            entity=f"{entity_type.value}:{entity_id}",
            property_definition_id=str(definition.id),
        )
        return row

    async def _overwrite(self, row: EntityProperty, value: Any) -> None:
        row.value = value
        row.updated_at = utcnow_naive()
        self._session.add(row)
        await self._session.flush()

    async def _insert(
        self, entity_type: EntityType, entity_id: UUID, definition_id: UUID, value: Any
    ) -> EntityProperty:
        """Insert a new value row. A concurrent first write to the same key is overwritten."""
        row = EntityProperty(
            entity_type=entity_type.value,
            entity_id=entity_id,
            property_definition_id=definition_id,
            value=value,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            existing = await self._get_row(entity_type, entity_id, definition_id)
            if existing is None:
                raise StoreError("Property value was removed while being written") from e
            log.info(
                "entity_property_insert_raced",
                entity=f"{entity_type.value}:{entity_id}",
                property_definition_id=str(definition_id),
            )
            await self._overwrite(existing, value)
            return existing
        return row

    async def remove(self, entity_type: EntityType, entity_id: UUID, definition_id: UUID) -> bool:
        """Delete one value. Returns False when there was nothing to delete."""
        result = await self._session.execute(
            delete(EntityProperty).where(
                col(EntityProperty.entity_type) == entity_type.value,
                col(EntityProperty.entity_id) == entity_id,
                col(EntityProperty.property_definition_id) == definition_id,
            )
        )
        return bool(result.rowcount)

    async def purge_definition(self, definition_id: UUID) -> int:
        """Delete every value and display preference of one definition."""
        await self._session.execute(
            delete(EntityInheritedDisplay).where(
                col(EntityInheritedDisplay.property_definition_id) == definition_id
            )
        )
        result = await self._session.execute(
            delete(EntityProperty).where(col(EntityProperty.property_definition_id) == definition_id)
        )
        return int(result.rowcount or 0)

    async def remove_for_entity(self, entity_type: EntityType, entity_id: UUID) -> int:
        """Delete all values of one entity and display preferences naming it as target or source."""
        await self._session.execute(
            delete(EntityInheritedDisplay).where(
                or_(
                    and_(
                        col(EntityInheritedDisplay.entity_type) == entity_type.value,
                        col(EntityInheritedDisplay.entity_id) == entity_id,
                    ),
                    and_(
                        col(EntityInheritedDisplay.source_entity_type) == entity_type.value,
                        col(EntityInheritedDisplay.source_entity_id) == entity_id,
                    ),
                )
            )
        )
        result = await self._session.execute(
            delete(EntityProperty).where(
                col(EntityProperty.entity_type) == entity_type.value,
                col(EntityProperty.entity_id) == entity_id,
            )
        )
        return int(result.rowcount or 0)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, entity_type: EntityType, entity_id: UUID) -> list[EntityProperty]:
        return await self.get_many(entity_type, [entity_id])

    async def get_many(
        self,
        entity_type: EntityType,
        entity_ids: Collection[UUID],
        property_ids: Collection[UUID] | None = None,
    ) -> list[EntityProperty]:
        """Direct rows for a batch of entities of one type, oldest first."""
        if not entity_ids or (property_ids is not None and not property_ids):
            return []
        stmt = select(EntityProperty).where(
            EntityProperty.entity_type == entity_type.value,
            col(EntityProperty.entity_id).in_(list(entity_ids)),
        )
        if property_ids is not None:
            stmt = stmt.where(col(EntityProperty.property_definition_id).in_(list(property_ids)))
        result = await self._session.execute(
            stmt.order_by(col(EntityProperty.created_at), col(EntityProperty.id))
        )
        return list(result.scalars().all())

    async def value_map(
        self,
        entity_type: EntityType,
        entity_ids: Collection[UUID],
        property_ids: Collection[UUID] | None = None,
    ) -> dict[UUID, dict[UUID, Any]]:
        """``{entity_id: {definition_id: value}}`` for the direct values only."""
        values: dict[UUID, dict[UUID, Any]] = defaultdict(dict)
        for row in await self.get_many(entity_type, entity_ids, property_ids):
            values[row.entity_id][row.property_definition_id] = row.value
        return dict(values)

    # =========================================================================
    # Inherited display preferences
    # =========================================================================

    async def set_inherited_visibility(
        self,
        entity: EntityKey,
        source: EntityKey,
        definition_id: UUID,
        *,
        is_visible: bool,
    ) -> EntityInheritedDisplay:
        result = await self._session.execute(
            select(EntityInheritedDisplay).where(
                EntityInheritedDisplay.entity_type == entity.type.value,
                EntityInheritedDisplay.entity_id == entity.id,
                EntityInheritedDisplay.source_entity_type == source.type.value,
                EntityInheritedDisplay.source_entity_id == source.id,
                EntityInheritedDisplay.property_definition_id == definition_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = EntityInheritedDisplay(
                entity_type=entity.type.value,
                entity_id=entity.id,
                source_entity_type=source.type.value,
                source_entity_id=source.id,
                property_definition_id=definition_id,
                is_visible=is_visible,
            )
        else:
            row.is_visible = is_visible
        self._session.add(row)
        await self._session.flush()
        return row

    async def visibility_map(self, entity: EntityKey) -> dict[tuple[EntityKey, UUID], bool]:
        """``{(source, definition_id): is_visible}`` for one target entity."""
        result = await self._session.execute(
            select(EntityInheritedDisplay).where(
                EntityInheritedDisplay.entity_type == entity.type.value,
                EntityInheritedDisplay.entity_id == entity.id,
            )
        )
        return {
            (
                EntityKey(type=EntityType(row.source_entity_type), id=row.source_entity_id),
                row.property_definition_id,
            ): row.is_visible
            for row in result.scalars().all()
        }
