"""Directed entity links ("mentions") between any two entities of a workspace.

Invariants enforced on write:
- no self-links
- source and target resolve to the link's workspace
- at most one link per (source, target) pair
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import TYPE_CHECKING, Self
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from propgraph.db.connection import is_unique_violation
from propgraph.db.models import EntityLink
from propgraph.errors import (
    AlreadyExistsError,
    CrossWorkspaceError,
    NotFoundError,
    SelfReferenceError,
)
from propgraph.models.entities import EntityKey, EntityReference, EntityType
from propgraph.models.links import EntityLinkRead, EntityLinks

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from propgraph.entities.registry import EntityRegistry

log = structlog.get_logger()


def _link_order() -> tuple:
    return (col(EntityLink.created_at), col(EntityLink.id))


class EntityLinkGraph:
    """CRUD and traversal over `EntityLink` rows."""

    def __init__(self, session: AsyncSession, registry: EntityRegistry) -> None:
        self._session = session
        self._registry = registry

    @classmethod
    def from_session(cls, session: AsyncSession, registry: EntityRegistry) -> Self:
        return cls(session, registry)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create(self, source: EntityKey, target: EntityKey, workspace_id: UUID) -> EntityLink:
        """Create ``source -> target`` inside ``workspace_id``.

        The caller has already verified access to the source, which resolves
        to ``workspace_id``.
        """
        if source == target:
            raise SelfReferenceError(source.type.value, source.id)

        target_workspace = await self._registry.resolve_workspace_id(self._session, target)
        if target_workspace is None:
            raise NotFoundError("Entity", target, "Target entity not found")
        if target_workspace != workspace_id:
            raise CrossWorkspaceError(workspace_id, target_workspace)

        link = EntityLink(
            source_entity_type=source.type.value,
            source_entity_id=source.id,
            target_entity_type=target.type.value,
            target_entity_id=target.id,
            workspace_id=workspace_id,
        )
        self._session.add(link)
        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise AlreadyExistsError(
                    "This link already exists",
                    details={"source": str(source), "target": str(target)},
                ) from e
            raise

        log.info("entity_link_created", source=str(source), target=str(target))
        return link

    async def remove(self, source: EntityKey, target: EntityKey) -> bool:
        """Delete by exact match. Returns False when no link existed."""
        result = await self._session.execute(
            delete(EntityLink).where(
                col(EntityLink.source_entity_type) == source.type.value,
                col(EntityLink.source_entity_id) == source.id,
                col(EntityLink.target_entity_type) == target.type.value,
                col(EntityLink.target_entity_id) == target.id,
            )
        )
        removed = bool(result.rowcount)
        if removed:
            log.info("entity_link_removed", source=str(source), target=str(target))
        return removed

    async def remove_links_for_entity(self, entity: EntityKey) -> int:
        """Delete every link touching ``entity`` (for record-store deletions)."""
        result = await self._session.execute(
            delete(EntityLink).where(
                or_(
                    and_(
                        col(EntityLink.source_entity_type) == entity.type.value,
                        col(EntityLink.source_entity_id) == entity.id,
                    ),
                    and_(
                        col(EntityLink.target_entity_type) == entity.type.value,
                        col(EntityLink.target_entity_id) == entity.id,
                    ),
                )
            )
        )
        return int(result.rowcount or 0)

    # =========================================================================
    # Raw edges
    # =========================================================================

    async def outgoing_links(self, source: EntityKey) -> list[EntityLink]:
        result = await self._session.execute(
            select(EntityLink)
            .where(
                EntityLink.source_entity_type == source.type.value,
                EntityLink.source_entity_id == source.id,
            )
            .order_by(*_link_order())
        )
        return list(result.scalars().all())

    async def incoming_links(
        self, target_type: EntityType, target_ids: Collection[UUID]
    ) -> list[EntityLink]:
        """Links pointing at a batch of targets of one type, in creation order."""
        if not target_ids:
            return []
        result = await self._session.execute(
            select(EntityLink)
            .where(
                EntityLink.target_entity_type == target_type.value,
                col(EntityLink.target_entity_id).in_(list(target_ids)),
            )
            .order_by(*_link_order())
        )
        return list(result.scalars().all())

    async def links_for(self, entity: EntityKey) -> EntityLinks:
        outgoing = await self.outgoing_links(entity)
        incoming = await self.incoming_links(entity.type, [entity.id])
        return EntityLinks(
            outgoing=[EntityLinkRead.model_validate(link) for link in outgoing],
            incoming=[EntityLinkRead.model_validate(link) for link in incoming],
        )

    # =========================================================================
    # Resolved neighbours
    # =========================================================================

    async def linked_references(
        self, entity: EntityKey, workspace_id: UUID
    ) -> list[EntityReference]:
        """Targets of outgoing links. Unresolvable targets are dropped."""
        links = await self.outgoing_links(entity)
        keys = [
            EntityKey(type=EntityType(link.target_entity_type), id=link.target_entity_id)
            for link in links
        ]
        return await self._registry.resolve_references(
            self._session, keys, workspace_id=workspace_id
        )

    async def linking_references(
        self, entity: EntityKey, workspace_id: UUID
    ) -> list[EntityReference]:
        """Sources of incoming links. Unresolvable sources are dropped."""
        links = await self.incoming_links(entity.type, [entity.id])
        keys = [
            EntityKey(type=EntityType(link.source_entity_type), id=link.source_entity_id)
            for link in links
        ]
        return await self._registry.resolve_references(
            self._session, keys, workspace_id=workspace_id
        )

    async def search_linkable(
        self,
        workspace_id: UUID,
        query: str,
        entity_types: Sequence[EntityType] | None,
        limit: int,
    ) -> list[EntityReference]:
        """Title search across entity types for mention pickers.

        Types are searched in order and share one ``limit``: each search gets
        whatever budget the earlier types left, so a prolific early type can
        leave nothing for later ones.
        """
        needle = query.strip().lower()
        results: list[EntityReference] = []
        for entity_type in entity_types or self._registry.types():
            remaining = limit - len(results)
            if remaining <= 0:
                break
            adapter = self._registry.get(entity_type)
            results.extend(await adapter.search(self._session, workspace_id, needle, remaining))
        return results
