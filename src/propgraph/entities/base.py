"""Capability interface implemented once per entity type."""

from abc import ABC, abstractmethod
from collections.abc import Collection
from typing import ClassVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from propgraph.models.entities import EntityReference, EntityType
from propgraph.models.queries import QueryScope


class EntityAdapter(ABC):
    """Read-only view of one record store, as needed by the properties engine."""

    entity_type: ClassVar[EntityType]

    @abstractmethod
    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        """Owning workspace of an entity, or None if it does not exist."""

    @abstractmethod
    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        """Batch-resolve entities to references. Missing ids are absent from the result."""

    @abstractmethod
    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        """All entities of this type inside the workspace and scope."""

    @abstractmethod
    async def search(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        query: str,
        limit: int,
    ) -> list[EntityReference]:
        """Up to ``limit`` entities whose title contains ``query`` (case-insensitive)."""

    def reference(self, entity_id: UUID, title: str, context: str = "") -> EntityReference:
        return EntityReference(type=self.entity_type, id=entity_id, title=title, context=context)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.entity_type.value}>"
