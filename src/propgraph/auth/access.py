"""Authorization checks performed before any engine work.

Every exposed operation first turns the caller into a `WorkspaceAccess` for
the workspace it touches. Failures short-circuit the operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from propgraph.auth.memberships import WorkspaceMembershipManager
from propgraph.db.models import PropertyDefinition
from propgraph.errors import AccessDeniedError, NotFoundError, UnauthorizedError
from propgraph.models.entities import EntityKey, EntityType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from propgraph.entities.registry import EntityRegistry

log = structlog.get_logger()


@dataclass(frozen=True)
class Caller:
    """The identity an operation runs as. ``user_id`` is None when unauthenticated."""

    user_id: UUID | None = None


@dataclass(frozen=True)
class WorkspaceAccess:
    """Proof that ``user_id`` may act inside ``workspace_id``."""

    user_id: UUID
    workspace_id: UUID


class WorkspaceAccessGuard(Protocol):
    async def require_workspace(
        self, session: AsyncSession, caller: Caller, workspace_id: UUID
    ) -> WorkspaceAccess: ...

    async def require_entity(
        self,
        session: AsyncSession,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
    ) -> WorkspaceAccess: ...

    async def require_definition(
        self, session: AsyncSession, caller: Caller, definition_id: UUID
    ) -> WorkspaceAccess: ...


class MembershipAccessGuard:
    """Guard backed by `workspace_members` rows."""

    def __init__(self, registry: EntityRegistry) -> None:
        self._registry = registry

    @staticmethod
    def _require_identity(caller: Caller | None) -> UUID:
        if caller is None or caller.user_id is None:
            raise UnauthorizedError()
        return caller.user_id

    async def require_workspace(
        self, session: AsyncSession, caller: Caller, workspace_id: UUID
    ) -> WorkspaceAccess:
        user_id = self._require_identity(caller)
        memberships = WorkspaceMembershipManager.from_session(session)
        if not await memberships.is_member(workspace_id, user_id):
            log.info("workspace_access_denied", user_id=str(user_id), workspace_id=str(workspace_id))
            raise AccessDeniedError(workspace_id)
        return WorkspaceAccess(user_id=user_id, workspace_id=workspace_id)

    async def require_entity(
        self,
        session: AsyncSession,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
    ) -> WorkspaceAccess:
        self._require_identity(caller)
        key = EntityKey(type=self._registry.get(entity_type).entity_type, id=entity_id)
        workspace_id = await self._registry.resolve_workspace_id(session, key)
        if workspace_id is None:
            raise NotFoundError("Entity", key, "Entity not found")
        return await self.require_workspace(session, caller, workspace_id)

    async def require_definition(
        self, session: AsyncSession, caller: Caller, definition_id: UUID
    ) -> WorkspaceAccess:
        self._require_identity(caller)
        definition = await session.get(PropertyDefinition, definition_id)
        if definition is None:
            raise NotFoundError("Property definition", definition_id, "Property definition not found")
        return await self.require_workspace(session, caller, definition.workspace_id)
