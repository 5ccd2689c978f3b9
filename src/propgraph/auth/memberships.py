"""Workspace membership helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from propgraph.db.models import WorkspaceMember, WorkspaceRole

if TYPE_CHECKING:
    from uuid import UUID


class WorkspaceMembershipManager:
    """Lookups and upserts for `WorkspaceMember` rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    def from_session(cls, session: AsyncSession) -> Self:
        return cls(session)

    async def get_for_user(self, workspace_id: UUID, user_id: UUID) -> WorkspaceMember | None:
        result = await self._session.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, workspace_id: UUID, user_id: UUID) -> bool:
        return await self.get_for_user(workspace_id, user_id) is not None

    async def add_member(
        self,
        *,
        workspace_id: UUID,
        user_id: UUID,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
    ) -> WorkspaceMember:
        existing = await self.get_for_user(workspace_id, user_id)
        if existing is not None:
            existing.role = role
            self._session.add(existing)
            return existing

        membership = WorkspaceMember(workspace_id=workspace_id, user_id=user_id, role=role)
        self._session.add(membership)
        return membership
