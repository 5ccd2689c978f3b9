"""Record-store adapters for the five entity types.

Each adapter knows the join path from its record table to the owning
workspace and how to title its rows. The queries are deliberately thin.
"""

from collections.abc import Collection, Iterable
from uuid import UUID

import structlog
from sqlalchemy import Select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from propgraph.db.models import (
    Block,
    DataTable,
    Project,
    Tab,
    TableField,
    TableRow,
    TaskItem,
    TaskSubtask,
    TimelineEvent,
)
from propgraph.entities.base import EntityAdapter
from propgraph.entities.titles import block_title, table_id_from_block_content, table_row_title
from propgraph.models.entities import EntityReference, EntityType
from propgraph.models.queries import QueryScope

log = structlog.get_logger()

TIMELINE_CONTEXT = "Timeline"
TABLE_CONTEXT = "Table"


def _title_contains(column: object, query: str) -> object:
    """Case-insensitive substring match, with LIKE wildcards escaped."""
    return func.lower(column).contains(query.lower(), autoescape=True)


def _matches(title: str, query: str) -> bool:
    return not query or query in title.lower()


# =============================================================================
# Blocks - workspace via tab -> project
# =============================================================================


class BlockAdapter(EntityAdapter):
    entity_type = EntityType.BLOCK

    @staticmethod
    def _select() -> Select:
        return (
            select(Block, Tab.name)
            .join(Tab, col(Block.tab_id) == col(Tab.id))
            .join(Project, col(Tab.project_id) == col(Project.id))
        )

    def _render(self, block: Block, tab_name: str | None) -> EntityReference:
        return self.reference(block.id, block_title(block.type, block.content), tab_name or "")

    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        result = await session.execute(
            select(Project.workspace_id)
            .join(Tab, col(Tab.project_id) == col(Project.id))
            .join(Block, col(Block.tab_id) == col(Tab.id))
            .where(Block.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        if not entity_ids:
            return {}
        stmt = self._select().where(col(Block.id).in_(list(entity_ids)))
        if workspace_id is not None:
            stmt = stmt.where(Project.workspace_id == workspace_id)
        result = await session.execute(stmt)
        return {block.id: self._render(block, tab_name) for block, tab_name in result.all()}

    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        stmt = self._select().where(Project.workspace_id == workspace_id)
        if scope == QueryScope.PROJECT:
            stmt = stmt.where(Tab.project_id == project_id)
        elif scope == QueryScope.TAB:
            stmt = stmt.where(Block.tab_id == tab_id)
        result = await session.execute(stmt.order_by(col(Block.created_at), col(Block.id)))
        return [self._render(block, tab_name) for block, tab_name in result.all()]

    async def search(
        self, session: AsyncSession, workspace_id: UUID, query: str, limit: int
    ) -> list[EntityReference]:
        # Titles are derived from JSON content, so matching happens after the fetch
        result = await session.execute(
            self._select()
            .where(Project.workspace_id == workspace_id)
            .order_by(col(Block.updated_at).desc())
        )
        matches: list[EntityReference] = []
        for block, tab_name in result.all():
            ref = self._render(block, tab_name)
            if _matches(ref.title.lower(), query):
                matches.append(ref)
                if len(matches) >= limit:
                    break
        return matches


# =============================================================================
# Tasks - workspace column; project via the task or its tab
# =============================================================================


class TaskAdapter(EntityAdapter):
    entity_type = EntityType.TASK

    @staticmethod
    def _select() -> Select:
        return select(TaskItem, Tab.name).outerjoin(Tab, col(TaskItem.tab_id) == col(Tab.id))

    def _render(self, task: TaskItem, tab_name: str | None) -> EntityReference:
        return self.reference(task.id, task.title, tab_name or "")

    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        result = await session.execute(
            select(TaskItem.workspace_id).where(TaskItem.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        if not entity_ids:
            return {}
        stmt = self._select().where(col(TaskItem.id).in_(list(entity_ids)))
        if workspace_id is not None:
            stmt = stmt.where(TaskItem.workspace_id == workspace_id)
        result = await session.execute(stmt)
        return {task.id: self._render(task, tab_name) for task, tab_name in result.all()}

    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        stmt = self._select().where(TaskItem.workspace_id == workspace_id)
        if scope == QueryScope.PROJECT:
            # Tasks placed on a tab may not carry project_id themselves
            stmt = stmt.where(
                or_(col(TaskItem.project_id) == project_id, col(Tab.project_id) == project_id)
            )
        elif scope == QueryScope.TAB:
            stmt = stmt.where(TaskItem.tab_id == tab_id)
        result = await session.execute(stmt.order_by(col(TaskItem.created_at), col(TaskItem.id)))
        return [self._render(task, tab_name) for task, tab_name in result.all()]

    async def search(
        self, session: AsyncSession, workspace_id: UUID, query: str, limit: int
    ) -> list[EntityReference]:
        result = await session.execute(
            self._select()
            .where(TaskItem.workspace_id == workspace_id)
            .where(_title_contains(TaskItem.title, query))
            .order_by(col(TaskItem.updated_at).desc())
            .limit(limit)
        )
        return [self._render(task, tab_name) for task, tab_name in result.all()]


# =============================================================================
# Subtasks - workspace via parent task
# =============================================================================


class SubtaskAdapter(EntityAdapter):
    entity_type = EntityType.SUBTASK

    @staticmethod
    def _select() -> Select:
        return select(TaskSubtask, TaskItem.title).join(
            TaskItem, col(TaskSubtask.task_id) == col(TaskItem.id)
        )

    def _render(self, subtask: TaskSubtask, task_title: str | None) -> EntityReference:
        return self.reference(subtask.id, subtask.title, task_title or "")

    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        result = await session.execute(
            select(TaskItem.workspace_id)
            .join(TaskSubtask, col(TaskSubtask.task_id) == col(TaskItem.id))
            .where(TaskSubtask.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        if not entity_ids:
            return {}
        stmt = self._select().where(col(TaskSubtask.id).in_(list(entity_ids)))
        if workspace_id is not None:
            stmt = stmt.where(TaskItem.workspace_id == workspace_id)
        result = await session.execute(stmt)
        return {sub.id: self._render(sub, task_title) for sub, task_title in result.all()}

    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        stmt = self._select().where(TaskItem.workspace_id == workspace_id)
        if scope == QueryScope.PROJECT:
            stmt = stmt.where(TaskItem.project_id == project_id)
        elif scope == QueryScope.TAB:
            stmt = stmt.where(TaskItem.tab_id == tab_id)
        result = await session.execute(
            stmt.order_by(col(TaskSubtask.created_at), col(TaskSubtask.id))
        )
        return [self._render(sub, task_title) for sub, task_title in result.all()]

    async def search(
        self, session: AsyncSession, workspace_id: UUID, query: str, limit: int
    ) -> list[EntityReference]:
        result = await session.execute(
            self._select()
            .where(TaskItem.workspace_id == workspace_id)
            .where(_title_contains(TaskSubtask.title, query))
            .order_by(col(TaskSubtask.updated_at).desc())
            .limit(limit)
        )
        return [self._render(sub, task_title) for sub, task_title in result.all()]


# =============================================================================
# Timeline events - workspace column; scope via timeline block -> tab
# =============================================================================


class TimelineEventAdapter(EntityAdapter):
    entity_type = EntityType.TIMELINE_EVENT

    def _render(self, event: TimelineEvent) -> EntityReference:
        return self.reference(event.id, event.title, TIMELINE_CONTEXT)

    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        result = await session.execute(
            select(TimelineEvent.workspace_id).where(TimelineEvent.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        if not entity_ids:
            return {}
        stmt = select(TimelineEvent).where(col(TimelineEvent.id).in_(list(entity_ids)))
        if workspace_id is not None:
            stmt = stmt.where(TimelineEvent.workspace_id == workspace_id)
        result = await session.execute(stmt)
        return {event.id: self._render(event) for event in result.scalars().all()}

    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        stmt = select(TimelineEvent).where(TimelineEvent.workspace_id == workspace_id)
        if scope != QueryScope.ALL:
            stmt = stmt.join(Block, col(TimelineEvent.timeline_block_id) == col(Block.id)).join(
                Tab, col(Block.tab_id) == col(Tab.id)
            )
            if scope == QueryScope.PROJECT:
                stmt = stmt.where(Tab.project_id == project_id)
            else:
                stmt = stmt.where(Block.tab_id == tab_id)
        result = await session.execute(
            stmt.order_by(col(TimelineEvent.created_at), col(TimelineEvent.id))
        )
        return [self._render(event) for event in result.scalars().all()]

    async def search(
        self, session: AsyncSession, workspace_id: UUID, query: str, limit: int
    ) -> list[EntityReference]:
        result = await session.execute(
            select(TimelineEvent)
            .where(TimelineEvent.workspace_id == workspace_id)
            .where(_title_contains(TimelineEvent.title, query))
            .order_by(col(TimelineEvent.updated_at).desc())
            .limit(limit)
        )
        return [self._render(event) for event in result.scalars().all()]


# =============================================================================
# Table rows - workspace via table; scope via table project or table blocks
# =============================================================================


class TableRowAdapter(EntityAdapter):
    entity_type = EntityType.TABLE_ROW

    @staticmethod
    def _select() -> Select:
        return select(TableRow, DataTable.title).join(
            DataTable, col(TableRow.table_id) == col(DataTable.id)
        )

    async def _render_rows(
        self, session: AsyncSession, rows: Iterable[tuple[TableRow, str | None]]
    ) -> list[EntityReference]:
        rows = list(rows)
        table_ids = {row.table_id for row, _ in rows}
        fields_by_table: dict[UUID, list[TableField]] = {}
        if table_ids:
            result = await session.execute(
                select(TableField).where(col(TableField.table_id).in_(list(table_ids)))
            )
            for field in result.scalars().all():
                fields_by_table.setdefault(field.table_id, []).append(field)

        return [
            self.reference(
                row.id,
                table_row_title(row.data, fields_by_table.get(row.table_id, [])),
                table_title or TABLE_CONTEXT,
            )
            for row, table_title in rows
        ]

    async def _table_ids_from_blocks(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> set[UUID]:
        """Tables embedded via table blocks on the project's or tab's pages."""
        stmt = (
            select(Block.content)
            .join(Tab, col(Block.tab_id) == col(Tab.id))
            .join(Project, col(Tab.project_id) == col(Project.id))
            .where(Project.workspace_id == workspace_id, Block.type == "table")
        )
        if project_id is not None:
            stmt = stmt.where(Tab.project_id == project_id)
        if tab_id is not None:
            stmt = stmt.where(Block.tab_id == tab_id)

        result = await session.execute(stmt)
        table_ids: set[UUID] = set()
        for content in result.scalars().all():
            raw = table_id_from_block_content(content)
            if raw is None:
                continue
            try:
                table_ids.add(UUID(raw))
            except ValueError:
                log.debug("table_block_invalid_table_id", table_id=raw)
        return table_ids

    async def resolve_workspace_id(self, session: AsyncSession, entity_id: UUID) -> UUID | None:
        result = await session.execute(
            select(DataTable.workspace_id)
            .join(TableRow, col(TableRow.table_id) == col(DataTable.id))
            .where(TableRow.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_references(
        self,
        session: AsyncSession,
        entity_ids: Collection[UUID],
        *,
        workspace_id: UUID | None = None,
    ) -> dict[UUID, EntityReference]:
        if not entity_ids:
            return {}
        stmt = self._select().where(col(TableRow.id).in_(list(entity_ids)))
        if workspace_id is not None:
            stmt = stmt.where(DataTable.workspace_id == workspace_id)
        result = await session.execute(stmt)
        refs = await self._render_rows(session, result.all())
        return {ref.id: ref for ref in refs}

    async def list_candidates(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        *,
        scope: QueryScope = QueryScope.ALL,
        project_id: UUID | None = None,
        tab_id: UUID | None = None,
    ) -> list[EntityReference]:
        stmt = self._select().where(DataTable.workspace_id == workspace_id)
        if scope == QueryScope.PROJECT:
            embedded = await self._table_ids_from_blocks(
                session, workspace_id, project_id=project_id
            )
            condition = col(DataTable.project_id) == project_id
            if embedded:
                condition = or_(condition, col(TableRow.table_id).in_(list(embedded)))
            stmt = stmt.where(condition)
        elif scope == QueryScope.TAB:
            embedded = await self._table_ids_from_blocks(session, workspace_id, tab_id=tab_id)
            if not embedded:
                return []
            stmt = stmt.where(col(TableRow.table_id).in_(list(embedded)))

        result = await session.execute(stmt.order_by(col(TableRow.created_at), col(TableRow.id)))
        return await self._render_rows(session, result.all())

    async def search(
        self, session: AsyncSession, workspace_id: UUID, query: str, limit: int
    ) -> list[EntityReference]:
        result = await session.execute(
            self._select()
            .where(DataTable.workspace_id == workspace_id)
            .order_by(col(TableRow.updated_at).desc())
        )
        matches: list[EntityReference] = []
        for ref in await self._render_rows(session, result.all()):
            if _matches(ref.title.lower(), query):
                matches.append(ref)
                if len(matches) >= limit:
                    break
        return matches
