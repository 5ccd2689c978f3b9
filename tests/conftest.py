"""Shared fixtures: an in-memory SQLite database seeded with two workspaces."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from propgraph.auth import Caller, WorkspaceMembershipManager
from propgraph.db import (
    Block,
    DataTable,
    Project,
    Tab,
    TableField,
    TableRow,
    TaskItem,
    TaskSubtask,
    TimelineEvent,
    Workspace,
    WorkspaceRole,
    create_engine_for_url,
    init_db,
    make_session_factory,
    session_scope,
)
from propgraph.entities import EntityRegistry, default_registry
from propgraph.service import PropertiesService

# =============================================================================
# Seed data
# =============================================================================


@dataclass
class World:
    """Ids of everything seeded into the test database."""

    workspace_id: UUID = field(default_factory=uuid4)
    other_workspace_id: UUID = field(default_factory=uuid4)
    member_id: UUID = field(default_factory=uuid4)
    outsider_id: UUID = field(default_factory=uuid4)

    project_id: UUID = field(default_factory=uuid4)
    planning_tab_id: UUID = field(default_factory=uuid4)
    notes_tab_id: UUID = field(default_factory=uuid4)

    text_block_id: UUID = field(default_factory=uuid4)
    table_block_id: UUID = field(default_factory=uuid4)
    timeline_block_id: UUID = field(default_factory=uuid4)

    plan_task_id: UUID = field(default_factory=uuid4)
    budget_task_id: UUID = field(default_factory=uuid4)
    loose_task_id: UUID = field(default_factory=uuid4)
    subtask_id: UUID = field(default_factory=uuid4)
    event_id: UUID = field(default_factory=uuid4)

    table_id: UUID = field(default_factory=uuid4)
    name_field_id: UUID = field(default_factory=uuid4)
    notes_field_id: UUID = field(default_factory=uuid4)
    alpha_row_id: UUID = field(default_factory=uuid4)
    notes_row_id: UUID = field(default_factory=uuid4)

    other_project_id: UUID = field(default_factory=uuid4)
    other_tab_id: UUID = field(default_factory=uuid4)
    foreign_task_id: UUID = field(default_factory=uuid4)
    foreign_block_id: UUID = field(default_factory=uuid4)


async def seed(session: AsyncSession, world: World) -> None:
    session.add_all(
        [
            Workspace(id=world.workspace_id, name="Acme"),
            Workspace(id=world.other_workspace_id, name="Globex"),
        ]
    )
    await session.flush()

    memberships = WorkspaceMembershipManager.from_session(session)
    await memberships.add_member(
        workspace_id=world.workspace_id, user_id=world.member_id, role=WorkspaceRole.OWNER
    )
    await memberships.add_member(workspace_id=world.other_workspace_id, user_id=world.outsider_id)

    session.add_all(
        [
            Project(id=world.project_id, workspace_id=world.workspace_id, name="Launch"),
            Project(id=world.other_project_id, workspace_id=world.other_workspace_id, name="Other"),
        ]
    )
    await session.flush()
    session.add_all(
        [
            Tab(id=world.planning_tab_id, project_id=world.project_id, name="Planning"),
            Tab(id=world.notes_tab_id, project_id=world.project_id, name="Notes"),
            Tab(id=world.other_tab_id, project_id=world.other_project_id, name="Elsewhere"),
        ]
    )
    await session.flush()

    session.add_all(
        [
            Block(
                id=world.text_block_id,
                tab_id=world.planning_tab_id,
                type="text",
                content={"text": "Kickoff notes"},
            ),
            Block(
                id=world.table_block_id,
                tab_id=world.planning_tab_id,
                type="table",
                content={"tableId": str(world.table_id), "title": "Roadmap"},
            ),
            Block(id=world.timeline_block_id, tab_id=world.notes_tab_id, type="timeline"),
            Block(
                id=world.foreign_block_id,
                tab_id=world.other_tab_id,
                type="text",
                content={"text": "Not yours"},
            ),
            TaskItem(
                id=world.plan_task_id,
                workspace_id=world.workspace_id,
                project_id=world.project_id,
                tab_id=world.planning_tab_id,
                title="Write launch plan",
            ),
            TaskItem(
                id=world.budget_task_id,
                workspace_id=world.workspace_id,
                tab_id=world.notes_tab_id,
                title="Review budget",
            ),
            TaskItem(id=world.loose_task_id, workspace_id=world.workspace_id, title="Ship it"),
            TaskItem(
                id=world.foreign_task_id,
                workspace_id=world.other_workspace_id,
                project_id=world.other_project_id,
                title="Foreign task",
            ),
            DataTable(id=world.table_id, workspace_id=world.workspace_id, title="Roadmap"),
        ]
    )
    await session.flush()

    session.add_all(
        [
            TaskSubtask(id=world.subtask_id, task_id=world.plan_task_id, title="Draft outline"),
            TimelineEvent(
                id=world.event_id,
                workspace_id=world.workspace_id,
                timeline_block_id=world.timeline_block_id,
                title="Launch day",
            ),
            TableField(
                id=world.name_field_id, table_id=world.table_id, name="Name", is_primary=True
            ),
            TableField(id=world.notes_field_id, table_id=world.table_id, name="Notes"),
        ]
    )
    await session.flush()
    session.add_all(
        [
            TableRow(
                id=world.alpha_row_id,
                table_id=world.table_id,
                data={str(world.name_field_id): "Alpha", str(world.notes_field_id): "first"},
            ),
            TableRow(
                id=world.notes_row_id,
                table_id=world.table_id,
                data={str(world.notes_field_id): "just notes"},
            ),
        ]
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_engine_for_url(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def world(session_factory: async_sessionmaker[AsyncSession]) -> World:
    world = World()
    async with session_scope(session_factory) as session:
        await seed(session, world)
    return world


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession], world: World
) -> AsyncGenerator[AsyncSession, None]:
    """A session over the seeded database, for store-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry() -> EntityRegistry:
    return default_registry()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession], registry: EntityRegistry, world: World
) -> PropertiesService:
    return PropertiesService(session_factory, registry)


@pytest.fixture
def caller(world: World) -> Caller:
    """A member of the main workspace."""
    return Caller(user_id=world.member_id)


@pytest.fixture
def outsider(world: World) -> Caller:
    """A member of the other workspace only."""
    return Caller(user_id=world.outsider_id)
