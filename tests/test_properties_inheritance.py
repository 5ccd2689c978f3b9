"""Tests for property inheritance along incoming links."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from propgraph.db.models import EntityProperty, PropertyDefinition
from propgraph.entities import EntityRegistry
from propgraph.links import EntityLinkGraph
from propgraph.models.entities import EntityKey, EntityType
from propgraph.models.properties import PropertyDefinitionCreate, PropertyType
from propgraph.properties import (
    EntityPropertyStore,
    InheritanceResolver,
    InheritedValue,
    PropertyDefinitionStore,
    merge_values,
)
from tests.conftest import World

STATUS = uuid4()
OWNER = uuid4()
TARGET = uuid4()


def _contribution(definition_id, value) -> InheritedValue:
    source = EntityKey(type=EntityType.BLOCK, id=uuid4())
    row = EntityProperty(
        entity_type=source.type.value,
        entity_id=source.id,
        property_definition_id=definition_id,
        value=value,
    )
    return InheritedValue(target_id=TARGET, source=source, row=row)


class TestMergeValues:
    """Tests for merging direct values with contributions."""

    def test_no_contributions(self) -> None:
        assert merge_values({STATUS: "done"}, []) == {STATUS: "done"}

    def test_single_contribution_is_kept_as_is(self) -> None:
        assert merge_values({}, [_contribution(STATUS, "blocked")]) == {STATUS: "blocked"}

    def test_direct_value_wins(self) -> None:
        merged = merge_values({STATUS: "done"}, [_contribution(STATUS, "blocked")])
        assert merged == {STATUS: "done"}

    def test_direct_none_still_wins(self) -> None:
        merged = merge_values({STATUS: None}, [_contribution(STATUS, "blocked")])
        assert merged == {STATUS: None}

    def test_contributions_accumulate_in_order(self) -> None:
        merged = merge_values(
            {},
            [
                _contribution(STATUS, "blocked"),
                _contribution(STATUS, "todo"),
                _contribution(STATUS, "done"),
            ],
        )
        assert merged == {STATUS: ["blocked", "todo", "done"]}

    def test_list_contribution_is_extended(self) -> None:
        merged = merge_values({}, [_contribution(OWNER, ["u1"]), _contribution(OWNER, "u2")])
        assert merged == {OWNER: ["u1", "u2"]}

    def test_properties_are_independent(self) -> None:
        merged = merge_values(
            {OWNER: "u1"}, [_contribution(STATUS, "blocked"), _contribution(OWNER, "u2")]
        )
        assert merged == {OWNER: "u1", STATUS: "blocked"}


async def _status(session: AsyncSession, world: World) -> PropertyDefinition:
    definition, _ = await PropertyDefinitionStore.from_session(session).create(
        PropertyDefinitionCreate(
            workspace_id=world.workspace_id, name="Status", type=PropertyType.STATUS
        )
    )
    return definition


class TestInheritanceResolver:
    """Tests for resolving values over real links."""

    @pytest.mark.asyncio
    async def test_inherits_from_linking_entity(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        status = await _status(session, world)
        await EntityPropertyStore.from_session(session).set(
            EntityType.BLOCK, world.text_block_id, status, "blocked"
        )
        await EntityLinkGraph.from_session(session, registry).create(
            EntityKey(type=EntityType.BLOCK, id=world.text_block_id),
            EntityKey(type=EntityType.TASK, id=world.plan_task_id),
            world.workspace_id,
        )

        resolver = InheritanceResolver.from_session(session, registry)
        values = await resolver.resolve(EntityType.TASK, [world.plan_task_id, world.loose_task_id])
        assert values == {world.plan_task_id: {status.id: "blocked"}}

        direct_only = await resolver.resolve(
            EntityType.TASK, [world.plan_task_id], include_inherited=False
        )
        assert direct_only == {}

    @pytest.mark.asyncio
    async def test_outgoing_links_do_not_inherit(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        status = await _status(session, world)
        await EntityPropertyStore.from_session(session).set(
            EntityType.BLOCK, world.text_block_id, status, "blocked"
        )
        await EntityLinkGraph.from_session(session, registry).create(
            EntityKey(type=EntityType.TASK, id=world.plan_task_id),
            EntityKey(type=EntityType.BLOCK, id=world.text_block_id),
            world.workspace_id,
        )

        resolver = InheritanceResolver.from_session(session, registry)
        assert await resolver.resolve(EntityType.TASK, [world.plan_task_id]) == {}

    @pytest.mark.asyncio
    async def test_inheritance_is_single_hop(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        # row -> block -> task: the task must not see the row's value
        status = await _status(session, world)
        await EntityPropertyStore.from_session(session).set(
            EntityType.TABLE_ROW, world.alpha_row_id, status, "done"
        )
        graph = EntityLinkGraph.from_session(session, registry)
        block = EntityKey(type=EntityType.BLOCK, id=world.text_block_id)
        await graph.create(
            EntityKey(type=EntityType.TABLE_ROW, id=world.alpha_row_id), block, world.workspace_id
        )
        await graph.create(
            block, EntityKey(type=EntityType.TASK, id=world.plan_task_id), world.workspace_id
        )

        resolver = InheritanceResolver.from_session(session, registry)
        assert await resolver.resolve(EntityType.TASK, [world.plan_task_id]) == {}
        assert await resolver.resolve(EntityType.BLOCK, [world.text_block_id]) == {
            world.text_block_id: {status.id: "done"}
        }

    @pytest.mark.asyncio
    async def test_multiple_sources_accumulate_in_link_order(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        status = await _status(session, world)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.BLOCK, world.text_block_id, status, "blocked")
        await store.set(EntityType.TABLE_ROW, world.alpha_row_id, status, "todo")

        graph = EntityLinkGraph.from_session(session, registry)
        target = EntityKey(type=EntityType.TASK, id=world.plan_task_id)
        second = await graph.create(
            EntityKey(type=EntityType.BLOCK, id=world.text_block_id), target, world.workspace_id
        )
        first = await graph.create(
            EntityKey(type=EntityType.TABLE_ROW, id=world.alpha_row_id), target, world.workspace_id
        )
        first.created_at = second.created_at - timedelta(minutes=1)
        session.add(first)
        await session.flush()

        resolver = InheritanceResolver.from_session(session, registry)
        values = await resolver.resolve(EntityType.TASK, [world.plan_task_id])
        assert values[world.plan_task_id][status.id] == ["todo", "blocked"]

        contributions = await resolver.collect_inherited(EntityType.TASK, [world.plan_task_id])
        assert [c.source.type for c in contributions] == [EntityType.TABLE_ROW, EntityType.BLOCK]

    @pytest.mark.asyncio
    async def test_direct_value_overrides_inherited(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        status = await _status(session, world)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.BLOCK, world.text_block_id, status, "blocked")
        await store.set(EntityType.TASK, world.plan_task_id, status, "done")
        await EntityLinkGraph.from_session(session, registry).create(
            EntityKey(type=EntityType.BLOCK, id=world.text_block_id),
            EntityKey(type=EntityType.TASK, id=world.plan_task_id),
            world.workspace_id,
        )

        resolver = InheritanceResolver.from_session(session, registry)
        values = await resolver.resolve(EntityType.TASK, [world.plan_task_id])
        assert values == {world.plan_task_id: {status.id: "done"}}

    @pytest.mark.asyncio
    async def test_property_filter_limits_contributions(
        self, session: AsyncSession, registry: EntityRegistry, world: World
    ) -> None:
        status = await _status(session, world)
        notes, _ = await PropertyDefinitionStore.from_session(session).create(
            PropertyDefinitionCreate(
                workspace_id=world.workspace_id, name="Notes", type=PropertyType.TEXT
            )
        )
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.BLOCK, world.text_block_id, status, "blocked")
        await store.set(EntityType.BLOCK, world.text_block_id, notes, "see doc")
        await EntityLinkGraph.from_session(session, registry).create(
            EntityKey(type=EntityType.BLOCK, id=world.text_block_id),
            EntityKey(type=EntityType.TASK, id=world.plan_task_id),
            world.workspace_id,
        )

        resolver = InheritanceResolver.from_session(session, registry)
        values = await resolver.resolve(EntityType.TASK, [world.plan_task_id], {notes.id})
        assert values == {world.plan_task_id: {notes.id: "see doc"}}
