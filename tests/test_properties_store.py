"""Tests for EntityPropertyStore."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from propgraph.db.models import EntityProperty, PropertyDefinition
from propgraph.errors import ValidationError
from propgraph.models.entities import EntityKey, EntityType
from propgraph.models.properties import PropertyDefinitionCreate, PropertyOption, PropertyType
from propgraph.properties import EntityPropertyStore, PropertyDefinitionStore
from tests.conftest import World


async def _definition(
    session: AsyncSession, world: World, name: str, property_type: PropertyType, **extra
) -> PropertyDefinition:
    definition, _ = await PropertyDefinitionStore.from_session(session).create(
        PropertyDefinitionCreate(
            workspace_id=world.workspace_id, name=name, type=property_type, **extra
        )
    )
    return definition


class TestSet:
    """Tests for writing values."""

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        store = EntityPropertyStore.from_session(session)

        first = await store.set(EntityType.TASK, world.plan_task_id, notes, "draft")
        second = await store.set(EntityType.TASK, world.plan_task_id, notes, "final")

        assert first.id == second.id
        rows = await store.get(EntityType.TASK, world.plan_task_id)
        assert [row.value for row in rows] == ["final"]

    @pytest.mark.asyncio
    async def test_value_is_validated(self, session: AsyncSession, world: World) -> None:
        estimate = await _definition(session, world, "Estimate", PropertyType.NUMBER)
        store = EntityPropertyStore.from_session(session)

        with pytest.raises(ValidationError, match='"Estimate" expects a number'):
            await store.set(EntityType.TASK, world.plan_task_id, estimate, "three")
        assert await store.get(EntityType.TASK, world.plan_task_id) == []

    @pytest.mark.asyncio
    async def test_option_label_stored_as_id(self, session: AsyncSession, world: World) -> None:
        priority = await _definition(
            session,
            world,
            "Priority",
            PropertyType.PRIORITY,
            options=[PropertyOption(id="p1", label="High")],
        )
        store = EntityPropertyStore.from_session(session)

        row = await store.set(EntityType.BLOCK, world.text_block_id, priority, "high")
        assert row.value == "p1"

    @pytest.mark.asyncio
    async def test_explicit_none_is_stored(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        store = EntityPropertyStore.from_session(session)

        await store.set(EntityType.TASK, world.plan_task_id, notes, None)
        rows = await store.get(EntityType.TASK, world.plan_task_id)
        assert len(rows) == 1
        assert rows[0].value is None

    @pytest.mark.asyncio
    async def test_concurrent_first_write_is_overwritten(
        self, session: AsyncSession, world: World, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        # Another writer inserts the row after this store's initial read
        session.add(
            EntityProperty(
                entity_type=EntityType.TASK.value,
                entity_id=world.plan_task_id,
                property_definition_id=notes.id,
                value="other writer",
            )
        )
        await session.flush()

        store = EntityPropertyStore.from_session(session)
        read_row = store._get_row
        reads = []

        async def stale_first_read(*args):
            reads.append(args)
            return None if len(reads) == 1 else await read_row(*args)

        monkeypatch.setattr(store, "_get_row", stale_first_read)

        row = await store.set(EntityType.TASK, world.plan_task_id, notes, "this writer")

        assert row.value == "this writer"
        assert len(reads) == 2
        rows = await store.get(EntityType.TASK, world.plan_task_id)
        assert [r.value for r in rows] == ["this writer"]


class TestRemove:
    """Tests for deleting values."""

    @pytest.mark.asyncio
    async def test_remove(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.TASK, world.plan_task_id, notes, "draft")

        assert await store.remove(EntityType.TASK, world.plan_task_id, notes.id) is True
        assert await store.remove(EntityType.TASK, world.plan_task_id, notes.id) is False
        assert await store.get(EntityType.TASK, world.plan_task_id) == []

    @pytest.mark.asyncio
    async def test_remove_for_entity(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        done = await _definition(session, world, "Done", PropertyType.CHECKBOX)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.TASK, world.plan_task_id, notes, "draft")
        await store.set(EntityType.TASK, world.plan_task_id, done, True)
        await store.set(EntityType.TASK, world.budget_task_id, done, False)

        assert await store.remove_for_entity(EntityType.TASK, world.plan_task_id) == 2
        assert await store.get(EntityType.TASK, world.plan_task_id) == []
        assert len(await store.get(EntityType.TASK, world.budget_task_id)) == 1


class TestReads:
    """Tests for batch reads."""

    @pytest.mark.asyncio
    async def test_value_map(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        estimate = await _definition(session, world, "Estimate", PropertyType.NUMBER)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.TASK, world.plan_task_id, notes, "draft")
        await store.set(EntityType.TASK, world.plan_task_id, estimate, 3)
        await store.set(EntityType.TASK, world.budget_task_id, estimate, 5)
        # Same id space, different type: must not leak into task reads
        await store.set(EntityType.BLOCK, world.text_block_id, estimate, 8)

        values = await store.value_map(
            EntityType.TASK, [world.plan_task_id, world.budget_task_id, world.loose_task_id]
        )
        assert values == {
            world.plan_task_id: {notes.id: "draft", estimate.id: 3},
            world.budget_task_id: {estimate.id: 5},
        }

    @pytest.mark.asyncio
    async def test_property_filter(self, session: AsyncSession, world: World) -> None:
        notes = await _definition(session, world, "Notes", PropertyType.TEXT)
        estimate = await _definition(session, world, "Estimate", PropertyType.NUMBER)
        store = EntityPropertyStore.from_session(session)
        await store.set(EntityType.TASK, world.plan_task_id, notes, "draft")
        await store.set(EntityType.TASK, world.plan_task_id, estimate, 3)

        rows = await store.get_many(EntityType.TASK, [world.plan_task_id], [estimate.id])
        assert [row.value for row in rows] == [3]
        assert await store.get_many(EntityType.TASK, [world.plan_task_id], []) == []
        assert await store.get_many(EntityType.TASK, []) == []


class TestInheritedVisibility:
    """Tests for display preferences of inherited values."""

    @pytest.mark.asyncio
    async def test_upsert_and_map(self, session: AsyncSession, world: World) -> None:
        status = await _definition(session, world, "Status", PropertyType.STATUS)
        store = EntityPropertyStore.from_session(session)
        target = EntityKey(type=EntityType.TASK, id=world.plan_task_id)
        source = EntityKey(type=EntityType.BLOCK, id=world.text_block_id)

        first = await store.set_inherited_visibility(target, source, status.id, is_visible=False)
        second = await store.set_inherited_visibility(target, source, status.id, is_visible=True)
        await store.set_inherited_visibility(target, source, status.id, is_visible=False)

        assert first.id == second.id
        assert await store.visibility_map(target) == {(source, status.id): False}

    @pytest.mark.asyncio
    async def test_purge_definition_drops_preferences(
        self, session: AsyncSession, world: World
    ) -> None:
        status = await _definition(session, world, "Status", PropertyType.STATUS)
        store = EntityPropertyStore.from_session(session)
        target = EntityKey(type=EntityType.TASK, id=world.plan_task_id)
        source = EntityKey(type=EntityType.BLOCK, id=world.text_block_id)
        await store.set(source.type, source.id, status, "blocked")
        await store.set_inherited_visibility(target, source, status.id, is_visible=False)

        assert await store.purge_definition(status.id) == 1
        assert await store.visibility_map(target) == {}

    @pytest.mark.asyncio
    async def test_remove_for_entity_drops_preferences_on_both_sides(
        self, session: AsyncSession, world: World
    ) -> None:
        status = await _definition(session, world, "Status", PropertyType.STATUS)
        store = EntityPropertyStore.from_session(session)
        task = EntityKey(type=EntityType.TASK, id=world.plan_task_id)
        block = EntityKey(type=EntityType.BLOCK, id=world.text_block_id)
        other = EntityKey(type=EntityType.TASK, id=world.budget_task_id)
        await store.set_inherited_visibility(task, block, status.id, is_visible=False)
        await store.set_inherited_visibility(other, block, status.id, is_visible=False)
        await store.set_inherited_visibility(other, task, status.id, is_visible=False)

        await store.remove_for_entity(EntityType.BLOCK, world.text_block_id)

        assert await store.visibility_map(task) == {}
        assert await store.visibility_map(other) == {(task, status.id): False}
