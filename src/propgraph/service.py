"""Service boundary for the properties and linking engine.

Every public method:
- runs in one session (one unit of work, committed on success)
- checks the caller's workspace access before doing anything else
- returns an `ActionResult` and never raises

Usage:
    service = PropertiesService()
    result = await service.create_entity_link(caller, "block", block_id, "task", task_id)
    if not result.ok:
        print(result.code, result.error)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar
from uuid import UUID

import pydantic
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from propgraph.auth.access import Caller, MembershipAccessGuard, WorkspaceAccessGuard
from propgraph.config import settings
from propgraph.db.connection import async_session_factory, session_scope
from propgraph.db.models import EntityProperty, PropertyDefinition
from propgraph.entities.registry import EntityRegistry, default_registry
from propgraph.errors import (
    NotFoundError,
    PropGraphError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from propgraph.links.graph import EntityLinkGraph
from propgraph.models.entities import EntityKey, EntityReference, EntityType
from propgraph.models.links import EntityLinkRead, EntityLinks
from propgraph.models.properties import (
    EntityPropertiesResult,
    EntityPropertyRead,
    InheritedProperty,
    MergeOptionsResult,
    PropertyDefinitionCreate,
    PropertyDefinitionCreated,
    PropertyDefinitionRead,
    PropertyDefinitionUpdate,
    PropertyOption,
    PropertyOptionUpdate,
)
from propgraph.models.queries import GroupedEntitiesResult, QueryEntitiesParams
from propgraph.models.results import ActionResult
from propgraph.properties.definitions import PropertyDefinitionStore
from propgraph.properties.inheritance import InheritanceResolver, InheritedValue, merge_values
from propgraph.properties.store import EntityPropertyStore
from propgraph.query.engine import QueryEngine

log = structlog.get_logger()

T = TypeVar("T")


def _pydantic_message(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid input")
    return f"{location}: {message}" if location else message


def _require_identity(caller: Caller | None) -> None:
    if caller is None or caller.user_id is None:
        raise UnauthorizedError()


class PropertiesService:
    """Authorized, error-safe entry points for callers (UI actions, jobs, AI tools)."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        registry: EntityRegistry | None = None,
        guard: WorkspaceAccessGuard | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory()
        self._registry = registry or default_registry()
        self._guard = guard or MembershipAccessGuard(self._registry)

    async def _run(
        self,
        action: str,
        operation: Callable[[AsyncSession], Awaitable[T]],
        **context: Any,
    ) -> ActionResult[T]:
        try:
            async with session_scope(self._session_factory) as session:
                data = await operation(session)
        except PropGraphError as e:
            log.info("action_rejected", action=action, code=e.code, error=e.message, **context)
            return ActionResult.failure(e)
        except pydantic.ValidationError as e:
            log.info("action_invalid_input", action=action, errors=e.error_count(), **context)
            return ActionResult.failure(ValidationError(_pydantic_message(e)))
        except SQLAlchemyError as e:
            log.exception("action_store_failed", action=action, **context)
            return ActionResult.failure(StoreError(str(getattr(e, "orig", None) or e)))
        return ActionResult.success(data)

    def _key(self, entity_type: EntityType | str, entity_id: UUID) -> EntityKey:
        return EntityKey(type=self._registry.get(entity_type).entity_type, id=entity_id)

    async def _property_reads(
        self, session: AsyncSession, rows: Iterable[EntityProperty]
    ) -> list[EntityPropertyRead]:
        rows = list(rows)
        definitions = await PropertyDefinitionStore.from_session(session).get_many(
            {row.property_definition_id for row in rows}
        )
        return [_property_read(row, definitions.get(row.property_definition_id)) for row in rows]

    # =========================================================================
    # Property definitions
    # =========================================================================

    async def create_property_definition(
        self, caller: Caller, data: PropertyDefinitionCreate | Mapping[str, Any]
    ) -> ActionResult[PropertyDefinitionCreated]:
        async def operation(session: AsyncSession) -> PropertyDefinitionCreated:
            payload = PropertyDefinitionCreate.model_validate(data)
            await self._guard.require_workspace(session, caller, payload.workspace_id)
            definition, warning = await PropertyDefinitionStore.from_session(session).create(payload)
            return PropertyDefinitionCreated(
                definition=PropertyDefinitionRead.model_validate(definition), warning=warning
            )

        return await self._run("create_property_definition", operation)

    async def get_property_definition(
        self, caller: Caller, definition_id: UUID
    ) -> ActionResult[PropertyDefinitionRead]:
        async def operation(session: AsyncSession) -> PropertyDefinitionRead:
            await self._guard.require_definition(session, caller, definition_id)
            definition = await PropertyDefinitionStore.from_session(session).require(definition_id)
            return PropertyDefinitionRead.model_validate(definition)

        return await self._run(
            "get_property_definition", operation, definition_id=str(definition_id)
        )

    async def get_property_definitions(
        self, caller: Caller, workspace_id: UUID
    ) -> ActionResult[list[PropertyDefinitionRead]]:
        async def operation(session: AsyncSession) -> list[PropertyDefinitionRead]:
            await self._guard.require_workspace(session, caller, workspace_id)
            definitions = await PropertyDefinitionStore.from_session(session).list_for_workspace(
                workspace_id
            )
            return [PropertyDefinitionRead.model_validate(d) for d in definitions]

        return await self._run("get_property_definitions", operation, workspace_id=str(workspace_id))

    async def update_property_definition(
        self,
        caller: Caller,
        definition_id: UUID,
        updates: PropertyDefinitionUpdate | Mapping[str, Any],
    ) -> ActionResult[PropertyDefinitionRead]:
        async def operation(session: AsyncSession) -> PropertyDefinitionRead:
            await self._guard.require_definition(session, caller, definition_id)
            payload = PropertyDefinitionUpdate.model_validate(updates)
            store = PropertyDefinitionStore.from_session(session)
            definition = await store.update(await store.require(definition_id), payload)
            return PropertyDefinitionRead.model_validate(definition)

        return await self._run(
            "update_property_definition", operation, definition_id=str(definition_id)
        )

    async def delete_property_definition(
        self, caller: Caller, definition_id: UUID
    ) -> ActionResult[None]:
        async def operation(session: AsyncSession) -> None:
            await self._guard.require_definition(session, caller, definition_id)
            store = PropertyDefinitionStore.from_session(session)
            await store.delete(await store.require(definition_id))

        return await self._run(
            "delete_property_definition", operation, definition_id=str(definition_id)
        )

    async def merge_property_options(
        self,
        caller: Caller,
        definition_id: UUID,
        source_option_id: str,
        target_option_id: str,
    ) -> ActionResult[MergeOptionsResult]:
        async def operation(session: AsyncSession) -> MergeOptionsResult:
            await self._guard.require_definition(session, caller, definition_id)
            store = PropertyDefinitionStore.from_session(session)
            definition = await store.require(definition_id)
            updated = await store.merge_options(definition, source_option_id, target_option_id)
            return MergeOptionsResult(
                updated_count=updated, definition=PropertyDefinitionRead.model_validate(definition)
            )

        return await self._run(
            "merge_property_options", operation, definition_id=str(definition_id)
        )

    async def add_property_option(
        self,
        caller: Caller,
        definition_id: UUID,
        option: PropertyOption | Mapping[str, Any],
    ) -> ActionResult[PropertyDefinitionRead]:
        async def operation(session: AsyncSession) -> PropertyDefinitionRead:
            await self._guard.require_definition(session, caller, definition_id)
            payload = PropertyOption.model_validate(option)
            store = PropertyDefinitionStore.from_session(session)
            definition = await store.add_option(await store.require(definition_id), payload)
            return PropertyDefinitionRead.model_validate(definition)

        return await self._run("add_property_option", operation, definition_id=str(definition_id))

    async def update_property_option(
        self,
        caller: Caller,
        definition_id: UUID,
        option_id: str,
        updates: PropertyOptionUpdate | Mapping[str, Any],
    ) -> ActionResult[PropertyDefinitionRead]:
        async def operation(session: AsyncSession) -> PropertyDefinitionRead:
            await self._guard.require_definition(session, caller, definition_id)
            payload = PropertyOptionUpdate.model_validate(updates)
            store = PropertyDefinitionStore.from_session(session)
            definition = await store.update_option(
                await store.require(definition_id), option_id, payload
            )
            return PropertyDefinitionRead.model_validate(definition)

        return await self._run(
            "update_property_option", operation, definition_id=str(definition_id)
        )

    async def remove_property_option(
        self, caller: Caller, definition_id: UUID, option_id: str
    ) -> ActionResult[PropertyDefinitionRead]:
        async def operation(session: AsyncSession) -> PropertyDefinitionRead:
            await self._guard.require_definition(session, caller, definition_id)
            store = PropertyDefinitionStore.from_session(session)
            definition = await store.remove_option(await store.require(definition_id), option_id)
            return PropertyDefinitionRead.model_validate(definition)

        return await self._run(
            "remove_property_option", operation, definition_id=str(definition_id)
        )

    # =========================================================================
    # Entity properties
    # =========================================================================

    async def set_entity_property(
        self,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
        property_definition_id: UUID,
        value: Any,
    ) -> ActionResult[EntityPropertyRead]:
        async def operation(session: AsyncSession) -> EntityPropertyRead:
            access = await self._guard.require_entity(session, caller, entity_type, entity_id)
            key = self._key(entity_type, entity_id)
            definition = await PropertyDefinitionStore.from_session(session).require(
                property_definition_id, workspace_id=access.workspace_id
            )
            row = await EntityPropertyStore.from_session(session).set(
                key.type, key.id, definition, value
            )
            return _property_read(row, definition)

        return await self._run(
            "set_entity_property",
            operation,
            entity=f"{entity_type}:{entity_id}",
            property_definition_id=str(property_definition_id),
        )

    async def remove_entity_property(
        self,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
        property_definition_id: UUID,
    ) -> ActionResult[None]:
        async def operation(session: AsyncSession) -> None:
            await self._guard.require_entity(session, caller, entity_type, entity_id)
            key = self._key(entity_type, entity_id)
            await EntityPropertyStore.from_session(session).remove(
                key.type, key.id, property_definition_id
            )

        return await self._run(
            "remove_entity_property", operation, entity=f"{entity_type}:{entity_id}"
        )

    async def get_entity_properties(
        self, caller: Caller, entity_type: EntityType | str, entity_id: UUID
    ) -> ActionResult[list[EntityPropertyRead]]:
        async def operation(session: AsyncSession) -> list[EntityPropertyRead]:
            await self._guard.require_entity(session, caller, entity_type, entity_id)
            key = self._key(entity_type, entity_id)
            rows = await EntityPropertyStore.from_session(session).get(key.type, key.id)
            return await self._property_reads(session, rows)

        return await self._run(
            "get_entity_properties", operation, entity=f"{entity_type}:{entity_id}"
        )

    async def get_entities_properties(
        self,
        caller: Caller,
        entity_type: EntityType | str,
        entity_ids: Sequence[UUID],
    ) -> ActionResult[dict[UUID, list[EntityPropertyRead]]]:
        """Direct properties of a batch of entities of one type and one workspace."""

        async def operation(session: AsyncSession) -> dict[UUID, list[EntityPropertyRead]]:
            _require_identity(caller)
            ids = list(dict.fromkeys(entity_ids))
            workspaces: set[UUID] = set()
            for entity_id in ids:
                access = await self._guard.require_entity(session, caller, entity_type, entity_id)
                workspaces.add(access.workspace_id)
            if len(workspaces) > 1:
                raise ValidationError("All entities must belong to the same workspace")

            key_type = self._registry.get(entity_type).entity_type
            rows = await EntityPropertyStore.from_session(session).get_many(key_type, ids)
            reads = await self._property_reads(session, rows)
            grouped: dict[UUID, list[EntityPropertyRead]] = {entity_id: [] for entity_id in ids}
            for read in reads:
                grouped[read.entity_id].append(read)
            return grouped

        return await self._run(
            "get_entities_properties", operation, entity_type=str(entity_type), count=len(entity_ids)
        )

    async def get_entity_properties_with_inheritance(
        self,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
        *,
        include_inherited: bool = True,
    ) -> ActionResult[EntityPropertiesResult]:
        async def operation(session: AsyncSession) -> EntityPropertiesResult:
            await self._guard.require_entity(session, caller, entity_type, entity_id)
            key = self._key(entity_type, entity_id)
            store = EntityPropertyStore.from_session(session)

            direct_rows = await store.get(key.type, key.id)
            direct_values = {row.property_definition_id: row.value for row in direct_rows}

            contributions: list[InheritedValue] = []
            if include_inherited:
                resolver = InheritanceResolver.from_session(session, self._registry)
                contributions = [
                    c
                    for c in await resolver.collect_inherited(key.type, [key.id])
                    if c.definition_id not in direct_values
                ]

            definitions = await PropertyDefinitionStore.from_session(session).get_many(
                set(direct_values) | {c.definition_id for c in contributions}
            )
            visibility = await store.visibility_map(key) if contributions else {}

            return EntityPropertiesResult(
                direct=[
                    _property_read(row, definitions.get(row.property_definition_id))
                    for row in direct_rows
                ],
                inherited=[
                    InheritedProperty(
                        property=_property_read(c.row, definitions.get(c.definition_id)),
                        source=c.source,
                        is_visible=visibility.get((c.source, c.definition_id), True),
                    )
                    for c in contributions
                ],
                values=merge_values(direct_values, contributions),
            )

        return await self._run(
            "get_entity_properties_with_inheritance",
            operation,
            entity=f"{entity_type}:{entity_id}",
        )

    async def set_inherited_property_visibility(
        self,
        caller: Caller,
        entity_type: EntityType | str,
        entity_id: UUID,
        source_entity_type: EntityType | str,
        source_entity_id: UUID,
        property_definition_id: UUID,
        is_visible: bool,
    ) -> ActionResult[None]:
        """Show or hide one inherited property on one target entity."""

        async def operation(session: AsyncSession) -> None:
            access = await self._guard.require_entity(session, caller, entity_type, entity_id)
            target = self._key(entity_type, entity_id)
            source = self._key(source_entity_type, source_entity_id)
            source_workspace = await self._registry.resolve_workspace_id(session, source)
            if source_workspace != access.workspace_id:
                raise NotFoundError("Entity", source, "Source entity not found")
            await PropertyDefinitionStore.from_session(session).require(
                property_definition_id, workspace_id=access.workspace_id
            )
            await EntityPropertyStore.from_session(session).set_inherited_visibility(
                target, source, property_definition_id, is_visible=is_visible
            )

        return await self._run(
            "set_inherited_property_visibility", operation, entity=f"{entity_type}:{entity_id}"
        )

    # =========================================================================
    # Entity links
    # =========================================================================

    async def create_entity_link(
        self,
        caller: Caller,
        source_entity_type: EntityType | str,
        source_entity_id: UUID,
        target_entity_type: EntityType | str,
        target_entity_id: UUID,
    ) -> ActionResult[EntityLinkRead]:
        async def operation(session: AsyncSession) -> EntityLinkRead:
            access = await self._guard.require_entity(
                session, caller, source_entity_type, source_entity_id
            )
            link = await EntityLinkGraph.from_session(session, self._registry).create(
                self._key(source_entity_type, source_entity_id),
                self._key(target_entity_type, target_entity_id),
                access.workspace_id,
            )
            return EntityLinkRead.model_validate(link)

        return await self._run(
            "create_entity_link",
            operation,
            source=f"{source_entity_type}:{source_entity_id}",
            target=f"{target_entity_type}:{target_entity_id}",
        )

    async def remove_entity_link(
        self,
        caller: Caller,
        source_entity_type: EntityType | str,
        source_entity_id: UUID,
        target_entity_type: EntityType | str,
        target_entity_id: UUID,
    ) -> ActionResult[None]:
        async def operation(session: AsyncSession) -> None:
            await self._guard.require_entity(session, caller, source_entity_type, source_entity_id)
            await EntityLinkGraph.from_session(session, self._registry).remove(
                self._key(source_entity_type, source_entity_id),
                self._key(target_entity_type, target_entity_id),
            )

        return await self._run(
            "remove_entity_link",
            operation,
            source=f"{source_entity_type}:{source_entity_id}",
            target=f"{target_entity_type}:{target_entity_id}",
        )

    async def get_entity_links(
        self, caller: Caller, entity_type: EntityType | str, entity_id: UUID
    ) -> ActionResult[EntityLinks]:
        async def operation(session: AsyncSession) -> EntityLinks:
            await self._guard.require_entity(session, caller, entity_type, entity_id)
            graph = EntityLinkGraph.from_session(session, self._registry)
            return await graph.links_for(self._key(entity_type, entity_id))

        return await self._run("get_entity_links", operation, entity=f"{entity_type}:{entity_id}")

    async def get_linked_entities(
        self, caller: Caller, entity_type: EntityType | str, entity_id: UUID
    ) -> ActionResult[list[EntityReference]]:
        """Entities this entity links to."""

        async def operation(session: AsyncSession) -> list[EntityReference]:
            access = await self._guard.require_entity(session, caller, entity_type, entity_id)
            graph = EntityLinkGraph.from_session(session, self._registry)
            return await graph.linked_references(
                self._key(entity_type, entity_id), access.workspace_id
            )

        return await self._run(
            "get_linked_entities", operation, entity=f"{entity_type}:{entity_id}"
        )

    async def get_linking_entities(
        self, caller: Caller, entity_type: EntityType | str, entity_id: UUID
    ) -> ActionResult[list[EntityReference]]:
        """Entities that link to this entity."""

        async def operation(session: AsyncSession) -> list[EntityReference]:
            access = await self._guard.require_entity(session, caller, entity_type, entity_id)
            graph = EntityLinkGraph.from_session(session, self._registry)
            return await graph.linking_references(
                self._key(entity_type, entity_id), access.workspace_id
            )

        return await self._run(
            "get_linking_entities", operation, entity=f"{entity_type}:{entity_id}"
        )

    async def search_linkable_entities(
        self,
        caller: Caller,
        workspace_id: UUID,
        query: str,
        entity_types: Sequence[EntityType | str] | None = None,
        limit: int | None = None,
    ) -> ActionResult[list[EntityReference]]:
        async def operation(session: AsyncSession) -> list[EntityReference]:
            await self._guard.require_workspace(session, caller, workspace_id)
            types = [self._registry.get(t).entity_type for t in entity_types] if entity_types else None
            budget = limit if limit is not None else settings.search_default_limit
            budget = max(1, min(budget, settings.search_max_limit))
            graph = EntityLinkGraph.from_session(session, self._registry)
            return await graph.search_linkable(workspace_id, query, types, budget)

        return await self._run(
            "search_linkable_entities", operation, workspace_id=str(workspace_id)
        )

    # =========================================================================
    # Record lifecycle
    # =========================================================================

    async def purge_entity(
        self, caller: Caller, entity_type: EntityType | str, entity_id: UUID
    ) -> ActionResult[None]:
        """Drop the links, property values and display preferences of an entity.

        Record stores call this before deleting the record itself.
        """

        async def operation(session: AsyncSession) -> None:
            await self._guard.require_entity(session, caller, entity_type, entity_id)
            key = self._key(entity_type, entity_id)
            links = await EntityLinkGraph.from_session(
                session, self._registry
            ).remove_links_for_entity(key)
            values = await EntityPropertyStore.from_session(session).remove_for_entity(
                key.type, key.id
            )
            log.info("entity_purged", entity=str(key), links=links, values=values)

        return await self._run("purge_entity", operation, entity=f"{entity_type}:{entity_id}")

    # =========================================================================
    # Queries
    # =========================================================================

    async def query_entities(
        self, caller: Caller, params: QueryEntitiesParams | Mapping[str, Any]
    ) -> ActionResult[list[EntityReference]]:
        async def operation(session: AsyncSession) -> list[EntityReference]:
            payload = QueryEntitiesParams.model_validate(params)
            await self._guard.require_workspace(session, caller, payload.workspace_id)
            return await QueryEngine.from_session(session, self._registry).query_entities(payload)

        return await self._run("query_entities", operation)

    async def query_entities_grouped_by(
        self,
        caller: Caller,
        params: QueryEntitiesParams | Mapping[str, Any],
        group_by_property_id: UUID | None,
    ) -> ActionResult[list[GroupedEntitiesResult]]:
        async def operation(session: AsyncSession) -> list[GroupedEntitiesResult]:
            payload = QueryEntitiesParams.model_validate(params)
            await self._guard.require_workspace(session, caller, payload.workspace_id)
            if group_by_property_id is None:
                raise ValidationError("A grouping property is required")
            engine = QueryEngine.from_session(session, self._registry)
            return await engine.query_entities_grouped_by(payload, group_by_property_id)

        return await self._run(
            "query_entities_grouped_by",
            operation,
            group_by_property_id=str(group_by_property_id),
        )


def _property_read(
    row: EntityProperty, definition: PropertyDefinition | None
) -> EntityPropertyRead:
    read = EntityPropertyRead.model_validate(row)
    if definition is None:
        return read
    return read.model_copy(update={"definition": PropertyDefinitionRead.model_validate(definition)})
