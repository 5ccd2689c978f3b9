"""Workspace-scoped property definitions and their option sets."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any, Self
from uuid import UUID

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from propgraph.db.connection import is_unique_violation
from propgraph.db.models import EntityProperty, PropertyDefinition, TableField, utcnow_naive
from propgraph.errors import AlreadyExistsError, NotFoundError, ValidationError
from propgraph.models.properties import (
    OPTION_TYPES,
    PropertyDefinitionCreate,
    PropertyDefinitionUpdate,
    PropertyOption,
    PropertyOptionUpdate,
    PropertyType,
)
from propgraph.properties.names import (
    find_conflicting_name,
    find_similar_name,
    similar_name_warning,
)
from propgraph.properties.store import EntityPropertyStore
from propgraph.properties.values import default_empty_label, option_reference

log = structlog.get_logger()


def _options_of(definition: PropertyDefinition) -> list[PropertyOption]:
    return [PropertyOption.model_validate(o) for o in definition.options or []]


def _check_options(property_type: PropertyType | str, options: list[PropertyOption]) -> None:
    if options and property_type not in OPTION_TYPES:
        raise ValidationError(f"Options are not supported for {property_type} properties")
    seen: set[str] = set()
    for option in options:
        if option.id in seen:
            raise ValidationError(f"Duplicate option id: {option.id}")
        seen.add(option.id)


def _conflict(name: str) -> AlreadyExistsError:
    return AlreadyExistsError(
        f'A similar property "{name}" already exists. Please use a different name.',
        details={"name": name},
    )


class PropertyDefinitionStore:
    """CRUD over `PropertyDefinition` rows, plus option-level mutators."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    def from_session(cls, session: AsyncSession) -> Self:
        return cls(session)

    async def _flush(self, name: str) -> None:
        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise _conflict(name) from e
            raise

    async def _names_in_workspace(
        self, workspace_id: UUID, *, exclude: UUID | None = None
    ) -> list[str]:
        stmt = select(PropertyDefinition.name).where(
            PropertyDefinition.workspace_id == workspace_id
        )
        if exclude is not None:
            stmt = stmt.where(PropertyDefinition.id != exclude)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # =========================================================================
    # Definitions
    # =========================================================================

    async def create(self, data: PropertyDefinitionCreate) -> tuple[PropertyDefinition, str | None]:
        """Create a definition. Returns it with an optional near-duplicate warning."""
        existing = await self._names_in_workspace(data.workspace_id)
        conflict = find_conflicting_name(data.name, existing)
        if conflict is not None:
            raise _conflict(conflict)

        _check_options(data.type, data.options)

        definition = PropertyDefinition(
            workspace_id=data.workspace_id,
            name=data.name,
            type=data.type.value,
            options=[o.model_dump() for o in data.options],
            empty_label=data.empty_label or default_empty_label(data.name, data.type),
        )
        self._session.add(definition)
        await self._flush(data.name)

        similar = find_similar_name(data.name, existing)
        warning = similar_name_warning(data.name, similar) if similar else None

        log.info(
            "property_definition_created",
            definition_id=str(definition.id),
            workspace_id=str(data.workspace_id),
            type=data.type.value,
            similar_to=similar,
        )
        return definition, warning

    async def get(self, definition_id: UUID) -> PropertyDefinition | None:
        return await self._session.get(PropertyDefinition, definition_id)

    async def require(
        self, definition_id: UUID, *, workspace_id: UUID | None = None
    ) -> PropertyDefinition:
        """Fetch a definition, optionally requiring it to live in ``workspace_id``."""
        definition = await self.get(definition_id)
        if definition is None or (
            workspace_id is not None and definition.workspace_id != workspace_id
        ):
            raise NotFoundError(
                "Property definition", definition_id, "Property definition not found"
            )
        return definition

    async def get_many(self, definition_ids: Collection[UUID]) -> dict[UUID, PropertyDefinition]:
        if not definition_ids:
            return {}
        result = await self._session.execute(
            select(PropertyDefinition).where(col(PropertyDefinition.id).in_(list(definition_ids)))
        )
        return {definition.id: definition for definition in result.scalars().all()}

    async def list_for_workspace(self, workspace_id: UUID) -> list[PropertyDefinition]:
        result = await self._session.execute(
            select(PropertyDefinition)
            .where(PropertyDefinition.workspace_id == workspace_id)
            .order_by(col(PropertyDefinition.created_at), col(PropertyDefinition.id))
        )
        return list(result.scalars().all())

    async def update(
        self, definition: PropertyDefinition, data: PropertyDefinitionUpdate
    ) -> PropertyDefinition:
        """Rename and/or replace the option set."""
        if data.name is not None and data.name != definition.name:
            existing = await self._names_in_workspace(definition.workspace_id, exclude=definition.id)
            conflict = find_conflicting_name(data.name, existing)
            if conflict is not None:
                raise _conflict(conflict)

            if definition.empty_label == default_empty_label(definition.name, definition.type):
                definition.empty_label = default_empty_label(data.name, definition.type)
            definition.name = data.name

        if data.options is not None:
            _check_options(definition.type, data.options)
            definition.options = [o.model_dump() for o in data.options]

        if "empty_label" in data.model_fields_set:
            definition.empty_label = data.empty_label or default_empty_label(
                definition.name, definition.type
            )

        definition.updated_at = utcnow_naive()
        self._session.add(definition)
        await self._flush(definition.name)
        return definition

    async def delete(self, definition: PropertyDefinition) -> int:
        """Delete a definition and every value stored for it.

        Refused while a table field is backed by the definition.
        """
        result = await self._session.execute(
            select(func.count())
            .select_from(TableField)
            .where(TableField.property_definition_id == definition.id)
        )
        field_count = int(result.scalar() or 0)
        if field_count:
            raise ValidationError(
                "Property is used by table fields. Remove it from those tables first.",
                details={"table_field_count": field_count},
            )

        purged = await EntityPropertyStore.from_session(self._session).purge_definition(
            definition.id
        )
        await self._session.delete(definition)
        await self._session.flush()

        log.info(
            "property_definition_deleted",
            definition_id=str(definition.id),
            purged_values=purged,
        )
        return purged

    # =========================================================================
    # Options
    # =========================================================================

    @staticmethod
    def _require_option_type(definition: PropertyDefinition) -> None:
        if definition.type not in OPTION_TYPES:
            raise ValidationError(f"Options are not supported for {definition.type} properties")

    def _save_options(self, definition: PropertyDefinition, options: list[PropertyOption]) -> None:
        # Reassign so the JSON column is marked dirty
        definition.options = [o.model_dump() for o in options]
        definition.updated_at = utcnow_naive()
        self._session.add(definition)

    async def add_option(
        self, definition: PropertyDefinition, option: PropertyOption
    ) -> PropertyDefinition:
        self._require_option_type(definition)
        options = _options_of(definition)
        if any(o.id == option.id for o in options):
            raise AlreadyExistsError("An option with this ID already exists")
        self._save_options(definition, [*options, option])
        await self._session.flush()
        return definition

    async def update_option(
        self, definition: PropertyDefinition, option_id: str, data: PropertyOptionUpdate
    ) -> PropertyDefinition:
        options = _options_of(definition)
        for index, option in enumerate(options):
            if option.id == option_id:
                options[index] = option.model_copy(update=data.model_dump(exclude_none=True))
                break
        else:
            raise NotFoundError("Option", option_id, "Option not found")
        self._save_options(definition, options)
        await self._session.flush()
        return definition

    async def remove_option(self, definition: PropertyDefinition, option_id: str) -> PropertyDefinition:
        """Drop an option. Stored values that reference it are left as they are."""
        options = _options_of(definition)
        remaining = [o for o in options if o.id != option_id]
        if len(remaining) != len(options):
            self._save_options(definition, remaining)
            await self._session.flush()
        return definition

    async def merge_options(
        self, definition: PropertyDefinition, source_option_id: str, target_option_id: str
    ) -> int:
        """Move every value from one option to another, then drop the source option.

        Returns the number of entity values rewritten.
        """
        self._require_option_type(definition)
        if source_option_id == target_option_id:
            raise ValidationError("Cannot merge an option into itself")
        options = _options_of(definition)
        if options and not any(o.id == target_option_id for o in options):
            raise NotFoundError("Option", target_option_id, "Target option not found")

        result = await self._session.execute(
            select(EntityProperty).where(EntityProperty.property_definition_id == definition.id)
        )
        updated = 0
        for row in result.scalars().all():
            new_value = _merged_value(row.value, source_option_id, target_option_id)
            if new_value is _UNCHANGED:
                continue
            row.value = new_value
            row.updated_at = utcnow_naive()
            self._session.add(row)
            updated += 1

        self._save_options(definition, [o for o in options if o.id != source_option_id])
        await self._session.flush()

        log.info(
            "property_options_merged",
            definition_id=str(definition.id),
            source=source_option_id,
            target=target_option_id,
            updated_count=updated,
        )
        return updated


_UNCHANGED: Any = object()


def _refers_to(value: Any, option_id: str) -> bool:
    if isinstance(value, dict):
        return option_reference(value) == option_id
    return value == option_id


def _merged_value(value: Any, source: str, target: str) -> Any:
    """``value`` with ``source`` replaced by ``target``, or ``_UNCHANGED``."""
    if isinstance(value, list):
        if not any(_refers_to(v, source) for v in value):
            return _UNCHANGED
        merged = [v for v in value if not _refers_to(v, source)]
        if not any(_refers_to(v, target) for v in merged):
            merged.append(target)
        return merged
    if _refers_to(value, source):
        return target
    return _UNCHANGED
