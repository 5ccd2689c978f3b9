"""SQLModel schemas for propgraph storage.

This module defines the tables for:
- Workspace tenancy (workspaces, memberships)
- The record stores the engine reads from (projects, tabs, blocks, tasks,
  subtasks, timeline events, tables, table fields, table rows)
- The properties and linking core (property definitions, entity properties,
  entity links, inherited property display preferences)

Architecture:
- Record tables are owned by other parts of the product; the engine only reads
  them to resolve an entity's workspace, title and query scope.
- Core tables are keyed by (entity_type, entity_id) so any record kind can carry
  properties or take part in a link without a per-kind join table.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Column, Enum, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow_naive() -> datetime:
    """Get current UTC time as naive datetime (for TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(UTC).replace(tzinfo=None)


# =============================================================================
# Base Model
# =============================================================================


class TimestampMixin(SQLModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was last updated",
        sa_column_kwargs={"onupdate": utcnow_naive},
    )


# =============================================================================
# Workspace - Tenant boundary
# =============================================================================


class Workspace(TimestampMixin, table=True):
    """A workspace/tenant. Every entity belongs to exactly one."""

    __tablename__ = "workspaces"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255, description="Workspace display name")

    def __repr__(self) -> str:
        return f"<Workspace {self.name!r}>"


class WorkspaceRole(StrEnum):
    """Role of a user within a workspace."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class WorkspaceMember(TimestampMixin, table=True):
    """Membership record linking a user to a workspace."""

    __tablename__ = "workspace_members"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    user_id: UUID = Field(index=True)
    role: WorkspaceRole = Field(
        default=WorkspaceRole.MEMBER,
        sa_column=Column(
            Enum(
                WorkspaceRole,
                name="workspacerole",
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            server_default=text("'member'"),
        ),
        description="Membership role",
    )

    __table_args__ = (
        Index(
            "ix_workspace_members_workspace_user_unique",
            "workspace_id",
            "user_id",
            unique=True,
        ),
    )


# =============================================================================
# Record stores - projects, tabs and the five entity kinds
# =============================================================================


class Project(TimestampMixin, table=True):
    """A project inside a workspace."""

    __tablename__ = "projects"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    name: str = Field(max_length=255)


class Tab(TimestampMixin, table=True):
    """A tab (page) inside a project."""

    __tablename__ = "tabs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    name: str = Field(max_length=255)


class Block(TimestampMixin, table=True):
    """A content block on a tab. ``content`` shape depends on ``type``."""

    __tablename__ = "blocks"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tab_id: UUID = Field(foreign_key="tabs.id", index=True)
    type: str = Field(max_length=64, index=True, description="text, table, image, ...")
    content: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONType))


class TaskItem(TimestampMixin, table=True):
    """A task. Project and tab placement are both optional."""

    __tablename__ = "task_items"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    project_id: UUID | None = Field(default=None, foreign_key="projects.id", index=True)
    tab_id: UUID | None = Field(default=None, foreign_key="tabs.id", index=True)
    title: str = Field(max_length=500)


class TaskSubtask(TimestampMixin, table=True):
    """A checklist item under a task."""

    __tablename__ = "task_subtasks"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    task_id: UUID = Field(foreign_key="task_items.id", index=True)
    title: str = Field(max_length=500)


class TimelineEvent(TimestampMixin, table=True):
    """An event on a timeline block."""

    __tablename__ = "timeline_events"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    timeline_block_id: UUID | None = Field(default=None, foreign_key="blocks.id", index=True)
    title: str = Field(max_length=500)


class DataTable(TimestampMixin, table=True):
    """A user-defined table."""

    __tablename__ = "tables"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    project_id: UUID | None = Field(default=None, foreign_key="projects.id", index=True)
    title: str = Field(default="", max_length=255)


class TableField(TimestampMixin, table=True):
    """A column of a table, optionally backed by a property definition."""

    __tablename__ = "table_fields"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    table_id: UUID = Field(foreign_key="tables.id", index=True)
    name: str = Field(max_length=255)
    is_primary: bool = Field(default=False)
    property_definition_id: UUID | None = Field(
        default=None, foreign_key="property_definitions.id", index=True
    )


class TableRow(TimestampMixin, table=True):
    """A row of a table. ``data`` is keyed by field id."""

    __tablename__ = "table_rows"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    table_id: UUID = Field(foreign_key="tables.id", index=True)
    data: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONType, nullable=False)
    )


# =============================================================================
# PropertyDefinition - Workspace-scoped property schema
# =============================================================================


class PropertyDefinition(TimestampMixin, table=True):
    """Schema for one named, typed attribute (e.g. "Status", "Assignee")."""

    __tablename__ = "property_definitions"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    name: str = Field(max_length=255, description="Display name, trimmed")
    type: str = Field(sa_type=String(32), description="PropertyType value")
    options: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSONType, nullable=False),
        description="Ordered [{id, label, color}] for option types",
    )
    empty_label: str | None = Field(
        default=None, max_length=255, description="Label of the no-value group"
    )

    __table_args__ = (
        Index(
            "ix_property_definitions_workspace_name_unique",
            "workspace_id",
            "name",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<PropertyDefinition {self.name!r} ({self.type})>"


# =============================================================================
# EntityProperty - One value per (entity, definition)
# =============================================================================


class EntityProperty(TimestampMixin, table=True):
    """A stored value of one property definition on one entity."""

    __tablename__ = "entity_properties"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    entity_type: str = Field(sa_type=String(32))
    entity_id: UUID
    property_definition_id: UUID = Field(foreign_key="property_definitions.id", index=True)
    value: Any = Field(default=None, sa_column=Column(JSONType, nullable=True))

    __table_args__ = (
        Index(
            "ix_entity_properties_entity_property_unique",
            "entity_type",
            "entity_id",
            "property_definition_id",
            unique=True,
        ),
        Index("ix_entity_properties_entity", "entity_type", "entity_id"),
    )


# =============================================================================
# EntityLink - Directed "mentions" edge
# =============================================================================


class EntityLink(SQLModel, table=True):
    """Directed edge from a source entity to a target entity.

    Links are never updated in place; changes are delete + recreate.
    """

    __tablename__ = "entity_links"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    source_entity_type: str = Field(sa_type=String(32))
    source_entity_id: UUID
    target_entity_type: str = Field(sa_type=String(32))
    target_entity_id: UUID
    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    created_at: datetime = Field(default_factory=utcnow_naive)

    __table_args__ = (
        Index(
            "ix_entity_links_unique",
            "source_entity_type",
            "source_entity_id",
            "target_entity_type",
            "target_entity_id",
            unique=True,
        ),
        Index("ix_entity_links_source", "source_entity_type", "source_entity_id"),
        Index("ix_entity_links_target", "target_entity_type", "target_entity_id"),
        CheckConstraint(
            "NOT (source_entity_type = target_entity_type "
            "AND source_entity_id = target_entity_id)",
            name="ck_entity_links_no_self_link",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<EntityLink {self.source_entity_type}:{self.source_entity_id} -> "
            f"{self.target_entity_type}:{self.target_entity_id}>"
        )


# =============================================================================
# EntityInheritedDisplay - Visibility of inherited properties
# =============================================================================


class EntityInheritedDisplay(SQLModel, table=True):
    """Per-target preference to show or hide one inherited property."""

    __tablename__ = "entity_inherited_display"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    entity_type: str = Field(sa_type=String(32))
    entity_id: UUID
    source_entity_type: str = Field(sa_type=String(32))
    source_entity_id: UUID
    property_definition_id: UUID = Field(foreign_key="property_definitions.id", index=True)
    is_visible: bool = Field(default=True)

    __table_args__ = (
        Index(
            "ix_entity_inherited_display_unique",
            "entity_type",
            "entity_id",
            "source_entity_type",
            "source_entity_id",
            "property_definition_id",
            unique=True,
        ),
    )
