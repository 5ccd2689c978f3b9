"""propgraph database module.

This module provides:
- SQLModel schemas for the record stores and the properties/linking core
- Async connection management with SQLAlchemy 2.0

Usage:
    from propgraph.db import PropertyDefinition, async_session_factory, session_scope

    async with session_scope(async_session_factory()) as session:
        session.add(PropertyDefinition(workspace_id=ws_id, name="Status", type="status"))
"""

from propgraph.db.connection import (
    async_session_factory,
    create_engine_for_url,
    get_engine,
    init_db,
    is_unique_violation,
    make_session_factory,
    session_scope,
)
from propgraph.db.models import (
    Block,
    DataTable,
    EntityInheritedDisplay,
    EntityLink,
    EntityProperty,
    Project,
    PropertyDefinition,
    Tab,
    TableField,
    TableRow,
    TaskItem,
    TaskSubtask,
    TimelineEvent,
    Workspace,
    WorkspaceMember,
    WorkspaceRole,
)

__all__ = [
    # Connection
    "async_session_factory",
    "create_engine_for_url",
    "get_engine",
    "init_db",
    "is_unique_violation",
    "make_session_factory",
    "session_scope",
    # Tenancy
    "Workspace",
    "WorkspaceMember",
    "WorkspaceRole",
    # Record stores
    "Block",
    "DataTable",
    "Project",
    "Tab",
    "TableField",
    "TableRow",
    "TaskItem",
    "TaskSubtask",
    "TimelineEvent",
    # Core
    "EntityInheritedDisplay",
    "EntityLink",
    "EntityProperty",
    "PropertyDefinition",
]
