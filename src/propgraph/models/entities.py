"""Entity identity and reference models."""

from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EntityType(StrEnum):
    """Record kinds that can carry properties and links."""

    BLOCK = "block"
    TASK = "task"
    SUBTASK = "subtask"
    TIMELINE_EVENT = "timeline_event"
    TABLE_ROW = "table_row"


class EntityKey(BaseModel):
    """(type, id) pair identifying one entity."""

    model_config = ConfigDict(frozen=True)

    type: EntityType
    id: UUID

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


class EntityReference(BaseModel):
    """Read-only display projection of an entity, computed on demand."""

    type: EntityType
    id: UUID
    title: str = Field(..., description="Short human-readable title")
    context: str = Field(default="", description="Where the entity lives (tab, table, parent)")

    @property
    def key(self) -> EntityKey:
        return EntityKey(type=self.type, id=self.id)
