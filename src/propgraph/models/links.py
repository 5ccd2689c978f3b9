"""Entity link models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from propgraph.models.entities import EntityKey, EntityType


class EntityLinkRead(BaseModel):
    """A directed source -> target edge."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_entity_type: EntityType
    source_entity_id: UUID
    target_entity_type: EntityType
    target_entity_id: UUID
    workspace_id: UUID
    created_at: datetime

    @property
    def source(self) -> EntityKey:
        return EntityKey(type=self.source_entity_type, id=self.source_entity_id)

    @property
    def target(self) -> EntityKey:
        return EntityKey(type=self.target_entity_type, id=self.target_entity_id)


class EntityLinks(BaseModel):
    """Raw edges touching one entity."""

    outgoing: list[EntityLinkRead] = Field(default_factory=list)
    incoming: list[EntityLinkRead] = Field(default_factory=list)
