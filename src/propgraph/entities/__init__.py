"""Entity adapters: workspace lookup, titles and candidate listing per record kind."""

from propgraph.entities.adapters import (
    BlockAdapter,
    SubtaskAdapter,
    TableRowAdapter,
    TaskAdapter,
    TimelineEventAdapter,
)
from propgraph.entities.base import EntityAdapter
from propgraph.entities.registry import EntityRegistry, default_registry
from propgraph.entities.titles import block_title, table_id_from_block_content, table_row_title

__all__ = [
    "BlockAdapter",
    "EntityAdapter",
    "EntityRegistry",
    "SubtaskAdapter",
    "TableRowAdapter",
    "TaskAdapter",
    "TimelineEventAdapter",
    "block_title",
    "default_registry",
    "table_id_from_block_content",
    "table_row_title",
]
