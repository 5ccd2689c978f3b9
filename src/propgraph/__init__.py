"""Universal properties and entity linking for multi-tenant workspaces.

Typed attributes on heterogeneous records (blocks, tasks, subtasks, timeline
events, table rows), directed links between them, single-hop property
inheritance across links, and filter/group queries over the result.
"""

from propgraph.config import Settings, settings
from propgraph.logging import configure_logging

# Configure logging FIRST before any other modules use structlog
configure_logging(level=settings.log_level, json_output=settings.log_json)

__version__ = "0.1.0"
__all__ = ["Settings", "__version__"]
