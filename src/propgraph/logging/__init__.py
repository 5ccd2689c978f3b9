"""Structured logging for propgraph.

Usage:
    from propgraph.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    log = get_logger()
    log.info("entity_link_created", link_id=str(link.id))
"""

from propgraph.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
