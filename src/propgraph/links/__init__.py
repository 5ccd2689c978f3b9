"""Entity link graph."""

from propgraph.links.graph import EntityLinkGraph

__all__ = ["EntityLinkGraph"]
