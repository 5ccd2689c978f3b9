"""Caller identity and workspace access checks."""

from propgraph.auth.access import Caller, MembershipAccessGuard, WorkspaceAccess, WorkspaceAccessGuard
from propgraph.auth.memberships import WorkspaceMembershipManager

__all__ = [
    "Caller",
    "MembershipAccessGuard",
    "WorkspaceAccess",
    "WorkspaceAccessGuard",
    "WorkspaceMembershipManager",
]
