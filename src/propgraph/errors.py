"""Custom exceptions for the properties and linking engine."""


class PropGraphError(Exception):
    """Base exception for all propgraph errors."""

    code = "error"

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnauthorizedError(PropGraphError):
    """Raised when the caller has no (valid) identity."""

    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class AccessDeniedError(PropGraphError):
    """Raised when the caller is not a member of the resolved workspace."""

    code = "access_denied"

    def __init__(self, workspace_id: object) -> None:
        super().__init__(
            "Not a member of this workspace",
            details={"workspace_id": str(workspace_id)},
        )


class NotFoundError(PropGraphError):
    """Raised when a definition, table, option or entity does not exist."""

    code = "not_found"

    def __init__(self, kind: str, identifier: object, message: str | None = None) -> None:
        super().__init__(
            message or f"{kind} not found",
            details={"kind": kind, "identifier": str(identifier)},
        )


class AlreadyExistsError(PropGraphError):
    """Raised on duplicate links, option ids or normalized definition names."""

    code = "already_exists"


class CrossWorkspaceError(PropGraphError):
    """Raised when a link would connect entities of two workspaces."""

    code = "cross_workspace"

    def __init__(self, source_workspace: object, target_workspace: object) -> None:
        super().__init__(
            "Cannot link entities from different workspaces",
            details={
                "source_workspace_id": str(source_workspace),
                "target_workspace_id": str(target_workspace),
            },
        )


class SelfReferenceError(PropGraphError):
    """Raised when a link's source and target are the same entity."""

    code = "self_reference"

    def __init__(self, entity_type: str, entity_id: object) -> None:
        super().__init__(
            "Cannot link an entity to itself",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class ValidationError(PropGraphError):
    """Raised when input validation fails."""

    code = "validation_error"


class StoreError(PropGraphError):
    """Raised when the underlying store fails. The message is passed through."""

    code = "store_error"
