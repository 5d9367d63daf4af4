# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Workspace error taxonomy.
Raised by the service layer, translated to HTTP status codes by controllers.
Input validation keeps using ValueError / pydantic like the rest of the code.
"""


class WorkspaceError(Exception):
    """Base class for expected workspace failures."""


class SessionRequiredError(WorkspaceError):
    """No session is stored for the team on this client."""


class UnauthorizedError(WorkspaceError):
    """Bad password, or the upstream rejected the session token."""


class ForbiddenError(WorkspaceError):
    """The session role does not allow the requested mutation."""


class TeamNotFoundError(WorkspaceError, KeyError):
    """The team does not exist upstream (or has no open workspace)."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Team not found"


class ActionFailedError(WorkspaceError):
    """A mutating action failed upstream; optimistic changes were rolled back."""

    def __init__(self, message: str, snapshot=None) -> None:
        super().__init__(message)
        self.snapshot = snapshot
