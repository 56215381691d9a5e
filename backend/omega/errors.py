"""Exception hierarchy shared by the persistence, agent and API layers."""

from __future__ import annotations


class OmegaError(Exception):
    """Base class for all application errors."""


class NotFoundError(OmegaError):
    """A requested record does not exist."""

    resource = "Resource"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"{self.resource} not found: {identifier}")

    @property
    def detail(self) -> str:
        return f"{self.resource} not found"


class ChatNotFoundError(NotFoundError):
    resource = "Chat"


class ToolNotFoundError(NotFoundError):
    resource = "Tool"


class ToolNameConflictError(OmegaError):
    """A tool definition with the same name is already persisted."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool name already exists: {name}")


class DuplicateToolError(OmegaError):
    """A tool with the same name is already present in a registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class ToolPreconditionError(OmegaError):
    """A tool's preparation step rejected its input.

    Unlike ordinary tool failures this aborts the remaining agent steps.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        # Tool messages of the calls in the same step that finished first
        self.completed: list = []


class ExpressionError(OmegaError):
    """An arithmetic or boolean expression could not be parsed or evaluated."""


class ApiError(OmegaError):
    """The chat API answered with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")
