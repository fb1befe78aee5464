"""
Application errors for clean API error handling.

Every error carries an HTTP status and a stable machine-readable code so the
API layer can render {"error", "code"} bodies without inspecting types.
Use ServiceUnavailableError when a dependency (vector index, embeddings, LLM)
is misconfigured so the API can return 503 with a user-facing message.
"""

from typing import Any


class AgentError(Exception):
    """Base class for errors surfaced to API callers."""

    status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(message)


class ValidationError(AgentError):
    """Raised when a request is malformed (empty message, oversized session id, ...)."""

    status = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AgentError):
    """Raised when a session or plugin does not exist."""

    status = 404
    code = "NOT_FOUND"


class CollaboratorError(AgentError):
    """Raised when an external provider (completion, embeddings, vector index) fails."""

    status = 502
    code = "COLLABORATOR_ERROR"

    def __init__(
        self,
        message: str,
        provider: str = "",
        upstream_status: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.provider = provider
        self.upstream_status = upstream_status
        super().__init__(message, code=code, details=details)


class ServiceUnavailableError(CollaboratorError):
    """Raised when a required service (e.g. vector index, embeddings API) is unavailable or misconfigured."""

    status = 503
    code = "SERVICE_UNAVAILABLE"


class InternalError(AgentError):
    status = 500
    code = "INTERNAL_ERROR"
