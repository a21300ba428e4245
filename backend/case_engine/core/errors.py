"""
Error taxonomy shared by the services.

Services raise these; the API layer renders them through the handlers
registered in main.py. Each error carries a user-facing message and the
HTTP status it maps to.
"""


class CaseEngineError(Exception):
    """Base class for errors surfaced to the caller as actionable messages."""

    status_code = 400

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class NotFound(CaseEngineError):
    status_code = 404


class MappingMissing(CaseEngineError):
    """No active hospital -> process type mapping exists."""

    status_code = 409


class PreconditionFailed(CaseEngineError):
    status_code = 412


class ValidationError(CaseEngineError):
    """Carries a field -> message map in `errors`."""

    status_code = 422


class TransitionError(CaseEngineError):
    """Raised when a status transition is invalid."""

    status_code = 422


class AccessDenied(CaseEngineError):
    status_code = 403


class StoreFailure(CaseEngineError):
    """Opaque persistence failure; retry is left to the user."""

    status_code = 503
