"""Error taxonomy for the outing workflow.

Services raise these; ``dormlink.main`` maps them to HTTP responses in one
exception handler, so the service layer stays free of FastAPI types.
"""
from typing import Optional


class OutingError(Exception):
    """Base class for every workflow failure surfaced to a caller."""

    status_code = 400
    error = "outing_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(OutingError):
    """Malformed or missing input at request creation. Nothing is persisted."""

    status_code = 422
    error = "validation_error"


class ActiveOutingExists(ValidationError):
    status_code = 409
    error = "active_outing_exists"


class Forbidden(OutingError):
    status_code = 403
    error = "forbidden"


class NotFound(OutingError):
    status_code = 404
    error = "not_found"


class Expired(NotFound):
    """Guardian token past its expiry. Callers outside the service see a NotFound."""

    error = "expired"


class AlreadyProcessed(OutingError):
    status_code = 409
    error = "already_processed"


class AlreadyScanned(OutingError):
    status_code = 409
    error = "already_scanned"


class InvalidTransition(OutingError):
    """An event was attempted from a state that does not permit it."""

    status_code = 409
    error = "invalid_transition"

    def __init__(self, current: str, event: str, detail: Optional[str] = None):
        super().__init__(detail or f"Cannot apply '{event}' to an outing in state '{current}'")
        self.current = current
        self.event = event


class ConflictWrite(OutingError):
    """The conditional update lost a race against a concurrent transition."""

    status_code = 409
    error = "conflict_write"
