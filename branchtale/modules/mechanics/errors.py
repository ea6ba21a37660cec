from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Terminal per-request failure surfaced to the caller, never retried."""

    status_code = 500
    default_code = "ENGINE_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        detail.update(self.details)
        return detail


class NotFoundError(EngineError):
    status_code = 404
    default_code = "NOT_FOUND"


class ForbiddenError(EngineError):
    status_code = 403
    default_code = "FORBIDDEN"


class SessionCompletedError(ForbiddenError):
    default_code = "SESSION_COMPLETED"


class ChoiceUnavailableError(ForbiddenError):
    default_code = "CHOICE_UNAVAILABLE"


class SessionBusyError(EngineError):
    status_code = 409
    default_code = "SESSION_BUSY"


class MechanicsValidationError(EngineError):
    status_code = 422
    default_code = "VALIDATION_ERROR"

    def __init__(self, errors: list[str], message: str = "Story mechanics failed validation") -> None:
        super().__init__(message, details={"errors": list(errors)})
        self.errors = list(errors)
