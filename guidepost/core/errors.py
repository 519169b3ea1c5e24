"""Guidepost - Error Taxonomy.

Every failure that leaves an orchestrator is one of these kinds. Each
subclass carries only the fields its kind needs; the API layer maps the
kind to an HTTP status and a caller-safe message.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Closed set of caller-visible failure kinds."""

    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CONFLICT = "conflict"
    INTERNAL = "internal"


HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_FAILED: 422,
    ErrorKind.RATE_LIMIT_EXCEEDED: 429,
    ErrorKind.DEADLINE_EXCEEDED: 504,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class GuideError(Exception):
    """Base for all caller-visible errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def details(self) -> Dict[str, Any]:
        """Kind-specific payload fields."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.kind.value, "message": self.message}
        body.update(self.details())
        return body


class Unauthenticated(GuideError):
    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Must be logged in"):
        super().__init__(message)


class PermissionDenied(GuideError):
    kind = ErrorKind.PERMISSION_DENIED


class NotFound(GuideError):
    kind = ErrorKind.NOT_FOUND


class ValidationFailed(GuideError):
    """Input or upstream output failed schema rules."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class RateLimitExceeded(GuideError):
    kind = ErrorKind.RATE_LIMIT_EXCEEDED

    def __init__(self, usage_today: int, usage_limit: int):
        self.usage_today = usage_today
        self.usage_limit = usage_limit
        super().__init__(
            f"Daily limit reached. You have used {usage_today} of {usage_limit} "
            f"transforms today. Try again tomorrow."
        )

    def details(self) -> Dict[str, Any]:
        return {"usage_today": self.usage_today, "usage_limit": self.usage_limit}


class DeadlineExceeded(GuideError):
    kind = ErrorKind.DEADLINE_EXCEEDED

    def __init__(
        self,
        message: str = "The document took too long to process. Try a smaller document.",
        timeout_seconds: Optional[float] = None,
    ):
        self.timeout_seconds = timeout_seconds
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        if self.timeout_seconds is None:
            return {}
        return {"timeout_seconds": self.timeout_seconds}


class Conflict(GuideError):
    kind = ErrorKind.CONFLICT


class InternalError(GuideError):
    """Anything else. The message is generic; detail goes to the log only."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "Something went wrong. Please try again."):
        super().__init__(message)
