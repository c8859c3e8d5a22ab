"""
Error taxonomy shared by the client layer and the API backend.

- ValidationError: caught before any network call is made
- ApiError: non-2xx response, or transport failure (status_code=None)
- ConflictError: delete blocked by dependent records (HTTP 409)
"""

from typing import Any

_UNSET: Any = object()

# Machine-readable codes carried in every {error, code} response body
ERROR_CODES = (
    "UNAUTHORIZED",
    "RATE_LIMITED",
    "NOT_FOUND",
    "CONFLICT",
    "VALIDATION_ERROR",
    "BAD_REQUEST",
    "INTERNAL_ERROR",
)


class AdhderError(Exception):
    """Base class for all ADHDer errors."""


class ValidationError(AdhderError):
    """Input rejected locally; no request was issued."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or [message]


class ApiError(AdhderError):
    """A remote call failed.

    status_code is None when the request never produced a response
    (connection refused, DNS failure, timeout).
    """

    status_code: int | None = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Any = _UNSET,
        code: str | None = None,
        payload: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not _UNSET:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.payload = payload or {}

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.payload}


class BadRequestError(ApiError):
    status_code = 400
    code = "BAD_REQUEST"


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ApiError):
    """Delete would orphan active tasks; the caller must relink first."""

    status_code = 409
    code = "CONFLICT"

    @property
    def active_tasks(self) -> list[dict[str, Any]]:
        return list(self.payload.get("activeTasks", []))


class RateLimitedError(ApiError):
    status_code = 429
    code = "RATE_LIMITED"


STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitedError,
}


def error_for_status(
    status_code: int, message: str, code: str | None = None, payload: dict | None = None
) -> ApiError:
    """Build the most specific ApiError for an HTTP status."""
    cls = STATUS_ERRORS.get(status_code, ApiError)
    return cls(message, status_code=status_code, code=code, payload=payload)


def code_for_status(status_code: int) -> str:
    """Error code from ERROR_CODES for an HTTP status."""
    cls = STATUS_ERRORS.get(status_code)
    if cls is not None:
        return cls.code
    return "BAD_REQUEST" if 400 <= status_code < 500 else "INTERNAL_ERROR"


__all__ = [
    "ERROR_CODES",
    "AdhderError",
    "ApiError",
    "BadRequestError",
    "ConflictError",
    "NotFoundError",
    "RateLimitedError",
    "UnauthorizedError",
    "ValidationError",
    "code_for_status",
    "error_for_status",
]
