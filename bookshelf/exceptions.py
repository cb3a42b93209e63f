"""
Domain Exceptions

Error kinds raised by repositories and services. None of them is fatal:
main.py registers a handler for each that turns it into an HTTP response.

- NotFoundError    -> 404
- ValidationError  -> 422 (field-level errors)
- RateLimitError   -> 429 (with Retry-After)
- RepositoryError  -> 503 (store unavailable, caller may retry)
"""

from typing import Any


class BookshelfError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a JSON response body."""
        return {"error": self.code, "detail": self.message}


class NotFoundError(BookshelfError):
    """A book (or other record) with the requested id does not exist."""

    code = "not_found"

    def __init__(self, resource: str, resource_id: Any) -> None:
        super().__init__(f"{resource} with id {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(BookshelfError):
    """
    Submitted data broke a field rule.

    Attributes:
        errors: One {"field": ..., "message": ...} dict per failed rule
    """

    code = "validation_error"

    def __init__(self, errors: list[dict[str, str]]) -> None:
        fields = ", ".join(sorted({e["field"] for e in errors}))
        super().__init__(f"Invalid value for: {fields}")
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


class RateLimitError(BookshelfError):
    """
    A client exceeded its submission allowance.

    Attributes:
        retry_after: Seconds until the current window resets
    """

    code = "rate_limit_exceeded"

    def __init__(self, limit: str, retry_after: int) -> None:
        super().__init__(f"Rate limit exceeded: {limit}")
        self.limit = limit
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retry_after": self.retry_after}


class RepositoryError(BookshelfError):
    """An underlying store (database, counter store) is unavailable."""

    code = "repository_unavailable"
