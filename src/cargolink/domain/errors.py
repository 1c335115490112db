"""Domain exception taxonomy."""

from __future__ import annotations


class InvalidReferenceError(ValueError):
    """Raised when a business reference fails validation."""

    def __init__(self, kind: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid {kind} {value!r}: {reason}")
        self.kind = kind
        self.value = value


class TenantIsolationError(PermissionError):
    """Raised when an operation would touch entities of another tenant."""


class MessageParseError(ValueError):
    """Raised for ingest messages that can never be processed successfully."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
