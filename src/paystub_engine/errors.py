"""Domain exceptions for payroll period processing."""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll processing errors."""

    code = "PAYROLL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(PayrollError):
    """Malformed hours, dates or request values."""

    code = "INVALID_INPUT"


class ConfigurationError(PayrollError):
    """Missing compensation profile, unknown rule type or no active config."""

    code = "CONFIGURATION_ERROR"


class ConflictError(PayrollError):
    """Concurrent mutation of a period, or an operation against a terminal state."""

    code = "CONFLICT"


class NotFoundError(PayrollError):
    """Unknown period, employee or pay stub."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: UUID | str | None = None):
        self.resource = resource
        self.identifier = identifier
        msg = f"{resource} not found"
        if identifier is not None:
            msg = f"{resource} {identifier} not found"
        super().__init__(msg)


class AccessDeniedError(PayrollError):
    """Actor is not allowed to perform a period transition."""

    code = "ACCESS_DENIED"


class CollaboratorTimeoutError(PayrollError):
    """An injected data source did not answer in time."""

    code = "COLLABORATOR_TIMEOUT"

    def __init__(self, source: str, timeout: float):
        self.source = source
        self.timeout = timeout
        super().__init__(f"{source} timed out after {timeout:g}s")


class CollaboratorError(PayrollError):
    """An injected data source failed with a non-domain error."""

    code = "COLLABORATOR_ERROR"

    def __init__(self, source: str, cause: Exception):
        self.source = source
        self.cause = cause
        super().__init__(
            f"{source} failed: {type(cause).__name__}: {cause}",
            {"source": source, "error_type": type(cause).__name__},
        )


class StoreError(PayrollError):
    """A pay stub write failed and was rolled back."""

    code = "STORE_ERROR"
