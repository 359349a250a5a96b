# Overview: Error taxonomy shared by services and routes.

"""
Every business failure raised by the engine is a BackOfficeError subclass
carrying a stable ``kind`` plus a human-readable message. Routes map the
kind to an HTTP status without inspecting messages.

TRANSIENT errors (``retryable = True``) may be retried by the caller with the
same input; everything else is a validation failure and is never retried.
"""

from __future__ import annotations


class BackOfficeError(Exception):
    """Base class for engine failures."""

    kind = "BackOfficeError"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.details,
        }


class NotFound(BackOfficeError):
    """Product, transaction, plan or invoice absent in the tenant/company scope."""
    kind = "NotFound"
    http_status = 404


class InsufficientStock(BackOfficeError):
    kind = "InsufficientStock"
    http_status = 409


class Overpayment(BackOfficeError):
    kind = "Overpayment"


class NoOutstandingBalance(BackOfficeError):
    kind = "NoOutstandingBalance"


class OutstandingBalance(BackOfficeError):
    """Price corrections are blocked while a balance is still owed."""
    kind = "OutstandingBalance"
    http_status = 409


class InvalidTransactionShape(BackOfficeError):
    kind = "InvalidTransactionShape"


class MissingRequiredField(BackOfficeError):
    kind = "MissingRequiredField"

    @classmethod
    def for_fields(cls, fields: list[str]) -> "MissingRequiredField":
        return cls(
            f"Missing required fields: {', '.join(fields)}",
            details={"fields": list(fields)},
        )


class InvalidValue(BackOfficeError):
    """Input present but malformed (negative quantity, unknown enum, ...)."""
    kind = "InvalidValue"


class TenantScopeError(BackOfficeError):
    kind = "TenantScopeError"
    http_status = 403


class SequenceConflict(BackOfficeError):
    """Invoice number collided with an existing one; retried with a fresh number."""
    kind = "SequenceConflict"
    http_status = 409
    retryable = True


class UnitOfWorkTimeout(BackOfficeError):
    kind = "UnitOfWorkTimeout"
    http_status = 503
    retryable = True
