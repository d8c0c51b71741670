"""
Typed failures raised by the listing engine.

Every rejected operation surfaces as one of these; nothing is reported as a silent no-op.
The HTTP layer maps them to responses through ``status_code`` and ``code``.
"""
from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    status_code: int = 400
    code: str = "ledger_error"
    retryable: bool = False

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(LedgerError):
    """Malformed or missing input. The caller can fix it and retry."""

    status_code = 422
    code = "validation_error"


class AuthorizationError(LedgerError):
    """The actor's role may not perform the operation."""

    status_code = 403
    code = "forbidden"


class NotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class PreconditionError(LedgerError):
    """The entity exists but a required sub-state is missing (unpriced, no image, unverified payment)."""

    status_code = 412
    code = "precondition_failed"


class ConflictError(LedgerError):
    """The state machine rejects the transition for the current persisted state."""

    status_code = 409
    code = "conflict"


class TransientError(LedgerError):
    """The store could not commit (lock timeout, serialization failure). Safe to retry."""

    status_code = 503
    code = "transient"
    retryable = True
