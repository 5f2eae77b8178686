"""Loan domain errors.

Every error the loan engine (or the store / notifier beneath it) can raise
derives from :class:`LoanError`. Each subclass pins an HTTP status and a
machine-readable ``code`` so the request surface can translate any of them
without a lookup table of its own.
"""

from __future__ import annotations

from typing import Any


class LoanError(Exception):
    status_code: int = 500
    code: str = "loan_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def with_context(self, operation: str) -> "LoanError":
        """Return a copy of this error whose message is prefixed with ``operation``."""
        wrapped = type(self).__new__(type(self))
        LoanError.__init__(wrapped, f"{operation}: {self.message}", details=dict(self.details))
        return wrapped


class NotFoundError(LoanError):
    status_code = 404
    code = "not_found"


class AlreadyExistsError(LoanError):
    status_code = 409
    code = "already_exists"


class InvalidStateError(LoanError):
    status_code = 400
    code = "invalid_state"


class InvalidArgumentError(LoanError):
    status_code = 400
    code = "invalid_argument"


class OverfundingError(LoanError):
    status_code = 400
    code = "overfunding"


class ValidationError(LoanError):
    status_code = 422
    code = "validation_error"


class NotificationError(LoanError):
    status_code = 502
    code = "notification_failed"


class PersistenceError(LoanError):
    status_code = 500
    code = "persistence_error"


__all__ = [
    "AlreadyExistsError",
    "InvalidArgumentError",
    "InvalidStateError",
    "LoanError",
    "NotFoundError",
    "NotificationError",
    "OverfundingError",
    "PersistenceError",
    "ValidationError",
]
