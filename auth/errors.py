"""
auth/errors.py -- Error taxonomy for the identity workflow.

Two families:

  IdentityError -- outcomes of a workflow step. Each subclass carries the HTTP
      status and machine code the transport maps it to, a short client-safe
      message, and an internal ``detail`` that is logged but never returned.

  VerificationError -- raised by TokenService.verify(). The workflow collapses
      every VerificationError into Unauthorized so clients cannot tell an
      expired token from a forged one.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class IdentityError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message} ({detail})")


class ValidationError(IdentityError):
    """Missing or malformed client input."""

    status_code = 400
    code = "validation_error"
    default_message = "Missing or invalid input."


class Unauthorized(IdentityError):
    """Bad credentials, or a bad, expired or mismatched token."""

    status_code = 401
    code = "unauthorized"
    default_message = "Not authorized."


class StorageError(IdentityError):
    """The credential store rejected or failed a query."""

    status_code = 500
    code = "storage_error"
    default_message = "Database error."


class NotificationError(IdentityError):
    """The mail channel reported a delivery failure or timed out."""

    status_code = 500
    code = "notification_error"
    default_message = "Email error."


class VerificationError(Exception):
    pass


class ExpiredError(VerificationError):
    pass


class MalformedError(VerificationError):
    pass
