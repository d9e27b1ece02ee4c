"""
core/errors.py -- Error taxonomy shared by the services and the HTTP layer.

Services raise these; api/main.py turns them into the JSON error envelope
with the matching status code. Nothing below api/ knows about HTTP beyond
the status_code attribute carried on each class.

  BadRequest / ValidationError -> 400  (malformed, missing or duplicate input)
  Unauthorized / InvalidCredentials -> 401  (bad credentials, invalid token)
  Forbidden -> 403  (authenticated but not entitled)
  NotFound -> 404
  InternalError / SigningError -> 500  (persistence, hashing, signing)

Internal errors carry a client-safe message only. The underlying exception
is chained with `raise ... from exc` and logged where it is caught.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every error the service reports to a client."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AppError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request."


class ValidationError(BadRequest):
    """Input failed a validation rule. The message names the first failing rule."""

    code = "validation_error"
    default_message = "Validation failed."


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class InvalidCredentials(Unauthorized):
    """Unknown email or wrong password. Deliberately the same message for both."""

    code = "bad_credentials"
    default_message = "Invalid email or password."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to perform this action."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class InternalError(AppError):
    status_code = 500
    code = "internal_error"


class SigningError(InternalError):
    """Token could not be signed (empty secret or JOSE failure)."""

    default_message = "Failed to generate tokens."
