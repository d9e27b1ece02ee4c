"""
auth/validation.py -- Input rules for registration, login and profile patches.

Each validate_* function checks its rules in a fixed order and raises
ValidationError carrying the message of the first rule that fails. Uniqueness
of the email is not checked here -- that needs the credential store and lives
in UserService.
"""

from __future__ import annotations

from email_validator import EmailNotValidError, validate_email

from auth.models import Registration, UserPatch
from core.errors import ValidationError

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
FIELD_MAX_LEN = 255


def is_valid_email(email: str) -> bool:
    """Syntax check only. No DNS lookup, and display-name forms are rejected."""
    if not email or len(email) > FIELD_MAX_LEN:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _check_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LEN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LEN} characters")
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LEN} characters")


def _check_length(label: str, value: str) -> None:
    if len(value) > FIELD_MAX_LEN:
        raise ValidationError(f"{label} must be at most {FIELD_MAX_LEN} characters")


def validate_registration(payload: Registration) -> None:
    """Check a registration payload. Raises ValidationError on the first failure."""
    required = (
        ("Name", payload.name),
        ("Lastname", payload.lastname),
        ("Username", payload.username),
        ("Email", payload.email),
        ("Password", payload.password),
    )
    for label, value in required:
        if not value or not value.strip():
            raise ValidationError(f"{label} is required")
    for label, value in required[:3]:
        _check_length(label, value)
    if not is_valid_email(payload.email):
        raise ValidationError("Invalid email format")
    _check_password(payload.password)
    if payload.age < 0:
        raise ValidationError("Age must not be negative")


def validate_login(email: str, password: str) -> None:
    if not email or not password:
        raise ValidationError("Email and password are required")
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")


def validate_patch(patch: UserPatch) -> None:
    """Check only the fields a patch actually supplies."""
    if patch.email and not is_valid_email(patch.email):
        raise ValidationError("Invalid email format")
    if patch.password:
        _check_password(patch.password)
    for label, value in (("Name", patch.name), ("Lastname", patch.lastname), ("Username", patch.username)):
        if value:
            _check_length(label, value)
    if patch.age is not None and patch.age < 0:
        raise ValidationError("Age must not be negative")
