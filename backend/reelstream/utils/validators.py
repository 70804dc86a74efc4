"""
Registration form validation rules for ReelStream.

The same rules run on the registration endpoint and on the live validation
endpoint used by the sign-up form, so a field that passes in the browser
passes on the server. Each validator returns the first failing message for
its field, or None when the value is acceptable.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional


# ==============================================================================
# RULE CONSTANTS
# ==============================================================================

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 254

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
# bcrypt ignores everything past this many bytes of the UTF-8 encoding
PASSWORD_MAX_BYTES = 72
PASSWORD_STRONG_LENGTH = 12

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_LOWERCASE = re.compile(r"[a-z]")
_UPPERCASE = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")

STRENGTH_LABELS = ("Very Weak", "Weak", "Fair", "Good", "Strong", "Very Strong")

# Field names used as keys in validation error maps
EMAIL_FIELD = "email"
PASSWORD_FIELD = "password"
CONFIRM_PASSWORD_FIELD = "confirm_password"


class FormValidationError(Exception):
    """Raised with the per-field messages when a submitted form breaks the rules."""

    def __init__(self, errors: Dict[str, str], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


@dataclass(frozen=True)
class PasswordStrength:
    """Strength score from 0 to 6 with its display label."""

    score: int
    label: str


# ==============================================================================
# FIELD VALIDATORS
# ==============================================================================

def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


def validate_email(email: Optional[str]) -> Optional[str]:
    """Return the error message for an email value, or None if it is valid."""
    if not email or not email.strip():
        return "Email is required"
    if not EMAIL_PATTERN.fullmatch(email):
        return "Please enter a valid email address"
    if len(email) > EMAIL_MAX_LENGTH:
        return "Email is too long"
    return None


def validate_password(password: Optional[str]) -> Optional[str]:
    """
    Return the first rule the password breaks, or None.

    Rules are checked in a fixed order: presence, minimum length, maximum
    length (in characters and in the UTF-8 bytes bcrypt hashes), then
    lowercase, uppercase, digit and special character.
    """
    if not password:
        return "Password is required"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if len(password) > PASSWORD_MAX_LENGTH or len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return "Password is too long"
    if not _LOWERCASE.search(password):
        return "Password must contain at least one lowercase letter"
    if not _UPPERCASE.search(password):
        return "Password must contain at least one uppercase letter"
    if not _DIGIT.search(password):
        return "Password must contain at least one number"
    if not any(c in SPECIAL_CHARACTERS for c in password):
        return "Password must contain at least one special character"
    return None


def validate_confirm_password(confirm_password: Optional[str], password: Optional[str]) -> Optional[str]:
    if not confirm_password:
        return "Please confirm your password"
    if confirm_password != password:
        return "Passwords do not match"
    return None


def validate_registration_form(
    email: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str] = None,
    check_confirmation: bool = True,
) -> Dict[str, str]:
    """
    Validate every registration field at once.

    Args:
        email: Submitted email address.
        password: Submitted password.
        confirm_password: Submitted password confirmation.
        check_confirmation: Set to False when the caller never collected a
            confirmation value, e.g. API clients posting only email and password.

    Returns:
        Mapping of field name to error message. Empty when the form is valid.
    """
    errors: Dict[str, str] = {}

    email_error = validate_email(email)
    if email_error:
        errors[EMAIL_FIELD] = email_error

    password_error = validate_password(password)
    if password_error:
        errors[PASSWORD_FIELD] = password_error

    if check_confirmation:
        confirm_error = validate_confirm_password(confirm_password, password)
        if confirm_error:
            errors[CONFIRM_PASSWORD_FIELD] = confirm_error

    return errors


# ==============================================================================
# PASSWORD STRENGTH
# ==============================================================================

def calculate_password_strength(password: Optional[str]) -> PasswordStrength:
    """
    Score a password from 0 to 6 for the strength meter.

    One point each for: at least 8 characters, at least 12 characters,
    a lowercase letter, an uppercase letter, a digit, and any character
    that is not an ASCII letter or digit.
    """
    password = password or ""
    checks = (
        len(password) >= PASSWORD_MIN_LENGTH,
        len(password) >= PASSWORD_STRONG_LENGTH,
        bool(_LOWERCASE.search(password)),
        bool(_UPPERCASE.search(password)),
        bool(_DIGIT.search(password)),
        bool(_NON_ALPHANUMERIC.search(password)),
    )
    score = sum(checks)
    label = STRENGTH_LABELS[min(score, len(STRENGTH_LABELS) - 1)]
    return PasswordStrength(score=score, label=label)
