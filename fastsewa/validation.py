"""Field-level input checks that report every problem at once."""
from __future__ import annotations

import re
from typing import List, Optional

from .errors import ValidationFailedError
from .models import BOOKING_STATUSES, ROLES

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def validate_registration(
    username: Optional[str],
    email: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str] = None,
) -> None:
    errors: List[str] = []

    if not username or len(username) < MIN_USERNAME_LENGTH:
        errors.append(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    if not email or not EMAIL_PATTERN.match(email):
        errors.append("Valid email is required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if confirm_password is not None and password and password != confirm_password:
        errors.append("Passwords do not match")

    if errors:
        raise ValidationFailedError(errors)


def validate_login(email: Optional[str], password: Optional[str]) -> None:
    errors: List[str] = []

    if not email:
        errors.append("Email is required")
    elif not EMAIL_PATTERN.match(email):
        errors.append("Invalid email format")
    if not password:
        errors.append("Password is required")

    if errors:
        raise ValidationFailedError(errors)


def validate_role(role: str) -> None:
    if role not in ROLES:
        raise ValidationFailedError(['Invalid role. Must be "admin" or "user"'])


def validate_status(status: str) -> None:
    if status not in BOOKING_STATUSES:
        raise ValidationFailedError([f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}"])


__all__ = [
    "EMAIL_PATTERN",
    "MIN_PASSWORD_LENGTH",
    "MIN_USERNAME_LENGTH",
    "validate_login",
    "validate_registration",
    "validate_role",
    "validate_status",
]
