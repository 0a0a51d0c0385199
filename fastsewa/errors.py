"""Error taxonomy shared by the directory, ledger and export pipeline."""
from __future__ import annotations

from typing import Iterable, List


class FastsewaError(RuntimeError):
    """Base class for failures surfaced to callers of the data layer."""


class NotFoundError(FastsewaError):
    """Raised when a referenced record or artifact does not exist."""


class DuplicateEmailError(FastsewaError):
    """Raised when registering an email address that is already taken."""

    def __init__(self, email: str) -> None:
        super().__init__("Email already registered")
        self.email = email


class InvalidCredentialsError(FastsewaError):
    """Raised when a password does not match the stored hash."""


class ValidationFailedError(FastsewaError):
    """Raised when input is malformed; carries one message per problem."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = [str(message) for message in messages]
        super().__init__("; ".join(self.messages) or "Validation failed")


class StorageError(FastsewaError):
    """Raised when a persisted file or export artifact cannot be read or written."""


__all__ = [
    "FastsewaError",
    "NotFoundError",
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "ValidationFailedError",
    "StorageError",
]
