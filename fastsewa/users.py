"""Registration, authentication and profile management for user accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from .credentials import TokenIssuer
from .errors import DuplicateEmailError, InvalidCredentialsError, NotFoundError, ValidationFailedError
from .models import PublicUser, User, UserProfile, utcnow
from .store import USERS, RecordStore
from .validation import validate_registration, validate_role

logger = logging.getLogger("fastsewa.users")

_UPDATABLE_FIELDS = {"username", "email", "password", "role", "is_active", "profile"}
_IMMUTABLE_FIELDS = {"id", "created_at"}
_NULLABLE_FIELDS = {"profile"}


@dataclass(frozen=True)
class AuthResult:
    user: PublicUser
    token: str


def _coerce_profile(value: UserProfile | Mapping[str, Any] | None) -> Optional[UserProfile]:
    if value is None or isinstance(value, UserProfile):
        return value
    if isinstance(value, Mapping):
        return UserProfile.from_dict(value)
    raise ValidationFailedError(["Profile must be an object"])


class UserDirectory:
    """User accounts on top of the record store.

    Accounts are never removed: deactivation only clears ``is_active`` so the
    record keeps showing up in listings and exports.
    """

    def __init__(self, store: RecordStore, tokens: TokenIssuer) -> None:
        self._store = store
        self._tokens = tokens
        self._hasher = store.hasher

    @staticmethod
    def public_view(user: User) -> PublicUser:
        return PublicUser.from_user(user)

    def register(
        self,
        username: str,
        email: str,
        password: str,
        profile: UserProfile | Mapping[str, Any] | None = None,
    ) -> PublicUser:
        """Create a regular user account and return its public view."""

        validate_registration(username, email, password)
        password_hash = self._hasher.hash(password)
        coerced_profile = _coerce_profile(profile)

        with self._store.lock(USERS):
            if self._store.find_user_by_email(email) is not None:
                raise DuplicateEmailError(email)

            now = utcnow()
            user = User(
                id=self._store.next_id(USERS),
                username=username,
                email=email,
                password=password_hash,
                role="user",
                is_active=True,
                created_at=now,
                updated_at=now,
                profile=coerced_profile,
            )
            self._store.add_user(user)

        logger.info("Registered user %s (#%d)", email, user.id)
        return self.public_view(user)

    def authenticate(self, email: str, password: str) -> AuthResult:
        user = self._store.find_user_by_email(email, active_only=True)
        if user is None:
            raise NotFoundError("User not found")
        if not self._hasher.verify(password, user.password):
            raise InvalidCredentialsError("Invalid password")

        token = self._tokens.issue(
            {
                "userId": user.id,
                "username": user.username,
                "email": user.email,
                "role": user.role,
            }
        )
        return AuthResult(user=self.public_view(user), token=token)

    def resolve_token(self, token: str) -> Optional[PublicUser]:
        """Return the active user a token was issued to, if it is still valid."""

        claims = self._tokens.verify(token)
        if not claims:
            return None
        user_id = claims.get("userId")
        if not isinstance(user_id, int):
            return None
        user = self._store.get_user(user_id)
        if user is None or not user.is_active:
            return None
        return self.public_view(user)

    def get(self, user_id: int) -> Optional[PublicUser]:
        user = self._store.get_user(user_id)
        if user is None:
            return None
        return self.public_view(user)

    def list_users(self) -> List[PublicUser]:
        return [self.public_view(user) for user in self._store.users()]

    def update(self, user_id: int, **fields: Any) -> PublicUser:
        """Apply ``fields`` to an existing account.

        ``id`` and ``created_at`` are ignored; a ``password`` is re-hashed
        before it is stored.
        """

        ignored = _IMMUTABLE_FIELDS & fields.keys()
        if ignored:
            logger.debug("Ignoring immutable user field(s): %s", ", ".join(sorted(ignored)))

        unknown = set(fields) - _UPDATABLE_FIELDS - _IMMUTABLE_FIELDS
        if unknown:
            raise ValidationFailedError(f"Unknown user field: {name}" for name in sorted(unknown))

        changes: Dict[str, Any] = {}
        for key in _UPDATABLE_FIELDS:
            if key not in fields:
                continue
            value = fields[key]
            if value is None and key not in _NULLABLE_FIELDS:
                continue
            changes[key] = value

        if "role" in changes:
            validate_role(changes["role"])
        if "password" in changes:
            if not changes["password"]:
                raise ValidationFailedError(["Password must not be empty"])
            changes["password"] = self._hasher.hash(str(changes["password"]))
        if "profile" in changes:
            changes["profile"] = _coerce_profile(changes["profile"])
        if "is_active" in changes:
            changes["is_active"] = bool(changes["is_active"])

        with self._store.lock(USERS):
            current = self._store.get_user(user_id)
            if current is None:
                raise NotFoundError("User not found")
            updated = replace(current, **changes, updated_at=utcnow())
            self._store.replace_user(updated)

        return self.public_view(updated)

    def set_active(self, user_id: int, active: bool) -> PublicUser:
        user = self.update(user_id, is_active=active)
        logger.info("User #%d %s", user_id, "activated" if active else "deactivated")
        return user

    def deactivate(self, user_id: int) -> PublicUser:
        """Soft-delete an account; the record stays in the store."""

        return self.set_active(user_id, False)

    def change_role(self, user_id: int, role: str) -> PublicUser:
        return self.update(user_id, role=role)


__all__ = ["AuthResult", "UserDirectory"]
