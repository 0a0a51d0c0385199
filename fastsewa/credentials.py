"""Password hashing and signed access tokens."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

import jwt
from passlib.context import CryptContext

from .models import utcnow

logger = logging.getLogger("fastsewa.credentials")

DEFAULT_TOKEN_TTL = timedelta(hours=24)


class PasswordHasher:
    """One-way password hashing backed by a passlib context.

    New hashes use ``pbkdf2_sha256``; ``bcrypt`` hashes written by earlier
    deployments still verify.
    """

    def __init__(self, context: CryptContext | None = None) -> None:
        self._context = context or CryptContext(
            schemes=["pbkdf2_sha256", "bcrypt"],
            deprecated="auto",
        )

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False


class TokenIssuer:
    """Issue and verify HMAC-signed JWT access tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_TOKEN_TTL,
    ) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, claims: Mapping[str, Any]) -> str:
        issued_at = utcnow()
        payload: Dict[str, Any] = dict(claims)
        payload["iat"] = issued_at
        payload["exp"] = issued_at + self._ttl
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            logger.debug("Rejected access token: %s", exc)
            return None


__all__ = ["DEFAULT_TOKEN_TTL", "PasswordHasher", "TokenIssuer"]
