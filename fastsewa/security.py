"""Security helpers for the booking admin API."""
from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .models import PublicUser
from .users import UserDirectory


class BearerAuth:
    """Resolve the acting user from a signed bearer token."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> PublicUser:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Access token required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user = self._directory.resolve_token(credentials.credentials)
        if user is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
        return user


def ensure_admin(user: PublicUser) -> PublicUser:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


__all__ = ["BearerAuth", "ensure_admin"]
