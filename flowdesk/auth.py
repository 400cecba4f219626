"""Caller identity as forwarded by the authenticating gateway.

Token issuance and verification happen upstream; requests reach this service
with ``X-User-Id`` and ``X-User-Role`` headers already set.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Header
from pydantic import BaseModel

from .errors import AuthenticationRequired, PermissionDenied

ROLE_LEVELS = {"viewer": 1, "operator": 2, "admin": 3}


class Principal(BaseModel):
    id: str
    role: str


def has_permission(user_role: str, required_role: str) -> bool:
    user_level = ROLE_LEVELS.get(user_role.lower(), 0)
    required_level = ROLE_LEVELS.get(required_role.lower(), 0)
    return user_level >= required_level


def require_role(required_role: str) -> Callable[..., Awaitable[Principal]]:
    async def dependency(
        x_user_id: str | None = Header(default=None),
        x_user_role: str | None = Header(default=None),
    ) -> Principal:
        if not x_user_id or not x_user_role:
            raise AuthenticationRequired("Authentication required")
        if not has_permission(x_user_role, required_role):
            raise PermissionDenied(
                "Insufficient permissions",
                [f"This action requires {required_role} role or higher"],
            )
        return Principal(id=x_user_id, role=x_user_role.lower())

    return dependency
