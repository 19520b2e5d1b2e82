"""RBAC (Role-Based Access Control) from token roles.

Provides:
- Role hierarchy: requester < admin < superadmin
- effective_role(): highest hierarchy role a user holds
- require_role(): FastAPI dependency for role-gated endpoints
- ensure_owner_or_admin(): per-record check for requester-owned data
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException

from bedbook.api.auth import CurrentUser, get_current_user
from bedbook.observability.context import set_actor_id

# Role hierarchy: lower index = less privilege
ROLE_HIERARCHY = ["requester", "admin", "superadmin"]


def _role_level(role: str) -> int:
    """Get numeric level for role (higher = more privilege)."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return -1


def effective_role(user: CurrentUser) -> str | None:
    """Highest role of the hierarchy held by ``user``, None if none."""
    levels = [_role_level(role) for role in user.roles]
    best = max(levels, default=-1)
    return ROLE_HIERARCHY[best] if best >= 0 else None


def is_admin(user: CurrentUser) -> bool:
    return _role_level(effective_role(user) or "") >= _role_level("admin")


def require_role(min_role: str) -> Callable[..., CurrentUser]:
    """Create a dependency that requires a minimum role.

    Args:
        min_role: Minimum required role (requester, admin, superadmin).

    Usage:
        @router.get("/bookings")
        def endpoint(user: CurrentUser = Depends(require_role("admin"))):
            ...
    """
    min_level = _role_level(min_role)
    if min_level < 0:
        raise ValueError(f"Invalid role: {min_role}")

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        # Must stay async: a sync dependency would set the ContextVar in a worker thread
        set_actor_id(user.id)
        role = effective_role(user)
        if role is None:
            raise HTTPException(status_code=403, detail="No portal role")
        if _role_level(role) < min_level:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return dependency


def ensure_owner_or_admin(user: CurrentUser, owner_id: str | None) -> None:
    """Raise 403 unless ``user`` owns the record or is an admin."""
    if is_admin(user):
        return
    if owner_id is None or owner_id != user.id:
        raise HTTPException(status_code=403, detail="Not allowed")
