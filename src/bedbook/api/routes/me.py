"""User identity endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from bedbook.api.auth import CurrentUser, get_current_user
from bedbook.api.rbac import effective_role

router = APIRouter(tags=["me"])


@router.get("/me")
def get_me(user: CurrentUser = Depends(get_current_user)) -> dict:
    """Return the authenticated user and their portal role.

    ``role`` is None for a valid token that carries no portal role; the
    frontend shows an access-denied page in that case.
    """
    return {
        "id": user.id,
        "name": user.name,
        "nik": user.nik,
        "email": user.email,
        "company": user.company,
        "department": user.department,
        "role": effective_role(user),
    }
