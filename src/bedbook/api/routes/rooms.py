"""Room administration endpoints: bed maintenance and room activity history."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from bedbook.api.auth import CurrentUser
from bedbook.api.rbac import require_role
from bedbook.api.serializers import bed_to_dict
from bedbook.domain.models import BedStatus, OccupantLogAction
from bedbook.infra.time import local_today, utc_now
from bedbook.services import room_service


class BedStatusRequest(BaseModel):
    status: BedStatus


router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.patch("/beds/{bed_id}/status")
def set_bed_status(
    body: BedStatusRequest,
    bed_id: UUID = Path(..., description="Bed UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Put a bed under maintenance or make it available again."""
    from bedbook.infra.db import txn

    now = utc_now()
    with txn() as cur:
        bed = room_service.set_bed_status(
            cur,
            str(bed_id),
            body.status,
            performed_by=user.actor,
            today=local_today(now),
        )
    return bed_to_dict(bed)


@router.get("/{room_id}/history")
def room_history(
    room_id: UUID = Path(..., description="Room UUID"),
    action: list[OccupantLogAction] | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Check-ins, check-outs, transfers and other history lines of a room's beds."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        items, total = room_service.room_history(
            cur,
            str(room_id),
            actions=action,
            performed_from=date_from,
            performed_to=date_to,
            limit=limit,
            offset=offset,
        )
    return {"items": items, "total": total, "limit": limit, "offset": offset}
