"""Availability endpoints: room search and per-room timelines."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from bedbook.api.auth import CurrentUser
from bedbook.api.rbac import require_role
from bedbook.api.serializers import day_summary_to_dict, room_availability_to_dict, room_summary
from bedbook.domain.models import AllocationPolicy, Gender, GenderPolicy, OccupantType
from bedbook.infra.time import local_today, utc_now
from bedbook.services import availability_service

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/rooms")
def search_rooms(
    start: date = Query(..., description="Check-in date (YYYY-MM-DD)"),
    end: date = Query(..., description="Check-out date (YYYY-MM-DD), exclusive"),
    area_id: UUID | None = Query(None),
    building_id: UUID | None = Query(None),
    gender_policy: GenderPolicy | None = Query(None),
    allocation_policy: AllocationPolicy | None = Query(None),
    gender: Gender | None = Query(None),
    occupant_type: OccupantType | None = Query(None),
    include_full: bool = Query(False),
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """Rooms with at least one bed free for the whole stay.

    Beds held by a pending request are reported as unavailable with
    ``has_pending_request`` set.
    """
    from bedbook.infra.db import txn

    now = utc_now()
    with txn(readonly=True) as cur:
        results = availability_service.search_rooms(
            cur,
            start=start,
            end=end,
            today=local_today(now),
            now=now,
            area_id=str(area_id) if area_id else None,
            building_id=str(building_id) if building_id else None,
            gender_policy=gender_policy,
            allocation_policy=allocation_policy,
            gender=gender,
            occupant_type=occupant_type,
            include_full=include_full,
        )

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "nights": (end - start).days,
        "rooms": [room_availability_to_dict(r) for r in results],
    }


@router.get("/rooms/{room_id}/timeline")
def room_timeline(
    room_id: UUID = Path(..., description="Room UUID"),
    start: date = Query(...),
    end: date = Query(...),
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """Day-by-day status of every bed in a room over [start, end)."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        room, days = availability_service.room_timeline(
            cur, str(room_id), start=start, end=end, now=utc_now()
        )

    return {
        "room": room_summary(room),
        "days": [day_summary_to_dict(d) for d in days],
    }
