"""Admin dashboard endpoints."""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from bedbook.api.auth import CurrentUser
from bedbook.api.rbac import require_role
from bedbook.domain.availability import daily_timeline
from bedbook.domain.models import DayStatus
from bedbook.infra.repositories import bookings_repository, occupants_repository, rooms_repository
from bedbook.infra.time import local_today, utc_now
from bedbook.observability.logging import get_logger

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

logger = get_logger(__name__)


def _building_occupancy(cur, day: date, now) -> list[dict]:
    """Bed status counts per building for one day."""
    rooms = rooms_repository.load_rooms(cur, start=day, end=day + timedelta(days=1), now=now)
    buildings: dict[str, dict] = {}
    for room in rooms:
        entry = buildings.setdefault(
            room.building_id,
            {
                "building_id": room.building_id,
                "building_name": room.building_name,
                "total_beds": 0,
                **{status.value: 0 for status in DayStatus},
            },
        )
        for summary in daily_timeline(room, day, day + timedelta(days=1)):
            entry["total_beds"] += summary.total
            for status, count in summary.counts.items():
                entry[status.value] += count
    return list(buildings.values())


def _get_dashboard_summary(target_date: date) -> dict:
    """Counts for the admin dashboard (no PII)."""
    from bedbook.infra.db import txn

    now = utc_now()
    with txn(readonly=True) as cur:
        pending = bookings_repository.count_pending(cur, now=now)
        movements = occupants_repository.daily_movements(cur, day=target_date)
        stats = occupants_repository.occupant_stats(cur)
        buildings = _building_occupancy(cur, target_date, now)

    return {
        "date": target_date.isoformat(),
        "pending_requests": pending,
        "arrivals_count": movements["arrivals"],
        "departures_count": movements["departures"],
        "in_house_count": movements["in_house"],
        "overdue_count": movements["overdue"],
        "occupants": stats,
        "buildings": buildings,
    }


@router.get("/summary")
def get_summary(
    target_date: date | None = Query(None, description="Date (YYYY-MM-DD), defaults to today"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Dashboard widgets for one day.

    - pending_requests: requests awaiting approval
    - arrivals/departures/in_house/overdue: front desk movements
    - occupants: placed occupants per status
    - buildings: per-building bed status counts for the day
    """
    return _get_dashboard_summary(target_date or local_today())
