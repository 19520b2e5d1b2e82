"""Availability service - room search and room timelines.

Loads rooms through rooms_repository and runs the pure availability
calculator over them. The caller manages the transaction.
"""

from __future__ import annotations

from datetime import date, datetime

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain.availability import (
    DaySummary,
    RoomAvailability,
    daily_timeline,
    room_availability,
)
from bedbook.domain.booking_request import MAX_DURATION_DAYS, validate_search_range
from bedbook.domain.errors import BookingValidationError, NotFoundError
from bedbook.domain.models import AllocationPolicy, Gender, GenderPolicy, OccupantType, Room
from bedbook.domain.placement import room_accepts
from bedbook.infra.repositories import rooms_repository


def search_rooms(
    cur: PgCursor,
    *,
    start: date,
    end: date,
    today: date,
    now: datetime,
    area_id: str | None = None,
    building_id: str | None = None,
    gender_policy: GenderPolicy | None = None,
    allocation_policy: AllocationPolicy | None = None,
    gender: Gender | None = None,
    occupant_type: OccupantType | None = None,
    include_full: bool = False,
) -> list[RoomAvailability]:
    """Rooms with bed availability for a requested stay.

    Args:
        cur: Database cursor.
        start: Check-in date, at least tomorrow.
        end: Check-out date, at most 90 days after ``start``.
        today: Current local date.
        now: Current timestamp (skips expired pending requests).
        area_id, building_id, gender_policy, allocation_policy: Room filters.
        gender, occupant_type: Only rooms that may host this occupant.
        include_full: Keep rooms without any available bed.

    Raises:
        BookingValidationError: If the range breaks the booking date rules.
    """
    validate_search_range(start, end, today=today)

    rooms = rooms_repository.load_rooms(
        cur,
        start=start,
        end=end,
        now=now,
        area_id=area_id,
        building_id=building_id,
        gender_policy=gender_policy,
        allocation_policy=allocation_policy,
    )
    if gender is not None or occupant_type is not None:
        rooms = [room for room in rooms if _can_host(room, gender, occupant_type)]

    results = [room_availability(room, start, end) for room in rooms]
    if not include_full:
        results = [r for r in results if r.available_beds > 0]
    return results


def _can_host(room: Room, gender: Gender | None, occupant_type: OccupantType | None) -> bool:
    genders = [gender] if gender is not None else list(Gender)
    types = [occupant_type] if occupant_type is not None else list(OccupantType)
    return any(room_accepts(room, g, t) for g in genders for t in types)


def room_timeline(
    cur: PgCursor,
    room_id: str,
    *,
    start: date,
    end: date,
    now: datetime,
) -> tuple[Room, list[DaySummary]]:
    """Per-day bed classification of one room for [start, end).

    Unlike search, past days are allowed so admins can review history.

    Raises:
        BookingValidationError: If end <= start or the range is too long.
        NotFoundError: If the room does not exist or is inactive.
    """
    if end <= start:
        raise BookingValidationError("end must be after start", field="end")
    if (end - start).days > MAX_DURATION_DAYS:
        raise BookingValidationError(
            f"Date range cannot exceed {MAX_DURATION_DAYS} days", field="end"
        )

    rooms = rooms_repository.load_rooms(
        cur, start=start, end=end, now=now, room_ids=[room_id]
    )
    if not rooms:
        raise NotFoundError("Room", room_id)
    room = rooms[0]
    return room, daily_timeline(room, start, end)
