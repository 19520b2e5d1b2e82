"""Placement rules: which occupant may sleep in which bed.

Shared by booking creation, approval and direct placement by an admin.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from bedbook.domain.availability import find_conflicts
from bedbook.domain.errors import BookingValidationError, NotFoundError
from bedbook.domain.models import (
    AllocationPolicy,
    Bed,
    BedStatus,
    Gender,
    GenderPolicy,
    Occupant,
    OccupantLogAction,
    OccupantLogEntry,
    OccupantStatus,
    OccupantType,
    Placement,
    Room,
)

logger = logging.getLogger(__name__)


def check_room_accepts(room: Room, gender: Gender, occupant_type: OccupantType) -> None:
    """Raise BookingValidationError if ``room`` cannot host this occupant.

    Mixed and flexible rooms take either gender. Guests are barred from
    employee-only rooms.
    """
    if room.gender_policy == GenderPolicy.MALE_ONLY and gender != Gender.MALE:
        raise BookingValidationError(
            f"Room {room.code} is for male occupants only", field="gender"
        )
    if room.gender_policy == GenderPolicy.FEMALE_ONLY and gender != Gender.FEMALE:
        raise BookingValidationError(
            f"Room {room.code} is for female occupants only", field="gender"
        )
    if (
        room.allocation_policy == AllocationPolicy.EMPLOYEE_ONLY
        and occupant_type == OccupantType.GUEST
    ):
        raise BookingValidationError(
            f"Room {room.code} is reserved for employees", field="type"
        )


def room_accepts(room: Room, gender: Gender, occupant_type: OccupantType) -> bool:
    try:
        check_room_accepts(room, gender, occupant_type)
    except BookingValidationError:
        return False
    return True


def check_bed_free(
    bed: Bed,
    in_date: date,
    out_date: date | None,
    *,
    exclude_occupant_ids: frozenset[str] = frozenset(),
) -> None:
    """Raise BookingValidationError if ``bed`` is not free for the stay."""
    if bed.status == BedStatus.MAINTENANCE:
        raise BookingValidationError(
            f"Bed {bed.code} is under maintenance", field="bed_id"
        )
    end = out_date if out_date is not None else date.max
    conflicts = find_conflicts(bed, in_date, end, exclude_occupant_ids=exclude_occupant_ids)
    if conflicts:
        first = conflicts[0]
        logger.warning(
            "bed conflict detected",
            extra={
                "extra_fields": {
                    "bed_id": bed.id,
                    "requested_in": in_date.isoformat(),
                    "requested_out": out_date.isoformat() if out_date else None,
                    "existing_in": first.check_in.isoformat(),
                    "existing_out": first.check_out.isoformat() if first.check_out else None,
                },
            },
        )
        raise BookingValidationError(
            f"Bed {bed.code} is already taken for the selected dates", field="bed_id"
        )


def resolve_placement(
    placement: Placement,
    rooms: dict[str, Room],
) -> tuple[Room, Bed]:
    """Look up the room and bed a placement points at and check they match."""
    room = rooms.get(placement.room_id)
    if room is None:
        raise NotFoundError("Room", placement.room_id)
    if room.building_id != placement.building_id:
        raise BookingValidationError(
            f"Room {room.code} does not belong to building {placement.building_id}",
            field="building_id",
        )
    bed = room.find_bed(placement.bed_id)
    if bed is None:
        raise NotFoundError("Bed", placement.bed_id)
    return room, bed


def assign_direct(
    occupant: Occupant,
    room: Room,
    bed_id: str,
    *,
    performed_by: str,
    now: datetime,
    check_in_now: bool = False,
) -> OccupantLogEntry:
    """Place an occupant on a bed without a booking request.

    Open-ended stays (``out_date is None``) are allowed here. With
    ``check_in_now`` the occupant starts out checked in.

    Raises:
        NotFoundError: If the bed is not in ``room``.
        BookingValidationError: On dates, policy or bed conflicts.
    """
    bed = room.find_bed(bed_id)
    if bed is None:
        raise NotFoundError("Bed", bed_id)
    if occupant.out_date is not None and occupant.out_date <= occupant.in_date:
        raise BookingValidationError(
            "Check-out date must be after check-in date", field="out_date"
        )
    check_room_accepts(room, occupant.gender, occupant.type)
    check_bed_free(bed, occupant.in_date, occupant.out_date)

    occupant.placement = Placement(
        building_id=room.building_id, room_id=room.id, bed_id=bed.id
    )
    if check_in_now:
        occupant.status = OccupantStatus.CHECKED_IN
        occupant.actual_check_in_at = now
        action = OccupantLogAction.CHECKED_IN
        reason = "Direct check-in by admin"
    else:
        occupant.status = OccupantStatus.SCHEDULED
        action = OccupantLogAction.CREATED
        reason = "Direct placement by admin"

    return OccupantLogEntry(
        occupant_id=occupant.id,
        action=action,
        performed_by=performed_by,
        performed_at=now,
        bed_id=bed.id,
        reason=reason,
    )
