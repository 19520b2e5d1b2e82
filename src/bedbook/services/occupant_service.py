"""Occupant service - front desk actions on placed occupants.

Check-in, check-out (regular and early), cancellation, bed transfer, QR
scanning and direct placement by an admin. The caller manages the
transaction; every transition appends one occupant_logs row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import uuid4

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain import lifecycle
from bedbook.domain.availability import is_bed_available
from bedbook.domain.errors import InvalidTransitionError, NotFoundError
from bedbook.domain.models import (
    LIVE_OCCUPANT_STATUSES,
    Bed,
    Gender,
    Occupant,
    OccupantType,
    Placement,
    Room,
)
from bedbook.domain.placement import assign_direct, room_accepts
from bedbook.domain.scan import ScanResult, process_scan
from bedbook.infra.repositories import occupants_repository, rooms_repository
from bedbook.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DirectPlacement:
    room_id: str
    bed_id: str
    name: str
    identifier: str
    type: OccupantType
    gender: Gender
    in_date: date
    out_date: date | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None
    check_in_now: bool = False


def _get_locked(cur: PgCursor, occupant_id: str) -> Occupant:
    occupant = occupants_repository.get_occupant(cur, occupant_id, lock=True)
    if occupant is None:
        raise NotFoundError("Occupant", occupant_id)
    return occupant


def _log_transition(occupant: Occupant, action: str) -> None:
    logger.info(
        "occupant transition",
        extra={
            "extra_fields": {
                "action": action,
                "occupant_id": occupant.id,
                "booking_id": occupant.booking_id,
                "status": occupant.status.value if occupant.status else None,
            }
        },
    )


def check_in(cur: PgCursor, occupant_id: str, *, performed_by: str, now: datetime) -> Occupant:
    occupant = _get_locked(cur, occupant_id)
    entry = lifecycle.check_in(occupant, performed_by=performed_by, now=now)
    occupants_repository.save_occupant(cur, occupant)
    occupants_repository.append_log(cur, entry)
    _log_transition(occupant, "check_in")
    return occupant


def check_out(
    cur: PgCursor,
    occupant_id: str,
    *,
    performed_by: str,
    now: datetime,
    today: date,
    early_reason: str | None = None,
) -> Occupant:
    """Check an occupant out; ``early_reason`` allows leaving before the scheduled date.

    Raises:
        NotFoundError: Unknown occupant.
        InvalidTransitionError: Occupant is not checked in.
        PrematureActionError: Before the scheduled date without a reason.
    """
    occupant = _get_locked(cur, occupant_id)
    entry = lifecycle.check_out(
        occupant,
        performed_by=performed_by,
        now=now,
        today=today,
        early_reason=early_reason,
    )
    occupants_repository.save_occupant(cur, occupant)
    occupants_repository.append_log(cur, entry)
    _log_transition(occupant, entry.action.value)
    return occupant


def cancel(
    cur: PgCursor,
    occupant_id: str,
    reason: str | None,
    *,
    cancelled_by: str,
    now: datetime,
) -> Occupant:
    occupant = _get_locked(cur, occupant_id)
    entry = lifecycle.cancel_occupant(occupant, reason, cancelled_by=cancelled_by, now=now)
    occupants_repository.save_occupant(cur, occupant)
    occupants_repository.append_log(cur, entry)
    _log_transition(occupant, "cancel")
    return occupant


def scan(
    cur: PgCursor,
    text: str,
    *,
    performed_by: str,
    now: datetime,
    today: date,
) -> ScanResult:
    """Process a scanned QR code; persists the transition when one happened."""
    result = process_scan(
        text,
        lambda identifier: occupants_repository.find_occupant_by_scan(cur, identifier),
        performed_by=performed_by,
        now=now,
        today=today,
    )
    if result.changed:
        occupants_repository.save_occupant(cur, result.occupant)
        occupants_repository.append_log(cur, result.log_entry)
        _log_transition(result.occupant, result.outcome)
    return result


def place_directly(
    cur: PgCursor,
    request: DirectPlacement,
    *,
    performed_by: str,
    now: datetime,
) -> Occupant:
    """Place an occupant on a bed without a booking request.

    Raises:
        NotFoundError: Unknown room or bed.
        BookingValidationError: Bad dates, incompatible room or bed not free.
    """
    rooms = rooms_repository.load_rooms(
        cur,
        start=request.in_date,
        end=request.out_date or date.max,
        now=now,
        room_ids=[request.room_id],
    )
    if not rooms:
        raise NotFoundError("Room", request.room_id)

    occupant = Occupant(
        id=str(uuid4()),
        name=request.name.strip(),
        identifier=request.identifier.strip(),
        type=request.type,
        gender=request.gender,
        in_date=request.in_date,
        out_date=request.out_date,
        email=request.email,
        phone=request.phone,
        company=request.company,
        department=request.department,
    )
    entry = assign_direct(
        occupant,
        rooms[0],
        request.bed_id,
        performed_by=performed_by,
        now=now,
        check_in_now=request.check_in_now,
    )
    occupants_repository.insert_occupant(cur, occupant)
    occupants_repository.append_log(cur, entry)
    _log_transition(occupant, "direct_placement")
    return occupant


def transfer(
    cur: PgCursor,
    occupant_id: str,
    target: Placement,
    reason: str | None,
    *,
    performed_by: str,
    now: datetime,
    out_date: date | None = None,
) -> Occupant:
    """Move a scheduled or checked-in occupant to another bed.

    Raises:
        NotFoundError: Unknown occupant, room or bed.
        InvalidTransitionError: Occupant does not hold a bed.
        BookingValidationError: Missing reason, same bed, incompatible
            room or a target bed that is not free.
    """
    occupant = _get_locked(cur, occupant_id)
    stay_out = out_date or occupant.out_date
    rooms = rooms_repository.load_rooms(
        cur,
        start=occupant.in_date,
        end=stay_out or date.max,
        now=now,
        room_ids=[target.room_id],
    )
    entry = lifecycle.transfer(
        occupant,
        target,
        reason,
        rooms={room.id: room for room in rooms},
        performed_by=performed_by,
        now=now,
        out_date=out_date,
    )
    occupants_repository.save_occupant(cur, occupant)
    occupants_repository.append_log(cur, entry)
    _log_transition(occupant, "transfer")
    return occupant


def transfer_options(
    cur: PgCursor,
    occupant_id: str,
    *,
    now: datetime,
) -> list[tuple[Room, Bed]]:
    """Beds in the occupant's area that could take their whole stay.

    Rooms must accept the occupant's gender and type; the current bed,
    beds under maintenance and beds with a clashing stay are left out.
    Pending requests do not block, as with direct placement.

    Raises:
        NotFoundError: Unknown occupant.
        InvalidTransitionError: Occupant does not hold a bed.
    """
    occupant = occupants_repository.get_occupant(cur, occupant_id)
    if occupant is None:
        raise NotFoundError("Occupant", occupant_id)
    if occupant.status not in LIVE_OCCUPANT_STATUSES or occupant.placement is None:
        raise InvalidTransitionError(
            "transfer", occupant.status.value if occupant.status else "unplaced"
        )

    start = occupant.in_date
    end = occupant.out_date or date.max
    current = rooms_repository.load_rooms(
        cur, start=start, end=end, now=now, room_ids=[occupant.placement.room_id]
    )
    area_id = current[0].area_id if current else None
    rooms = rooms_repository.load_rooms(
        cur,
        start=start,
        end=end,
        now=now,
        area_id=area_id,
        building_id=None if area_id else occupant.placement.building_id,
    )

    options: list[tuple[Room, Bed]] = []
    for room in rooms:
        if not room_accepts(room, occupant.gender, occupant.type):
            continue
        for bed in room.beds:
            if bed.id == occupant.placement.bed_id:
                continue
            if is_bed_available(bed, start, end, include_pending=False):
                options.append((room, bed))
    return options
