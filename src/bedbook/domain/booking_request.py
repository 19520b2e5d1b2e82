"""Booking request creation (guided flow).

Pure validation and derivation helpers. The service layer loads rooms and
beds for the requested dates, calls ``validate_new_booking`` and persists
the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo

from bedbook.domain.availability import overlaps
from bedbook.domain.errors import BookingValidationError, NotFoundError
from bedbook.domain.models import (
    Companion,
    Gender,
    OccupantType,
    Room,
)
from bedbook.domain.placement import check_bed_free, check_room_accepts

MAX_OCCUPANTS = 20
MIN_DAYS_AHEAD = 1
MAX_DURATION_DAYS = 90
BOOKING_CODE_PREFIX = "BK"


@dataclass
class OccupantDraft:
    bed_id: str
    name: str
    identifier: str | None
    type: OccupantType
    gender: Gender
    in_date: date
    out_date: date
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None


@dataclass
class AttachmentDraft:
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    description: str | None = None


@dataclass
class BookingDraft:
    start: date
    end: date
    occupants: list[OccupantDraft]
    companion: Companion | None = None
    purpose: str | None = None
    notes: str | None = None
    attachments: list[AttachmentDraft] = field(default_factory=list)


def validate_search_range(start: date, end: date, *, today: date) -> None:
    """Date rules shared by room search and booking creation."""
    if end <= start:
        raise BookingValidationError(
            "Check-out date must be after check-in date", field="end"
        )
    if start < today + timedelta(days=MIN_DAYS_AHEAD):
        raise BookingValidationError(
            "Check-in date must be tomorrow or later", field="start"
        )
    if (end - start).days > MAX_DURATION_DAYS:
        raise BookingValidationError(
            f"Stay cannot exceed {MAX_DURATION_DAYS} days", field="end"
        )


def validate_new_booking(
    draft: BookingDraft,
    *,
    rooms_by_bed: dict[str, Room],
    today: date,
) -> None:
    """Validate a booking draft against the rooms it asks for.

    Args:
        draft: Requester input.
        rooms_by_bed: Room owning each requested bed, with occupancy
            intervals loaded for the draft's range.
        today: Current local date.

    Raises:
        BookingValidationError: On the first violated rule.
        NotFoundError: If a requested bed is unknown.
    """
    if not draft.occupants:
        raise BookingValidationError("At least one occupant is required", field="occupants")
    if len(draft.occupants) > MAX_OCCUPANTS:
        raise BookingValidationError(
            f"At most {MAX_OCCUPANTS} occupants per booking", field="occupants"
        )

    validate_search_range(draft.start, draft.end, today=today)

    has_guest = any(o.type == OccupantType.GUEST for o in draft.occupants)
    if has_guest and (draft.companion is None or not draft.companion.is_complete):
        raise BookingValidationError(
            "A companion (NIK and name) is required when guests are included",
            field="companion",
        )

    for occupant in draft.occupants:
        if not occupant.name or not occupant.name.strip():
            raise BookingValidationError("Occupant name is required", field="name")
        if occupant.out_date <= occupant.in_date:
            raise BookingValidationError(
                f"Check-out of {occupant.name} must be after check-in", field="out_date"
            )
        if occupant.in_date < draft.start or occupant.out_date > draft.end:
            raise BookingValidationError(
                f"Dates of {occupant.name} must fall within the booking range",
                field="occupants",
            )

        room = rooms_by_bed.get(occupant.bed_id)
        bed = room.find_bed(occupant.bed_id) if room is not None else None
        if room is None or bed is None:
            raise NotFoundError("Bed", occupant.bed_id)
        check_room_accepts(room, occupant.gender, occupant.type)
        check_bed_free(bed, occupant.in_date, occupant.out_date)

    for i, first in enumerate(draft.occupants):
        for second in draft.occupants[i + 1:]:
            if first.bed_id == second.bed_id and overlaps(
                first.in_date, first.out_date, second.in_date, second.out_date
            ):
                raise BookingValidationError(
                    f"{first.name} and {second.name} request the same bed for overlapping dates",
                    field="occupants",
                )


def booking_code(day: date, sequence: int) -> str:
    """Human-facing booking code, e.g. ``BK-20240115-003``."""
    return f"{BOOKING_CODE_PREFIX}-{day.strftime('%Y%m%d')}-{sequence:03d}"


def booking_code_prefix(day: date) -> str:
    return f"{BOOKING_CODE_PREFIX}-{day.strftime('%Y%m%d')}-"


def booking_dates(stays: list[tuple[date, date | None]]) -> tuple[date | None, date | None]:
    """Earliest check-in and latest check-out across occupant stays."""
    if not stays:
        return None, None
    check_ins = [s[0] for s in stays]
    check_outs = [s[1] for s in stays if s[1] is not None]
    return min(check_ins), (max(check_outs) if check_outs else None)


def compute_expires_at(
    requested_at: datetime,
    first_check_in: date,
    ttl: timedelta,
    tz: tzinfo,
) -> datetime:
    """A request expires after ``ttl`` or when its first stay begins, whichever is first."""
    starts_at = datetime.combine(first_check_in, time.min, tzinfo=tz)
    return min(requested_at + ttl, starts_at)
