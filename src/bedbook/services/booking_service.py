"""Booking service - create, approve, reject and cancel booking requests.

Each function loads what the lifecycle needs, runs the pure transition and
persists the result. The caller manages the transaction, so a raised error
rolls back everything the call wrote.

Rules:
- Creation checks requested beds against occupancy intervals only; other
  pending requests do not block a new request.
- Approval locks the booking and its occupants FOR UPDATE, then re-checks
  every placement against fresh occupancy intervals.
- Expired requests are read through lazily; ``get_booking`` persists the
  expiry when it notices one.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from uuid import uuid4

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain import lifecycle
from bedbook.domain.booking_request import (
    BookingDraft,
    booking_dates,
    compute_expires_at,
    validate_new_booking,
)
from bedbook.domain.errors import NotFoundError
from bedbook.domain.models import (
    Attachment,
    BookingRequest,
    Occupant,
    Placement,
    Requester,
    Room,
)
from bedbook.infra.repositories import (
    bookings_repository,
    occupants_repository,
    rooms_repository,
)
from bedbook.observability.logging import get_logger

logger = get_logger(__name__)


def create_booking(
    cur: PgCursor,
    draft: BookingDraft,
    *,
    requester: Requester,
    now: datetime,
    today: date,
    ttl: timedelta,
    tz: tzinfo,
) -> BookingRequest:
    """Validate and store a new booking request.

    Args:
        cur: Database cursor (within transaction).
        draft: Requester input.
        requester: Authenticated user making the request.
        now: Request timestamp.
        today: Current local date.
        ttl: How long the request waits for an admin.
        tz: Portal timezone, for the first check-in day boundary.

    Returns:
        The stored booking, status ``request``.

    Raises:
        BookingValidationError: If the draft breaks a booking rule.
        NotFoundError: If a requested bed does not exist.
    """
    rooms = rooms_repository.load_rooms(
        cur,
        start=draft.start,
        end=draft.end,
        now=now,
        bed_ids=[o.bed_id for o in draft.occupants],
    )
    validate_new_booking(draft, rooms_by_bed=rooms_repository.rooms_by_bed(rooms), today=today)

    booking_id = str(uuid4())
    occupants = []
    for item in draft.occupants:
        occupant_id = str(uuid4())
        occupants.append(
            Occupant(
                id=occupant_id,
                booking_id=booking_id,
                name=item.name.strip(),
                # Occupants without a NIK get a temporary identifier
                identifier=(item.identifier or "").strip() or f"TEMP-{occupant_id[:8]}",
                type=item.type,
                gender=item.gender,
                in_date=item.in_date,
                out_date=item.out_date,
                requested_bed_id=item.bed_id,
                email=item.email,
                phone=item.phone,
                company=item.company,
                department=item.department,
            )
        )

    first_in, last_out = booking_dates([(o.in_date, o.out_date) for o in occupants])
    booking = BookingRequest(
        id=booking_id,
        code=bookings_repository.next_booking_code(cur, today),
        requester=requester,
        occupants=occupants,
        requested_at=now,
        expires_at=compute_expires_at(now, first_in, ttl, tz),
        companion=draft.companion,
        purpose=draft.purpose,
        notes=draft.notes,
        attachments=[
            Attachment(
                id=str(uuid4()),
                file_name=a.file_name,
                file_url=a.file_url,
                file_type=a.file_type,
                file_size=a.file_size,
                description=a.description,
            )
            for a in draft.attachments
        ],
    )
    bookings_repository.insert_booking(
        cur, booking, check_in_date=first_in, check_out_date=last_out
    )

    logger.info(
        "booking request created",
        extra={
            "extra_fields": {
                "booking_id": booking.id,
                "booking_code": booking.code,
                "occupants": len(occupants),
                "expires_at": booking.expires_at.isoformat(),
            }
        },
    )
    return booking


def get_booking(cur: PgCursor, booking_id: str, *, now: datetime) -> BookingRequest:
    """Load a booking, persisting a lazy expiry if it is overdue.

    Raises:
        NotFoundError: If the booking does not exist.
    """
    booking = bookings_repository.get_booking(cur, booking_id)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    if lifecycle.expire(booking, now):
        bookings_repository.save_booking(cur, booking)
        logger.info(
            "booking request expired",
            extra={"extra_fields": {"booking_id": booking.id, "booking_code": booking.code}},
        )
    return booking


def _get_locked(cur: PgCursor, booking_id: str) -> BookingRequest:
    booking = bookings_repository.get_booking(cur, booking_id, lock=True)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


def approve_booking(
    cur: PgCursor,
    booking_id: str,
    placements: dict[str, Placement],
    *,
    approved_by: str,
    now: datetime,
    notes: str | None = None,
) -> BookingRequest:
    """Approve a request and place its occupants on beds.

    Args:
        cur: Database cursor (within transaction).
        booking_id: Booking to approve.
        placements: Admin-selected placement per occupant ID; occupants not
            listed fall back to their requested bed.
        approved_by: Approving admin's name.
        now: Action timestamp.
        notes: Optional admin notes.

    Raises:
        NotFoundError: Unknown booking, room or bed.
        InvalidTransitionError: Booking is no longer a request.
        BookingValidationError: Incomplete placement, missing companion,
            incompatible room or bed not free.
    """
    booking = _get_locked(cur, booking_id)

    for occupant_id in placements:
        if booking.find_occupant(occupant_id) is None:
            raise NotFoundError("Occupant", occupant_id)

    start = min(o.in_date for o in booking.occupants) if booking.occupants else now.date()
    end = max((o.out_date for o in booking.occupants if o.out_date), default=start + timedelta(days=1))

    # Occupants without an explicit placement fall back to their requested bed
    fallback_beds = [
        o.requested_bed_id for o in booking.occupants
        if o.id not in placements and o.placement is None and o.requested_bed_id
    ]
    room_ids = [p.room_id for p in placements.values() if p.room_id]
    rooms: list[Room] = []
    if room_ids:
        rooms += rooms_repository.load_rooms(cur, start=start, end=end, now=now, room_ids=room_ids)
    if fallback_beds:
        rooms += rooms_repository.load_rooms(cur, start=start, end=end, now=now, bed_ids=fallback_beds)

    effective = dict(placements)
    by_bed = rooms_repository.rooms_by_bed(rooms)
    for occupant in booking.occupants:
        room = by_bed.get(occupant.requested_bed_id) if occupant.requested_bed_id else None
        if occupant.id not in effective and occupant.placement is None and room is not None:
            effective[occupant.id] = Placement(
                building_id=room.building_id,
                room_id=room.id,
                bed_id=occupant.requested_bed_id,
            )

    entries = lifecycle.approve(
        booking,
        effective,
        rooms={room.id: room for room in rooms},
        approved_by=approved_by,
        now=now,
        notes=notes,
    )

    bookings_repository.save_booking(cur, booking)
    for occupant in booking.occupants:
        occupants_repository.save_occupant(cur, occupant)
    for entry in entries:
        occupants_repository.append_log(cur, entry)
    return booking


def reject_booking(
    cur: PgCursor,
    booking_id: str,
    reason: str | None,
    *,
    rejected_by: str,
    now: datetime,
    admin_notes: str | None = None,
) -> BookingRequest:
    booking = _get_locked(cur, booking_id)
    lifecycle.reject(booking, reason, rejected_by=rejected_by, now=now, admin_notes=admin_notes)
    bookings_repository.save_booking(cur, booking)
    logger.info(
        "booking rejected",
        extra={"extra_fields": {"booking_id": booking.id, "booking_code": booking.code}},
    )
    return booking


def cancel_booking(
    cur: PgCursor,
    booking_id: str,
    reason: str | None,
    *,
    cancelled_by: str,
    now: datetime,
) -> BookingRequest:
    booking = _get_locked(cur, booking_id)
    lifecycle.cancel(booking, reason, cancelled_by=cancelled_by, now=now)
    bookings_repository.save_booking(cur, booking)
    logger.info(
        "booking cancelled",
        extra={"extra_fields": {"booking_id": booking.id, "booking_code": booking.code}},
    )
    return booking

