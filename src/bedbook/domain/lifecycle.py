"""Booking lifecycle state machine.

Booking request:  request -> approved | rejected | cancelled | expired
Occupant:         scheduled -> checked_in -> checked_out
                  scheduled | checked_in -> cancelled
                  scheduled | checked_in -> same status on another bed (transfer)

Every transition validates all of its guards first and only then mutates,
so a raised error leaves the booking and its occupants untouched. Expiry is
evaluated lazily from ``expires_at``; there is no background sweeper.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from bedbook.domain.availability import overlaps
from bedbook.domain.errors import (
    BookingValidationError,
    InvalidTransitionError,
    PrematureActionError,
)
from bedbook.domain.models import (
    LIVE_OCCUPANT_STATUSES,
    BookingRequest,
    BookingStatus,
    Occupant,
    OccupantLogAction,
    OccupantLogEntry,
    OccupantStatus,
    Placement,
    Room,
)
from bedbook.domain.placement import check_bed_free, check_room_accepts, resolve_placement

logger = logging.getLogger(__name__)


def _require_reason(reason: str | None, message: str) -> str:
    if reason is None or not reason.strip():
        raise BookingValidationError(message, field="reason")
    return reason.strip()


# ── Booking request ───────────────────────────────────────


def effective_status(booking: BookingRequest, now: datetime) -> BookingStatus:
    """Status as seen at ``now``: an untouched request past expiry reads as expired."""
    if booking.status == BookingStatus.REQUEST and now >= booking.expires_at:
        return BookingStatus.EXPIRED
    return booking.status


def _require_request(booking: BookingRequest, action: str, now: datetime) -> None:
    status = effective_status(booking, now)
    if status != BookingStatus.REQUEST:
        raise InvalidTransitionError(action, status.value)


def expire(booking: BookingRequest, now: datetime) -> bool:
    """Persistable form of the lazy expiry. Returns True if the status changed."""
    if booking.status == BookingStatus.REQUEST and now >= booking.expires_at:
        booking.status = BookingStatus.EXPIRED
        return True
    return False


def approve(
    booking: BookingRequest,
    placements: dict[str, Placement],
    *,
    rooms: dict[str, Room],
    approved_by: str,
    now: datetime,
    notes: str | None = None,
) -> list[OccupantLogEntry]:
    """Approve a booking request and place every occupant.

    Args:
        booking: Booking in ``request`` status.
        placements: Admin-selected placement per occupant ID. Occupants
            missing from the mapping keep any placement they already carry.
        rooms: Rooms referenced by the placements, with beds and intervals
            loaded for the booking's dates.
        approved_by: Name of the approving admin.
        now: Action timestamp.
        notes: Optional admin notes.

    Returns:
        One ``created`` log entry per occupant.

    Raises:
        InvalidTransitionError: If the booking is not (or no longer) a request.
        BookingValidationError: On incomplete placement, missing companion,
            incompatible room or a bed that is not free.
        NotFoundError: If a placement names an unknown room or bed.
    """
    _require_request(booking, "approve", now)

    if not booking.occupants:
        raise BookingValidationError("Booking has no occupants", field="occupants")
    if booking.has_guest and (booking.companion is None or not booking.companion.is_complete):
        raise BookingValidationError(
            "A companion (NIK and name) is required when guests are included",
            field="companion",
        )

    resolved: list[tuple[Occupant, Placement]] = []
    for occupant in booking.occupants:
        placement = placements.get(occupant.id, occupant.placement)
        if placement is None or not placement.is_complete:
            raise BookingValidationError(
                f"Occupant {occupant.name} has no complete placement (building, room, bed)",
                field="placements",
            )
        room, bed = resolve_placement(placement, rooms)
        check_room_accepts(room, occupant.gender, occupant.type)
        check_bed_free(bed, occupant.in_date, occupant.out_date)
        resolved.append((occupant, placement))

    # Occupants of the same booking must not collide on one bed either
    for i, (first, first_placement) in enumerate(resolved):
        for second, second_placement in resolved[i + 1:]:
            if first_placement.bed_id != second_placement.bed_id:
                continue
            if overlaps(first.in_date, first.out_date, second.in_date, second.out_date or date.max):
                raise BookingValidationError(
                    f"Occupants {first.name} and {second.name} overlap on the same bed",
                    field="placements",
                )

    booking.status = BookingStatus.APPROVED
    booking.approved_at = now
    booking.approved_by = approved_by
    if notes:
        booking.admin_notes = notes

    entries: list[OccupantLogEntry] = []
    for occupant, placement in resolved:
        occupant.placement = placement
        occupant.status = OccupantStatus.SCHEDULED
        entries.append(
            OccupantLogEntry(
                occupant_id=occupant.id,
                action=OccupantLogAction.CREATED,
                performed_by=approved_by,
                performed_at=now,
                bed_id=placement.bed_id,
            )
        )

    logger.info(
        "booking approved",
        extra={
            "extra_fields": {
                "booking_id": booking.id,
                "booking_code": booking.code,
                "occupants": len(entries),
            }
        },
    )
    return entries


def reject(
    booking: BookingRequest,
    reason: str | None,
    *,
    rejected_by: str,
    now: datetime,
    admin_notes: str | None = None,
) -> None:
    """Reject a booking request. A non-blank reason is required."""
    cleaned = _require_reason(reason, "Reject reason is required")
    _require_request(booking, "reject", now)

    booking.status = BookingStatus.REJECTED
    booking.rejected_at = now
    booking.rejected_by = rejected_by
    booking.reject_reason = cleaned
    if admin_notes:
        booking.admin_notes = admin_notes


def cancel(
    booking: BookingRequest,
    reason: str | None,
    *,
    cancelled_by: str,
    now: datetime,
) -> None:
    """Requester cancels a booking before it is processed."""
    cleaned = _require_reason(reason, "Cancellation reason is required")
    _require_request(booking, "cancel", now)

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now
    booking.cancelled_by = cancelled_by
    booking.cancel_reason = cleaned


# ── Occupant ──────────────────────────────────────────────


def check_in(occupant: Occupant, *, performed_by: str, now: datetime) -> OccupantLogEntry:
    """scheduled -> checked_in. Allowed at any time."""
    if occupant.status != OccupantStatus.SCHEDULED:
        raise InvalidTransitionError("check in", _status_label(occupant))

    occupant.status = OccupantStatus.CHECKED_IN
    occupant.actual_check_in_at = now
    return OccupantLogEntry(
        occupant_id=occupant.id,
        action=OccupantLogAction.CHECKED_IN,
        performed_by=performed_by,
        performed_at=now,
        bed_id=occupant.placement.bed_id if occupant.placement else None,
    )


def check_out(
    occupant: Occupant,
    *,
    performed_by: str,
    now: datetime,
    today: date,
    early_reason: str | None = None,
) -> OccupantLogEntry:
    """checked_in -> checked_out.

    Checking out before the scheduled ``out_date`` is refused with the
    scheduled date, whichever path asks for it. An explicit early checkout
    passes ``early_reason``: the stay is then shortened to ``today`` and the
    original date is kept. Open-ended stays may check out at any time.

    Raises:
        InvalidTransitionError: If the occupant is not checked in.
        PrematureActionError: If ``today`` is before ``out_date`` and no
            early-checkout reason was given.
    """
    if occupant.status != OccupantStatus.CHECKED_IN:
        raise InvalidTransitionError("check out", _status_label(occupant))

    early = occupant.out_date is not None and today < occupant.out_date
    cleaned_reason = early_reason.strip() if early_reason and early_reason.strip() else None
    if early and cleaned_reason is None:
        raise PrematureActionError("check out", occupant.out_date)

    previous_out = occupant.out_date
    occupant.status = OccupantStatus.CHECKED_OUT
    occupant.actual_check_out_at = now
    action = OccupantLogAction.CHECKED_OUT
    if early:
        occupant.original_out_date = previous_out
        # out_date must stay after in_date even for a same-day departure
        occupant.out_date = max(today, occupant.in_date + timedelta(days=1))
        occupant.checkout_reason = cleaned_reason
        action = OccupantLogAction.EARLY_CHECKOUT
    elif cleaned_reason:
        occupant.checkout_reason = cleaned_reason

    return OccupantLogEntry(
        occupant_id=occupant.id,
        action=action,
        performed_by=performed_by,
        performed_at=now,
        bed_id=occupant.placement.bed_id if occupant.placement else None,
        reason=cleaned_reason,
        previous_out_date=previous_out if early else None,
        new_out_date=occupant.out_date if early else None,
    )


def cancel_occupant(
    occupant: Occupant,
    reason: str | None,
    *,
    cancelled_by: str,
    now: datetime,
) -> OccupantLogEntry:
    """scheduled | checked_in -> cancelled."""
    cleaned = _require_reason(reason, "Cancellation reason is required")
    if occupant.status not in (OccupantStatus.SCHEDULED, OccupantStatus.CHECKED_IN):
        raise InvalidTransitionError("cancel", _status_label(occupant))

    occupant.status = OccupantStatus.CANCELLED
    occupant.cancelled_at = now
    occupant.cancelled_by = cancelled_by
    occupant.cancel_reason = cleaned
    return OccupantLogEntry(
        occupant_id=occupant.id,
        action=OccupantLogAction.CANCELLED,
        performed_by=cancelled_by,
        performed_at=now,
        bed_id=occupant.placement.bed_id if occupant.placement else None,
        reason=cleaned,
    )


def transfer(
    occupant: Occupant,
    target: Placement,
    reason: str | None,
    *,
    rooms: dict[str, Room],
    performed_by: str,
    now: datetime,
    out_date: date | None = None,
) -> OccupantLogEntry:
    """Move a scheduled or checked-in occupant to another bed.

    The occupant keeps its status and its whole stay moves with it, so the
    target bed must be free for [in_date, out_date) under the same rules as
    approval. ``out_date`` optionally replaces the scheduled departure at
    the same time.

    Raises:
        InvalidTransitionError: If the occupant does not hold a bed.
        BookingValidationError: Missing reason, same bed, bad out_date,
            incompatible room or a target bed that is not free.
        NotFoundError: If the target names an unknown room or bed.
    """
    cleaned = _require_reason(reason, "Transfer reason is required")
    if occupant.status not in LIVE_OCCUPANT_STATUSES or occupant.placement is None:
        raise InvalidTransitionError("transfer", _status_label(occupant))
    if not target.is_complete:
        raise BookingValidationError(
            "Target placement needs building, room and bed", field="bed_id"
        )
    if target.bed_id == occupant.placement.bed_id:
        raise BookingValidationError("Occupant already holds this bed", field="bed_id")

    new_out = out_date if out_date is not None else occupant.out_date
    if new_out is not None and new_out <= occupant.in_date:
        raise BookingValidationError(
            "Check-out date must be after check-in date", field="out_date"
        )

    room, bed = resolve_placement(target, rooms)
    check_room_accepts(room, occupant.gender, occupant.type)
    check_bed_free(
        bed, occupant.in_date, new_out, exclude_occupant_ids=frozenset({occupant.id})
    )

    from_bed_id = occupant.placement.bed_id
    previous_out = occupant.out_date
    occupant.placement = Placement(building_id=room.building_id, room_id=room.id, bed_id=bed.id)
    occupant.out_date = new_out

    logger.info(
        "occupant transferred",
        extra={
            "extra_fields": {
                "occupant_id": occupant.id,
                "from_bed_id": from_bed_id,
                "to_bed_id": bed.id,
            }
        },
    )
    date_changed = new_out != previous_out
    return OccupantLogEntry(
        occupant_id=occupant.id,
        action=OccupantLogAction.TRANSFERRED,
        performed_by=performed_by,
        performed_at=now,
        bed_id=bed.id,
        from_bed_id=from_bed_id,
        reason=cleaned,
        previous_out_date=previous_out if date_changed else None,
        new_out_date=new_out if date_changed else None,
    )


def _status_label(occupant: Occupant) -> str:
    # Occupants of unapproved bookings have no status yet
    return occupant.status.value if occupant.status is not None else "unplaced"
