"""Bed availability calculation.

Pure functions over in-memory rooms and beds. Nothing here reads the clock
or the database, so identical input always yields identical output.

Overlap formula:  interval.check_in < range_end AND
                  (interval.check_out IS NULL OR interval.check_out > range_start)
Strict inequality allows check-out day == check-in day (back-to-back turnover).
An interval without a check-out date blocks every day from its check-in on.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, timedelta

from bedbook.domain.models import (
    Bed,
    BedStatus,
    DayStatus,
    IntervalStatus,
    OccupancyInterval,
    PendingRequestInterval,
    Room,
)


def overlaps(
    check_in: date,
    check_out: date | None,
    start: date,
    end: date,
) -> bool:
    """Whether [check_in, check_out) shares at least one day with [start, end)."""
    if check_in >= end:
        return False
    return check_out is None or check_out > start


def covers(interval: OccupancyInterval | PendingRequestInterval, day: date) -> bool:
    """Whether ``day`` falls inside the interval (check-out day excluded)."""
    if day < interval.check_in:
        return False
    return interval.check_out is None or day < interval.check_out


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each day in [start, end)."""
    day = start
    while day < end:
        yield day
        day += timedelta(days=1)


def find_conflicts(
    bed: Bed,
    start: date,
    end: date,
    *,
    exclude_occupant_ids: frozenset[str] = frozenset(),
) -> list[OccupancyInterval]:
    """Occupancy intervals on ``bed`` that overlap [start, end), by check-in.

    Intervals held by ``exclude_occupant_ids`` are ignored, so an occupant
    being moved or re-placed never conflicts with their own stay.
    """
    return sorted(
        (
            occ for occ in bed.occupancies
            if occ.occupant_id not in exclude_occupant_ids
            and overlaps(occ.check_in, occ.check_out, start, end)
        ),
        key=lambda occ: occ.check_in,
    )


def pending_overlaps(bed: Bed, start: date, end: date) -> list[PendingRequestInterval]:
    """Pending booking requests on ``bed`` that overlap [start, end)."""
    return [
        req for req in bed.pending_requests
        if overlaps(req.check_in, req.check_out, start, end)
    ]


def is_bed_available(
    bed: Bed,
    start: date,
    end: date,
    *,
    include_pending: bool = True,
) -> bool:
    """Whether ``bed`` is free for every day of [start, end).

    Args:
        bed: Bed with its occupancy and pending-request intervals.
        start: First day of the stay (inclusive).
        end: Departure day (exclusive).
        include_pending: Treat unprocessed booking requests as blocking.

    Returns:
        False if the bed is under maintenance or any interval overlaps.
    """
    if bed.status == BedStatus.MAINTENANCE:
        return False
    if find_conflicts(bed, start, end):
        return False
    if include_pending and pending_overlaps(bed, start, end):
        return False
    return True


def available_beds(
    beds: Room | Iterable[Bed],
    start: date,
    end: date,
    *,
    include_pending: bool = True,
) -> list[Bed]:
    """Beds free for the entire range, in their original order."""
    if isinstance(beds, Room):
        beds = beds.beds
    return [
        bed for bed in beds
        if is_bed_available(bed, start, end, include_pending=include_pending)
    ]


def classify_bed_day(bed: Bed, day: date) -> DayStatus:
    """Classify one bed on one day.

    Priority: maintenance > occupied > reserved > pending > available. The
    first occupancy interval (by check-in) covering the day decides between
    occupied and reserved; pending requests are only consulted when no
    occupancy interval covers the day.
    """
    if bed.status == BedStatus.MAINTENANCE:
        return DayStatus.MAINTENANCE

    for occ in sorted(bed.occupancies, key=lambda o: o.check_in):
        if covers(occ, day):
            if occ.status == IntervalStatus.CHECKED_IN:
                return DayStatus.OCCUPIED
            return DayStatus.RESERVED

    for req in bed.pending_requests:
        if covers(req, day):
            return DayStatus.PENDING

    return DayStatus.AVAILABLE


# ── Room-level views ──────────────────────────────────────


@dataclass
class BedDay:
    bed_id: str
    bed_code: str
    status: DayStatus


@dataclass
class DaySummary:
    day: date
    beds: list[BedDay]
    counts: dict[DayStatus, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.beds)

    @property
    def available(self) -> int:
        return self.counts.get(DayStatus.AVAILABLE, 0)


def daily_timeline(room: Room, start: date, end: date) -> list[DaySummary]:
    """Per-day classification of every bed in ``room`` for [start, end)."""
    timeline: list[DaySummary] = []
    for day in iter_days(start, end):
        beds = [
            BedDay(bed_id=bed.id, bed_code=bed.code, status=classify_bed_day(bed, day))
            for bed in room.beds
        ]
        counts = {status: 0 for status in DayStatus}
        for bed_day in beds:
            counts[bed_day.status] += 1
        timeline.append(DaySummary(day=day, beds=beds, counts=counts))
    return timeline


@dataclass
class BedAvailability:
    bed: Bed
    is_available: bool
    has_pending_request: bool
    conflicts: list[OccupancyInterval]
    pending: list[PendingRequestInterval]


@dataclass
class RoomAvailability:
    room: Room
    beds: list[BedAvailability]

    @property
    def available_beds(self) -> int:
        return sum(1 for b in self.beds if b.is_available)


def room_availability(room: Room, start: date, end: date) -> RoomAvailability:
    """Whole-range availability of each bed in ``room``."""
    result: list[BedAvailability] = []
    for bed in sorted(room.beds, key=lambda b: b.position):
        conflicts = find_conflicts(bed, start, end)
        pending = pending_overlaps(bed, start, end)
        result.append(
            BedAvailability(
                bed=bed,
                is_available=is_bed_available(bed, start, end),
                has_pending_request=bool(pending),
                conflicts=conflicts,
                pending=pending,
            )
        )
    return RoomAvailability(room=room, beds=result)
