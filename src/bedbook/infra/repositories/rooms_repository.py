"""Rooms repository - rooms, beds and their commitments for a date range.

Uses raw SQL with psycopg2 (no ORM).

A loaded ``Room`` carries every bed with two kinds of commitments that
overlap [start, end):

- occupancy intervals: placed occupants in ``scheduled`` or ``checked_in``
  status (``reserved`` / ``checked_in`` intervals)
- pending-request intervals: requested beds of bookings still in
  ``request`` status and not yet past ``expires_at``
"""

from __future__ import annotations

from datetime import date, datetime

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain.models import (
    AllocationPolicy,
    Bed,
    BedStatus,
    GenderPolicy,
    IntervalStatus,
    OccupancyInterval,
    PendingRequestInterval,
    Room,
)
from bedbook.infra.db import fetchone, for_update


def load_rooms(
    cur: PgCursor,
    *,
    start: date,
    end: date,
    now: datetime,
    room_ids: list[str] | None = None,
    bed_ids: list[str] | None = None,
    area_id: str | None = None,
    building_id: str | None = None,
    gender_policy: GenderPolicy | None = None,
    allocation_policy: AllocationPolicy | None = None,
) -> list[Room]:
    """Load active rooms with beds and commitments overlapping [start, end).

    Args:
        cur: Database cursor.
        start: First night of the range.
        end: Exclusive end of the range.
        now: Current timestamp, used to skip expired requests.
        room_ids: Only these rooms.
        bed_ids: Only rooms owning any of these beds (all their beds load).
        area_id: Only rooms in buildings of this area.
        building_id: Only rooms in this building.
        gender_policy: Only rooms with this policy.
        allocation_policy: Only rooms with this policy.

    Returns:
        Rooms ordered by building name, floor and code.
    """
    conditions = ["r.is_active", "b.is_active"]
    params: list = []

    if room_ids is not None:
        conditions.append("r.id = ANY(%s::uuid[])")
        params.append(list(room_ids))
    if bed_ids is not None:
        conditions.append("r.id IN (SELECT room_id FROM beds WHERE id = ANY(%s::uuid[]))")
        params.append(list(bed_ids))
    if area_id:
        conditions.append("b.area_id = %s")
        params.append(area_id)
    if building_id:
        conditions.append("r.building_id = %s")
        params.append(building_id)
    if gender_policy is not None:
        conditions.append("r.gender_policy = %s")
        params.append(gender_policy.value)
    if allocation_policy is not None:
        conditions.append("r.allocation_policy = %s")
        params.append(allocation_policy.value)

    cur.execute(
        f"""
        SELECT r.id, r.building_id, r.code, r.name, r.gender_policy,
               r.allocation_policy, r.floor, b.name, b.area_id
        FROM rooms r
        JOIN buildings b ON b.id = r.building_id
        WHERE {" AND ".join(conditions)}
        ORDER BY b.name, r.floor, r.code
        """,
        params,
    )
    rooms = [
        Room(
            id=str(row[0]),
            building_id=str(row[1]),
            code=row[2],
            name=row[3],
            gender_policy=GenderPolicy(row[4]),
            allocation_policy=AllocationPolicy(row[5]),
            floor=row[6],
            building_name=row[7],
            area_id=str(row[8]) if row[8] else None,
        )
        for row in cur.fetchall()
    ]
    if not rooms:
        return rooms

    by_id = {room.id: room for room in rooms}
    beds = _load_beds(cur, list(by_id))
    for bed in beds:
        by_id[bed.room_id].beds.append(bed)

    _attach_commitments(cur, {bed.id: bed for bed in beds}, start=start, end=end, now=now)
    return rooms


def _load_beds(cur: PgCursor, room_ids: list[str]) -> list[Bed]:
    cur.execute(
        """
        SELECT id, room_id, code, label, position, status
        FROM beds
        WHERE room_id = ANY(%s::uuid[])
        ORDER BY position, code
        """,
        (room_ids,),
    )
    return [
        Bed(
            id=str(row[0]),
            room_id=str(row[1]),
            code=row[2],
            label=row[3],
            position=row[4],
            status=BedStatus(row[5]),
        )
        for row in cur.fetchall()
    ]


def _attach_commitments(
    cur: PgCursor,
    beds: dict[str, Bed],
    *,
    start: date,
    end: date,
    now: datetime,
) -> None:
    if not beds:
        return
    bed_ids = list(beds)

    cur.execute(
        """
        SELECT bed_id, in_date, out_date, status, id, name
        FROM occupants
        WHERE bed_id = ANY(%s::uuid[])
          AND status IN ('scheduled', 'checked_in')
          AND in_date < %s
          AND (out_date IS NULL OR out_date > %s)
        ORDER BY in_date
        """,
        (bed_ids, end, start),
    )
    for bed_id, in_date, out_date, status, occupant_id, name in cur.fetchall():
        beds[str(bed_id)].occupancies.append(
            OccupancyInterval(
                check_in=in_date,
                check_out=out_date,
                status=(
                    IntervalStatus.CHECKED_IN
                    if status == "checked_in"
                    else IntervalStatus.RESERVED
                ),
                occupant_id=str(occupant_id),
                occupant_name=name,
            )
        )

    cur.execute(
        """
        SELECT o.requested_bed_id, o.in_date, o.out_date, bk.id, bk.code
        FROM occupants o
        JOIN bookings bk ON bk.id = o.booking_id
        WHERE o.requested_bed_id = ANY(%s::uuid[])
          AND bk.status = 'request'
          AND bk.expires_at > %s
          AND o.in_date < %s
          AND o.out_date > %s
        ORDER BY o.in_date
        """,
        (bed_ids, now, end, start),
    )
    for bed_id, in_date, out_date, booking_id, code in cur.fetchall():
        beds[str(bed_id)].pending_requests.append(
            PendingRequestInterval(
                check_in=in_date,
                check_out=out_date,
                booking_id=str(booking_id),
                booking_code=code,
            )
        )


def rooms_by_bed(rooms: list[Room]) -> dict[str, Room]:
    """Index loaded rooms by the IDs of their beds."""
    return {bed.id: room for room in rooms for bed in room.beds}


def bed_locations(cur: PgCursor, bed_ids: list[str]) -> dict[str, str]:
    """Location label ("Building - Room - Bed") per bed ID."""
    if not bed_ids:
        return {}
    cur.execute(
        """
        SELECT bed.id, b.name, r.code, bed.code
        FROM beds bed
        JOIN rooms r ON r.id = bed.room_id
        JOIN buildings b ON b.id = r.building_id
        WHERE bed.id = ANY(%s::uuid[])
        """,
        (list(bed_ids),),
    )
    return {str(row[0]): f"{row[1]} - {row[2]} - {row[3]}" for row in cur.fetchall()}


def get_bed(cur: PgCursor, bed_id: str, *, lock: bool = False) -> Bed | None:
    """Fetch one bed without its commitments, optionally locking the row."""
    query = "SELECT id, room_id, code, label, position, status FROM beds WHERE id = %s"
    row = for_update(cur, query, (bed_id,)) if lock else fetchone(cur, query, (bed_id,))
    if row is None:
        return None
    return Bed(
        id=str(row[0]),
        room_id=str(row[1]),
        code=row[2],
        label=row[3],
        position=row[4],
        status=BedStatus(row[5]),
    )


def current_holder(cur: PgCursor, bed_id: str, *, today: date) -> str | None:
    """Name of the first occupant whose live stay on the bed is not over by ``today``."""
    row = fetchone(
        cur,
        """
        SELECT name FROM occupants
        WHERE bed_id = %s
          AND status IN ('scheduled', 'checked_in')
          AND (out_date IS NULL OR out_date > %s)
        ORDER BY in_date
        LIMIT 1
        """,
        (bed_id, today),
    )
    return row[0] if row else None


def update_bed_status(cur: PgCursor, bed_id: str, status: BedStatus) -> None:
    cur.execute("UPDATE beds SET status = %s WHERE id = %s", (status.value, bed_id))


def room_exists(cur: PgCursor, room_id: str) -> bool:
    return fetchone(cur, "SELECT 1 FROM rooms WHERE id = %s", (room_id,)) is not None
