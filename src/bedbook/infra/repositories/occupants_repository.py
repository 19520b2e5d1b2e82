"""Occupants repository - persistence for occupants and their history.

Uses raw SQL with psycopg2 (no ORM).

An occupant row belongs to a booking request, or stands alone when an admin
placed it directly (booking_id NULL). The bed placement columns
(building_id, room_id, bed_id) and status are NULL until approval.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain.models import (
    Gender,
    Occupant,
    OccupantLogAction,
    OccupantLogEntry,
    OccupantStatus,
    OccupantType,
    Placement,
)
from bedbook.infra.db import fetchall, fetchone, for_update

OCCUPANT_COLUMNS = """
    o.id, o.booking_id, o.name, o.identifier, o.type, o.gender,
    o.email, o.phone, o.company, o.department,
    o.in_date, o.out_date, o.requested_bed_id,
    o.building_id, o.room_id, o.bed_id, o.status,
    o.actual_check_in_at, o.actual_check_out_at, o.original_out_date,
    o.checkout_reason, o.cancelled_at, o.cancelled_by, o.cancel_reason
"""

# Human-readable location of the bed an occupant holds (or asked for)
LOCATION_COLUMNS = """
    lb.name, lr.code, lbed.code
"""

LOCATION_JOINS = """
    LEFT JOIN beds lbed ON lbed.id = COALESCE(o.bed_id, o.requested_bed_id)
    LEFT JOIN rooms lr ON lr.id = lbed.room_id
    LEFT JOIN buildings lb ON lb.id = lr.building_id
"""


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def row_to_occupant(row: tuple) -> Occupant:
    """Build an ``Occupant`` from the first columns of a row selected with OCCUPANT_COLUMNS."""
    placement = None
    if row[15] is not None:
        placement = Placement(
            building_id=str(row[13]),
            room_id=str(row[14]),
            bed_id=str(row[15]),
        )
    return Occupant(
        id=str(row[0]),
        booking_id=_str_or_none(row[1]),
        name=row[2],
        identifier=row[3],
        type=OccupantType(row[4]),
        gender=Gender(row[5]),
        email=row[6],
        phone=row[7],
        company=row[8],
        department=row[9],
        in_date=row[10],
        out_date=row[11],
        requested_bed_id=_str_or_none(row[12]),
        placement=placement,
        status=OccupantStatus(row[16]) if row[16] else None,
        actual_check_in_at=row[17],
        actual_check_out_at=row[18],
        original_out_date=row[19],
        checkout_reason=row[20],
        cancelled_at=row[21],
        cancelled_by=row[22],
        cancel_reason=row[23],
    )


def format_location(building: str | None, room: str | None, bed: str | None) -> str | None:
    if not bed:
        return None
    return f"{building} - {room} - {bed}"


def get_occupant(cur: PgCursor, occupant_id: str, *, lock: bool = False) -> Occupant | None:
    """Fetch one occupant by exact ID, optionally locking the row."""
    query = f"""
        SELECT {OCCUPANT_COLUMNS}
        FROM occupants o
        WHERE o.id = %s
    """
    params = (occupant_id,)
    row = for_update(cur, query, params) if lock else fetchone(cur, query, params)
    return row_to_occupant(row) if row else None


def find_occupant_by_scan(cur: PgCursor, identifier: str) -> Occupant | None:
    """Exact ID lookup for scanned codes; non-UUID text simply matches nothing."""
    row = for_update(
        cur,
        f"""
        SELECT {OCCUPANT_COLUMNS}
        FROM occupants o
        WHERE o.id::text = %s
        """,
        (identifier,),
    )
    return row_to_occupant(row) if row else None


def load_occupants_for_bookings(
    cur: PgCursor,
    booking_ids: list[str],
    *,
    lock: bool = False,
) -> dict[str, list[Occupant]]:
    """Occupants grouped by booking ID, ordered by check-in date then name."""
    if not booking_ids:
        return {}
    query = f"""
        SELECT {OCCUPANT_COLUMNS}
        FROM occupants o
        WHERE o.booking_id = ANY(%s::uuid[])
        ORDER BY o.in_date, o.name, o.id
    """
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (list(booking_ids),))
    grouped: dict[str, list[Occupant]] = {booking_id: [] for booking_id in booking_ids}
    for row in cur.fetchall():
        occupant = row_to_occupant(row)
        grouped.setdefault(occupant.booking_id, []).append(occupant)
    return grouped


def insert_occupant(cur: PgCursor, occupant: Occupant) -> None:
    """Insert an occupant under the ID it already carries."""
    placement = occupant.placement
    cur.execute(
        """
        INSERT INTO occupants (
            id, booking_id, name, identifier, type, gender,
            email, phone, company, department,
            in_date, out_date, requested_bed_id,
            building_id, room_id, bed_id, status, actual_check_in_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            occupant.id,
            occupant.booking_id,
            occupant.name,
            occupant.identifier,
            occupant.type.value,
            occupant.gender.value,
            occupant.email,
            occupant.phone,
            occupant.company,
            occupant.department,
            occupant.in_date,
            occupant.out_date,
            occupant.requested_bed_id,
            placement.building_id if placement else None,
            placement.room_id if placement else None,
            placement.bed_id if placement else None,
            occupant.status.value if occupant.status else None,
            occupant.actual_check_in_at,
        ),
    )


def save_occupant(cur: PgCursor, occupant: Occupant) -> None:
    """Persist the mutable state of an occupant after a transition."""
    placement = occupant.placement
    cur.execute(
        """
        UPDATE occupants
        SET building_id         = %s,
            room_id             = %s,
            bed_id              = %s,
            status              = %s,
            out_date            = %s,
            actual_check_in_at  = %s,
            actual_check_out_at = %s,
            original_out_date   = %s,
            checkout_reason     = %s,
            cancelled_at        = %s,
            cancelled_by        = %s,
            cancel_reason       = %s,
            updated_at          = now()
        WHERE id = %s
        """,
        (
            placement.building_id if placement else None,
            placement.room_id if placement else None,
            placement.bed_id if placement else None,
            occupant.status.value if occupant.status else None,
            occupant.out_date,
            occupant.actual_check_in_at,
            occupant.actual_check_out_at,
            occupant.original_out_date,
            occupant.checkout_reason,
            occupant.cancelled_at,
            occupant.cancelled_by,
            occupant.cancel_reason,
            occupant.id,
        ),
    )


def append_log(cur: PgCursor, entry: OccupantLogEntry) -> None:
    cur.execute(
        """
        INSERT INTO occupant_logs (
            occupant_id, action, bed_id, from_bed_id, performed_by,
            performed_at, reason, previous_out_date, new_out_date
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            entry.occupant_id,
            entry.action.value,
            entry.bed_id,
            entry.from_bed_id,
            entry.performed_by,
            entry.performed_at,
            entry.reason,
            entry.previous_out_date,
            entry.new_out_date,
        ),
    )


def list_logs(cur: PgCursor, occupant_id: str) -> list[dict[str, Any]]:
    """History of one occupant, oldest first."""
    rows = fetchall(
        cur,
        """
        SELECT action, bed_id, from_bed_id, performed_by, performed_at,
               reason, previous_out_date, new_out_date
        FROM occupant_logs
        WHERE occupant_id = %s
        ORDER BY performed_at, id
        """,
        (occupant_id,),
    )
    return [_log_row_to_dict(row) for row in rows]


def _log_row_to_dict(row: tuple) -> dict[str, Any]:
    return {
        "action": row[0],
        "bed_id": _str_or_none(row[1]),
        "from_bed_id": _str_or_none(row[2]),
        "performed_by": row[3],
        "performed_at": row[4].isoformat(),
        "reason": row[5],
        "previous_out_date": row[6].isoformat() if row[6] else None,
        "new_out_date": row[7].isoformat() if row[7] else None,
    }


def room_history(
    cur: PgCursor,
    room_id: str,
    *,
    actions: list[OccupantLogAction] | None = None,
    performed_from: datetime | None = None,
    performed_to: datetime | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """History lines touching any bed of a room, newest first.

    A transfer shows up in both rooms: under its target bed and under the
    bed it left (``from_bed_id``).
    """
    conditions = [
        "(l.bed_id IN (SELECT id FROM beds WHERE room_id = %s)"
        " OR l.from_bed_id IN (SELECT id FROM beds WHERE room_id = %s))"
    ]
    params: list = [room_id, room_id]
    if actions:
        conditions.append("l.action = ANY(%s)")
        params.append([a.value for a in actions])
    if performed_from is not None:
        conditions.append("l.performed_at >= %s")
        params.append(performed_from)
    if performed_to is not None:
        conditions.append("l.performed_at <= %s")
        params.append(performed_to)
    where = " AND ".join(conditions)

    total = fetchone(cur, f"SELECT count(*) FROM occupant_logs l WHERE {where}", params)[0]
    rows = fetchall(
        cur,
        f"""
        SELECT l.action, l.bed_id, l.from_bed_id, l.performed_by, l.performed_at,
               l.reason, l.previous_out_date, l.new_out_date,
               o.id, o.name, o.type
        FROM occupant_logs l
        JOIN occupants o ON o.id = l.occupant_id
        WHERE {where}
        ORDER BY l.performed_at DESC, l.id
        LIMIT %s OFFSET %s
        """,
        [*params, limit, offset],
    )
    items = []
    for row in rows:
        item = _log_row_to_dict(row)
        item["occupant"] = {"id": str(row[8]), "name": row[9], "type": row[10]}
        items.append(item)
    return items, total


def _occupant_filters(
    *,
    status: OccupantStatus | None,
    occupant_type: OccupantType | None,
    gender: Gender | None,
    building_id: str | None,
    search: str | None,
) -> tuple[str, list]:
    # Only placed occupants show up in occupant lists
    conditions = ["o.status IS NOT NULL"]
    params: list = []
    if status is not None:
        conditions.append("o.status = %s")
        params.append(status.value)
    if occupant_type is not None:
        conditions.append("o.type = %s")
        params.append(occupant_type.value)
    if gender is not None:
        conditions.append("o.gender = %s")
        params.append(gender.value)
    if building_id:
        conditions.append("o.building_id = %s")
        params.append(building_id)
    if search and search.strip():
        like = f"%{search.strip()}%"
        conditions.append("(o.name ILIKE %s OR o.identifier ILIKE %s OR o.company ILIKE %s)")
        params.extend([like, like, like])
    return " AND ".join(conditions), params


def list_occupants(
    cur: PgCursor,
    *,
    status: OccupantStatus | None = None,
    occupant_type: OccupantType | None = None,
    gender: Gender | None = None,
    building_id: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[tuple[Occupant, str | None]], int]:
    """Placed occupants with their bed location, newest stays first.

    Returns:
        Tuple of ((occupant, location) page, total matching rows).
    """
    where, params = _occupant_filters(
        status=status,
        occupant_type=occupant_type,
        gender=gender,
        building_id=building_id,
        search=search,
    )

    cur.execute(f"SELECT COUNT(*) FROM occupants o WHERE {where}", params)
    total = cur.fetchone()[0]

    cur.execute(
        f"""
        SELECT {OCCUPANT_COLUMNS}, {LOCATION_COLUMNS}
        FROM occupants o
        {LOCATION_JOINS}
        WHERE {where}
        ORDER BY o.in_date DESC, o.name
        LIMIT %s OFFSET %s
        """,
        [*params, limit, offset],
    )
    items = [
        (row_to_occupant(row), format_location(row[24], row[25], row[26]))
        for row in cur.fetchall()
    ]
    return items, total


def occupant_stats(cur: PgCursor, *, building_id: str | None = None) -> dict[str, int]:
    """Count of placed occupants per status, every status present."""
    where, params = _occupant_filters(
        status=None,
        occupant_type=None,
        gender=None,
        building_id=building_id,
        search=None,
    )
    cur.execute(
        f"""
        SELECT o.status, COUNT(*)
        FROM occupants o
        WHERE {where}
        GROUP BY o.status
        """,
        params,
    )
    counts = {status.value: 0 for status in OccupantStatus}
    for status, count in cur.fetchall():
        counts[status] = count
    counts["total"] = sum(counts.values())
    return counts


def daily_movements(cur: PgCursor, *, day: date) -> dict[str, int]:
    """Front desk counts for one day."""
    cur.execute(
        """
        SELECT
            (SELECT COUNT(*) FROM occupants
             WHERE status = 'scheduled' AND in_date = %s) AS arrivals,
            (SELECT COUNT(*) FROM occupants
             WHERE status = 'checked_in' AND out_date = %s) AS departures,
            (SELECT COUNT(*) FROM occupants
             WHERE status = 'checked_in') AS in_house,
            (SELECT COUNT(*) FROM occupants
             WHERE status = 'checked_in' AND out_date < %s) AS overdue
        """,
        (day, day, day),
    )
    row = cur.fetchone()
    return {
        "arrivals": row[0],
        "departures": row[1],
        "in_house": row[2],
        "overdue": row[3],
    }
