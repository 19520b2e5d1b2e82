"""Bookings repository - persistence for booking requests.

Uses raw SQL with psycopg2 (no ORM).

A booking aggregate is the bookings row plus its occupants
(occupants_repository) and attachments. Expiry is lazy: list queries report
an overdue request as ``expired`` through a CASE expression. The expiry is
persisted per booking with ``save_booking`` after ``lifecycle.expire``, or
in bulk with ``expire_overdue``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain.booking_request import booking_code, booking_code_prefix
from bedbook.domain.models import (
    Attachment,
    BookingRequest,
    BookingStatus,
    Companion,
    Requester,
)
from bedbook.infra.db import advisory_xact_lock, fetchone, for_update
from bedbook.infra.repositories.occupants_repository import (
    insert_occupant,
    load_occupants_for_bookings,
)

BOOKING_COLUMNS = """
    bk.id, bk.code, bk.status,
    bk.requester_user_id, bk.requester_name, bk.requester_nik,
    bk.requester_email, bk.requester_phone, bk.requester_company,
    bk.requester_department,
    bk.companion_nik, bk.companion_name, bk.companion_email,
    bk.companion_phone, bk.companion_company, bk.companion_department,
    bk.purpose, bk.notes, bk.requested_at, bk.expires_at,
    bk.approved_at, bk.approved_by, bk.rejected_at, bk.rejected_by,
    bk.reject_reason, bk.admin_notes,
    bk.cancelled_at, bk.cancelled_by, bk.cancel_reason
"""

# Status as seen at a given instant (parameter: now)
EFFECTIVE_STATUS_SQL = (
    "CASE WHEN bk.status = 'request' AND bk.expires_at <= %s "
    "THEN 'expired' ELSE bk.status END"
)


def _row_to_booking(row: tuple) -> BookingRequest:
    companion = None
    if row[10] or row[11]:
        companion = Companion(
            nik=row[10] or "",
            name=row[11] or "",
            email=row[12],
            phone=row[13],
            company=row[14],
            department=row[15],
        )
    return BookingRequest(
        id=str(row[0]),
        code=row[1],
        status=BookingStatus(row[2]),
        requester=Requester(
            user_id=row[3],
            name=row[4],
            nik=row[5],
            email=row[6],
            phone=row[7],
            company=row[8],
            department=row[9],
        ),
        occupants=[],
        companion=companion,
        purpose=row[16],
        notes=row[17],
        requested_at=row[18],
        expires_at=row[19],
        approved_at=row[20],
        approved_by=row[21],
        rejected_at=row[22],
        rejected_by=row[23],
        reject_reason=row[24],
        admin_notes=row[25],
        cancelled_at=row[26],
        cancelled_by=row[27],
        cancel_reason=row[28],
    )


# ── Codes ─────────────────────────────────────────────────


def next_booking_code(cur: PgCursor, day: date) -> str:
    """Allocate the next ``BK-YYYYMMDD-NNN`` code for ``day``.

    A transaction-scoped advisory lock on the day prefix serialises
    concurrent creations until commit.
    """
    prefix = booking_code_prefix(day)
    advisory_xact_lock(cur, prefix)
    row = fetchone(
        cur,
        """
        SELECT code FROM bookings
        WHERE code LIKE %s
        ORDER BY code DESC
        LIMIT 1
        """,
        (prefix + "%",),
    )
    sequence = int(row[0][len(prefix):]) + 1 if row else 1
    return booking_code(day, sequence)


# ── Writes ────────────────────────────────────────────────


def insert_booking(
    cur: PgCursor,
    booking: BookingRequest,
    *,
    check_in_date: date,
    check_out_date: date,
) -> None:
    """Insert a booking with its occupants and attachments (IDs already set)."""
    requester = booking.requester
    companion = booking.companion
    cur.execute(
        """
        INSERT INTO bookings (
            id, code, status,
            requester_user_id, requester_name, requester_nik,
            requester_email, requester_phone, requester_company,
            requester_department,
            companion_nik, companion_name, companion_email,
            companion_phone, companion_company, companion_department,
            purpose, notes, check_in_date, check_out_date,
            requested_at, expires_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            booking.id,
            booking.code,
            booking.status.value,
            requester.user_id,
            requester.name,
            requester.nik,
            requester.email,
            requester.phone,
            requester.company,
            requester.department,
            companion.nik if companion else None,
            companion.name if companion else None,
            companion.email if companion else None,
            companion.phone if companion else None,
            companion.company if companion else None,
            companion.department if companion else None,
            booking.purpose,
            booking.notes,
            check_in_date,
            check_out_date,
            booking.requested_at,
            booking.expires_at,
        ),
    )

    for occupant in booking.occupants:
        insert_occupant(cur, occupant)

    for attachment in booking.attachments:
        cur.execute(
            """
            INSERT INTO booking_attachments (
                id, booking_id, file_name, file_url, file_type, file_size, description
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                attachment.id,
                booking.id,
                attachment.file_name,
                attachment.file_url,
                attachment.file_type,
                attachment.file_size,
                attachment.description,
            ),
        )


def save_booking(cur: PgCursor, booking: BookingRequest) -> None:
    """Persist status and processing fields after a transition."""
    cur.execute(
        """
        UPDATE bookings
        SET status        = %s,
            approved_at   = %s,
            approved_by   = %s,
            rejected_at   = %s,
            rejected_by   = %s,
            reject_reason = %s,
            admin_notes   = %s,
            cancelled_at  = %s,
            cancelled_by  = %s,
            cancel_reason = %s,
            updated_at    = now()
        WHERE id = %s
        """,
        (
            booking.status.value,
            booking.approved_at,
            booking.approved_by,
            booking.rejected_at,
            booking.rejected_by,
            booking.reject_reason,
            booking.admin_notes,
            booking.cancelled_at,
            booking.cancelled_by,
            booking.cancel_reason,
            booking.id,
        ),
    )


# ── Reads ─────────────────────────────────────────────────


def _load_attachments(cur: PgCursor, booking_id: str) -> list[Attachment]:
    cur.execute(
        """
        SELECT id, file_name, file_url, file_type, file_size, description
        FROM booking_attachments
        WHERE booking_id = %s
        ORDER BY created_at, id
        """,
        (booking_id,),
    )
    return [
        Attachment(
            id=str(row[0]),
            file_name=row[1],
            file_url=row[2],
            file_type=row[3],
            file_size=row[4],
            description=row[5],
        )
        for row in cur.fetchall()
    ]


def get_booking(cur: PgCursor, booking_id: str, *, lock: bool = False) -> BookingRequest | None:
    """Load the full booking aggregate.

    With ``lock`` the booking row and its occupant rows are locked
    FOR UPDATE, so concurrent approvals of the same request serialise.
    """
    query = f"""
        SELECT {BOOKING_COLUMNS}
        FROM bookings bk
        WHERE bk.id = %s
    """
    params = (booking_id,)
    row = for_update(cur, query, params) if lock else fetchone(cur, query, params)
    if row is None:
        return None

    booking = _row_to_booking(row)
    booking.occupants = load_occupants_for_bookings(cur, [booking.id], lock=lock)[booking.id]
    booking.attachments = _load_attachments(cur, booking.id)
    return booking


def list_bookings(
    cur: PgCursor,
    *,
    now: datetime,
    status: BookingStatus | None = None,
    search: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    building_id: str | None = None,
    requester_user_id: str | None = None,
    limit: int | None = 50,
    offset: int = 0,
) -> tuple[list[BookingRequest], int]:
    """List bookings, newest request first, with occupants attached.

    Statuses are effective statuses: an overdue request is reported and
    filtered as ``expired``.

    Args:
        cur: Database cursor.
        now: Current timestamp for lazy expiry.
        status: Effective status filter.
        search: Case-insensitive match on code, requester, purpose or
            occupant name.
        date_from: Bookings with any occupant checking in on or after.
        date_to: Bookings with any occupant checking in on or before.
        building_id: Bookings with any occupant placed in (or asking for
            a bed in) this building.
        requester_user_id: Only this requester's bookings.
        limit: Page size, None for everything (export).
        offset: Page offset.

    Returns:
        Tuple of (bookings, total matching rows).
    """
    conditions: list[str] = []
    params: list[Any] = []

    if status is not None:
        conditions.append(f"({EFFECTIVE_STATUS_SQL}) = %s")
        params.extend([now, status.value])
    if search and search.strip():
        like = f"%{search.strip()}%"
        conditions.append(
            """(
                bk.code ILIKE %s OR bk.requester_name ILIKE %s OR bk.purpose ILIKE %s
                OR EXISTS (
                    SELECT 1 FROM occupants so
                    WHERE so.booking_id = bk.id AND so.name ILIKE %s
                )
            )"""
        )
        params.extend([like, like, like, like])

    occupant_conditions: list[str] = []
    occupant_params: list[Any] = []
    if date_from is not None:
        occupant_conditions.append("fo.in_date >= %s")
        occupant_params.append(date_from)
    if date_to is not None:
        occupant_conditions.append("fo.in_date <= %s")
        occupant_params.append(date_to)
    if building_id:
        occupant_conditions.append(
            """(
                fo.building_id = %s
                OR fo.requested_bed_id IN (
                    SELECT bed.id FROM beds bed
                    JOIN rooms r ON r.id = bed.room_id
                    WHERE r.building_id = %s
                )
            )"""
        )
        occupant_params.extend([building_id, building_id])
    if occupant_conditions:
        conditions.append(
            f"""EXISTS (
                SELECT 1 FROM occupants fo
                WHERE fo.booking_id = bk.id AND {" AND ".join(occupant_conditions)}
            )"""
        )
        params.extend(occupant_params)

    if requester_user_id:
        conditions.append("bk.requester_user_id = %s")
        params.append(requester_user_id)

    where = " AND ".join(conditions) if conditions else "TRUE"

    cur.execute(f"SELECT COUNT(*) FROM bookings bk WHERE {where}", params)
    total = cur.fetchone()[0]

    page_sql = ""
    page_params: list[Any] = []
    if limit is not None:
        page_sql = "LIMIT %s OFFSET %s"
        page_params = [limit, offset]

    cur.execute(
        f"""
        SELECT {BOOKING_COLUMNS}, {EFFECTIVE_STATUS_SQL}
        FROM bookings bk
        WHERE {where}
        ORDER BY bk.requested_at DESC, bk.code DESC
        {page_sql}
        """,
        [now, *params, *page_params],
    )
    bookings = []
    for row in cur.fetchall():
        booking = _row_to_booking(row)
        booking.status = BookingStatus(row[29])
        bookings.append(booking)

    occupants = load_occupants_for_bookings(cur, [b.id for b in bookings])
    for booking in bookings:
        booking.occupants = occupants.get(booking.id, [])
    return bookings, total


def count_pending(cur: PgCursor, *, now: datetime) -> int:
    """Requests still waiting for an admin decision."""
    cur.execute(
        "SELECT COUNT(*) FROM bookings WHERE status = 'request' AND expires_at > %s",
        (now,),
    )
    return cur.fetchone()[0]


def booking_owner(cur: PgCursor, booking_id: str) -> str | None:
    """Requester user ID of a booking, or None if it does not exist."""
    row = fetchone(cur, "SELECT requester_user_id FROM bookings WHERE id = %s", (booking_id,))
    return row[0] if row else None


def expire_overdue(cur: PgCursor, *, now: datetime) -> int:
    """Persist the expiry of every overdue request. Returns rows changed."""
    cur.execute(
        """
        UPDATE bookings
        SET status = 'expired', updated_at = now()
        WHERE status = 'request' AND expires_at <= %s
        """,
        (now,),
    )
    return cur.rowcount
