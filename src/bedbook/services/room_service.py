"""Room service - bed maintenance and room activity history.

The caller manages the transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from bedbook.domain.errors import BookingValidationError, NotFoundError
from bedbook.domain.models import Bed, BedStatus, OccupantLogAction
from bedbook.infra.repositories import occupants_repository, rooms_repository
from bedbook.observability.logging import get_logger

logger = get_logger(__name__)

# Statuses an admin may set; occupied and reserved follow from the stays
SETTABLE_BED_STATUSES = (BedStatus.AVAILABLE, BedStatus.MAINTENANCE)


def set_bed_status(
    cur: PgCursor,
    bed_id: str,
    status: BedStatus,
    *,
    performed_by: str,
    today: date,
) -> Bed:
    """Put a bed under maintenance or release it.

    Raises:
        NotFoundError: Unknown bed.
        BookingValidationError: Status not settable by hand, or maintenance
            requested while a stay still holds the bed.
    """
    if status not in SETTABLE_BED_STATUSES:
        raise BookingValidationError(
            f"Bed status {status.value} cannot be set directly", field="status"
        )

    bed = rooms_repository.get_bed(cur, bed_id, lock=True)
    if bed is None:
        raise NotFoundError("Bed", bed_id)

    if status == BedStatus.MAINTENANCE:
        holder = rooms_repository.current_holder(cur, bed_id, today=today)
        if holder is not None:
            raise BookingValidationError(
                f"Bed {bed.code} is still assigned to {holder}", field="status"
            )

    previous = bed.status
    if previous != status:
        rooms_repository.update_bed_status(cur, bed_id, status)
        bed.status = status

    logger.info(
        "bed status changed",
        extra={
            "extra_fields": {
                "bed_id": bed_id,
                "from": previous.value,
                "to": status.value,
                "performed_by": performed_by,
            }
        },
    )
    return bed


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
    """Occupant history lines for every bed of a room, newest first.

    Raises:
        NotFoundError: Unknown room.
    """
    if not rooms_repository.room_exists(cur, room_id):
        raise NotFoundError("Room", room_id)
    return occupants_repository.room_history(
        cur,
        room_id,
        actions=actions,
        performed_from=performed_from,
        performed_to=performed_to,
        limit=limit,
        offset=offset,
    )
