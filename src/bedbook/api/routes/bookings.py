"""Booking request endpoints.

Requesters create, list and cancel their own requests; admins review,
approve, reject and export them.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import BaseModel, field_validator

from bedbook.api.auth import CurrentUser
from bedbook.api.rbac import ensure_owner_or_admin, require_role
from bedbook.api.serializers import booking_bed_ids, booking_to_dict
from bedbook.domain.booking_request import (
    MAX_OCCUPANTS,
    AttachmentDraft,
    BookingDraft,
    OccupantDraft,
)
from bedbook.domain.errors import NotFoundError
from bedbook.domain.models import (
    BookingStatus,
    Companion,
    Gender,
    OccupantType,
    Placement,
    Requester,
)
from bedbook.infra.repositories import bookings_repository, rooms_repository
from bedbook.infra.time import app_timezone, local_today, request_ttl, utc_now
from bedbook.observability.logging import get_logger
from bedbook.observability.redaction import safe_log_context
from bedbook.services import booking_export, booking_service


class OccupantIn(BaseModel):
    bed_id: UUID
    name: str
    identifier: str | None = None
    type: OccupantType
    gender: Gender
    in_date: date
    out_date: date
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None


class CompanionIn(BaseModel):
    nik: str
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None


class AttachmentIn(BaseModel):
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    description: str | None = None


class CreateBookingRequest(BaseModel):
    start: date
    end: date
    occupants: list[OccupantIn]
    companion: CompanionIn | None = None
    purpose: str | None = None
    notes: str | None = None
    requester_phone: str | None = None
    attachments: list[AttachmentIn] = []

    @field_validator("occupants")
    @classmethod
    def limit_occupants(cls, v: list[OccupantIn]) -> list[OccupantIn]:
        if len(v) > MAX_OCCUPANTS:
            raise ValueError(f"at most {MAX_OCCUPANTS} occupants per booking")
        return v


class PlacementIn(BaseModel):
    occupant_id: UUID
    building_id: UUID
    room_id: UUID
    bed_id: UUID

    def to_placement(self) -> Placement:
        return Placement(
            building_id=str(self.building_id),
            room_id=str(self.room_id),
            bed_id=str(self.bed_id),
        )


class ApproveBookingRequest(BaseModel):
    """Request body for approve action; unlisted occupants keep their requested bed."""

    placements: list[PlacementIn] = []
    notes: str | None = None


class RejectBookingRequest(BaseModel):
    reason: str
    admin_notes: str | None = None


class CancelBookingRequest(BaseModel):
    reason: str


router = APIRouter(prefix="/bookings", tags=["bookings"])

logger = get_logger(__name__)


def _to_draft(body: CreateBookingRequest) -> BookingDraft:
    return BookingDraft(
        start=body.start,
        end=body.end,
        occupants=[
            OccupantDraft(**o.model_dump(exclude={"bed_id"}), bed_id=str(o.bed_id))
            for o in body.occupants
        ],
        companion=Companion(**body.companion.model_dump()) if body.companion else None,
        purpose=body.purpose,
        notes=body.notes,
        attachments=[AttachmentDraft(**a.model_dump()) for a in body.attachments],
    )


def _with_locations(cur, bookings) -> list[dict]:
    locations = rooms_repository.bed_locations(cur, booking_bed_ids(bookings))
    return [booking_to_dict(b, locations) for b in bookings]


# ── Requester endpoints ───────────────────────────────────


@router.post("", status_code=201)
def create_booking(
    body: CreateBookingRequest,
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """Submit a booking request for one or more occupants."""
    from bedbook.infra.db import txn

    now = utc_now()
    requester = Requester(
        user_id=user.id,
        name=user.name,
        nik=user.nik,
        email=user.email,
        phone=body.requester_phone,
        company=user.company,
        department=user.department,
    )
    with txn() as cur:
        booking = booking_service.create_booking(
            cur,
            _to_draft(body),
            requester=requester,
            now=now,
            today=local_today(now),
            ttl=request_ttl(),
            tz=app_timezone(),
        )
        return _with_locations(cur, [booking])[0]


@router.get("/mine")
def list_my_bookings(
    status: BookingStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """Booking requests submitted by the current user, newest first."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        bookings, total = bookings_repository.list_bookings(
            cur,
            now=utc_now(),
            status=status,
            requester_user_id=user.id,
            limit=limit,
            offset=offset,
        )
        items = _with_locations(cur, bookings)
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.post("/{booking_id}/actions/cancel")
def cancel_booking(
    body: CancelBookingRequest,
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """Withdraw a request that has not been processed yet."""
    from bedbook.infra.db import txn

    with txn() as cur:
        owner_id = bookings_repository.booking_owner(cur, str(booking_id))
        if owner_id is None:
            raise NotFoundError("Booking", str(booking_id))
        ensure_owner_or_admin(user, owner_id)
        booking = booking_service.cancel_booking(
            cur, str(booking_id), body.reason, cancelled_by=user.actor, now=utc_now()
        )
    return {"id": booking.id, "code": booking.code, "status": booking.status.value}


# ── Admin endpoints ───────────────────────────────────────


@router.get("")
def list_bookings(
    status: BookingStatus | None = Query(None),
    search: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    building_id: UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """All booking requests matching the filters, newest first."""
    from bedbook.infra.db import txn

    now = utc_now()
    with txn() as cur:
        expired = bookings_repository.expire_overdue(cur, now=now)
        bookings, total = bookings_repository.list_bookings(
            cur,
            now=now,
            status=status,
            search=search,
            date_from=date_from,
            date_to=date_to,
            building_id=str(building_id) if building_id else None,
            limit=limit,
            offset=offset,
        )
        items = _with_locations(cur, bookings)

    if expired:
        logger.info("expired overdue requests", extra={"extra_fields": {"count": expired}})
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.get("/export")
def export_bookings(
    status: BookingStatus | None = Query(None),
    search: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    building_id: UUID | None = Query(None),
    user: CurrentUser = Depends(require_role("admin")),
) -> Response:
    """Download the filtered booking requests as an Excel workbook."""
    from bedbook.infra.db import txn

    now = utc_now()
    with txn(readonly=True) as cur:
        bookings, _total = bookings_repository.list_bookings(
            cur,
            now=now,
            status=status,
            search=search,
            date_from=date_from,
            date_to=date_to,
            building_id=str(building_id) if building_id else None,
            limit=None,
        )
        locations = rooms_repository.bed_locations(cur, booking_bed_ids(bookings))

    content = booking_export.build_booking_workbook(
        bookings,
        locations=locations,
        date_from=date_from,
        date_to=date_to,
        tz=app_timezone(),
    )
    filename = booking_export.export_filename(now.astimezone(app_timezone()))

    logger.info(
        "bookings exported",
        extra={
            "extra_fields": safe_log_context(
                bookings=len(bookings),
                search=search,
                status=status.value if status else None,
            )
        },
    )
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{booking_id}")
def get_booking(
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_role("requester")),
) -> dict:
    """One booking with occupants and bed locations (owner or admin)."""
    from bedbook.infra.db import txn

    with txn() as cur:
        booking = booking_service.get_booking(cur, str(booking_id), now=utc_now())
        ensure_owner_or_admin(user, booking.requester.user_id)
        return _with_locations(cur, [booking])[0]


@router.post("/{booking_id}/actions/approve")
def approve_booking(
    body: ApproveBookingRequest,
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Approve a request and schedule its occupants on beds."""
    from bedbook.infra.db import txn

    placements = {str(p.occupant_id): p.to_placement() for p in body.placements}
    with txn() as cur:
        booking = booking_service.approve_booking(
            cur,
            str(booking_id),
            placements,
            approved_by=user.actor,
            now=utc_now(),
            notes=body.notes,
        )
        return _with_locations(cur, [booking])[0]


@router.post("/{booking_id}/actions/reject")
def reject_booking(
    body: RejectBookingRequest,
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    from bedbook.infra.db import txn

    with txn() as cur:
        booking = booking_service.reject_booking(
            cur,
            str(booking_id),
            body.reason,
            rejected_by=user.actor,
            now=utc_now(),
            admin_notes=body.admin_notes,
        )
    return {
        "id": booking.id,
        "code": booking.code,
        "status": booking.status.value,
        "reject_reason": booking.reject_reason,
    }
