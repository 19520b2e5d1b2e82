"""Occupant endpoints: front desk lists, check-in/out, transfers, QR codes and direct placement."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import BaseModel

from bedbook.api.auth import CurrentUser
from bedbook.api.rbac import ensure_owner_or_admin, require_role
from bedbook.api.serializers import occupant_to_dict, transfer_option_to_dict
from bedbook.domain.errors import NotFoundError
from bedbook.domain.models import Gender, OccupantStatus, OccupantType, Placement
from bedbook.infra.repositories import bookings_repository, occupants_repository, rooms_repository
from bedbook.infra.time import local_today, utc_now
from bedbook.observability.logging import get_logger
from bedbook.observability.redaction import safe_log_context
from bedbook.services import occupant_service, qr
from bedbook.services.occupant_service import DirectPlacement


class DirectPlacementRequest(BaseModel):
    """Request body for placing an occupant without a booking request."""

    room_id: UUID
    bed_id: UUID
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


class CheckOutRequest(BaseModel):
    early_reason: str | None = None


class CancelOccupantRequest(BaseModel):
    reason: str


class ScanRequest(BaseModel):
    code: str


class TransferRequest(BaseModel):
    building_id: UUID
    room_id: UUID
    bed_id: UUID
    reason: str
    out_date: date | None = None


router = APIRouter(prefix="/occupants", tags=["occupants"])

logger = get_logger(__name__)


def _location(cur, bed_id: str | None) -> str | None:
    if not bed_id:
        return None
    return rooms_repository.bed_locations(cur, [bed_id]).get(bed_id)


def _occupant_response(cur, occupant) -> dict:
    bed_id = occupant.placement.bed_id if occupant.placement else occupant.requested_bed_id
    return occupant_to_dict(occupant, _location(cur, bed_id))


# ── Lists ─────────────────────────────────────────────────


@router.get("")
def list_occupants(
    status: OccupantStatus | None = Query(None),
    type: OccupantType | None = Query(None),
    gender: Gender | None = Query(None),
    building_id: UUID | None = Query(None),
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Placed occupants with their bed location."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        items, total = occupants_repository.list_occupants(
            cur,
            status=status,
            occupant_type=type,
            gender=gender,
            building_id=str(building_id) if building_id else None,
            search=search,
            limit=limit,
            offset=offset,
        )
    return {
        "items": [occupant_to_dict(o, location) for o, location in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/stats")
def occupant_stats(
    building_id: UUID | None = Query(None),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Count of placed occupants per status."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        return occupants_repository.occupant_stats(
            cur, building_id=str(building_id) if building_id else None
        )


# ── Scan and direct placement ─────────────────────────────


@router.post("/scan")
def scan_occupant(
    body: ScanRequest,
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Check an occupant in or out from a scanned QR code.

    Unknown codes and refused transitions are reported in ``outcome``
    rather than as HTTP errors, so the scanner screen can show them.
    """
    from bedbook.infra.db import txn

    now = utc_now()
    with txn() as cur:
        result = occupant_service.scan(
            cur, body.code, performed_by=user.actor, now=now, today=local_today(now)
        )
        occupant = _occupant_response(cur, result.occupant) if result.occupant else None

    logger.info(
        "qr scanned",
        extra={
            "extra_fields": safe_log_context(
                outcome=result.outcome,
                scanned_input=result.scanned_input,
            )
        },
    )
    return {
        "outcome": result.outcome,
        "message": result.message,
        "scanned_input": result.scanned_input,
        "occupant": occupant,
        "expected_date": result.expected_date.isoformat() if result.expected_date else None,
    }


@router.post("", status_code=201)
def place_occupant(
    body: DirectPlacementRequest,
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Place an occupant directly on a bed, without a booking request."""
    from bedbook.infra.db import txn

    with txn() as cur:
        occupant = occupant_service.place_directly(
            cur,
            DirectPlacement(
                **body.model_dump(exclude={"room_id", "bed_id"}),
                room_id=str(body.room_id),
                bed_id=str(body.bed_id),
            ),
            performed_by=user.actor,
            now=utc_now(),
        )
        return _occupant_response(cur, occupant)


# ── Single occupant ───────────────────────────────────────


@router.get("/{occupant_id}")
def get_occupant(
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Occupant detail with bed location and history."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        occupant = occupants_repository.get_occupant(cur, str(occupant_id))
        if occupant is None:
            raise NotFoundError("Occupant", str(occupant_id))
        data = _occupant_response(cur, occupant)
        data["logs"] = occupants_repository.list_logs(cur, occupant.id)
    return data


@router.get("/{occupant_id}/qr")
def occupant_qr(
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("requester")),
) -> Response:
    """PNG QR code identifying the occupant, for the booking's requester or an admin."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        occupant = occupants_repository.get_occupant(cur, str(occupant_id))
        if occupant is None:
            raise NotFoundError("Occupant", str(occupant_id))
        owner_id = (
            bookings_repository.booking_owner(cur, occupant.booking_id)
            if occupant.booking_id
            else None
        )
    ensure_owner_or_admin(user, owner_id)

    return Response(content=qr.render_occupant_qr(occupant.id), media_type="image/png")


@router.post("/{occupant_id}/actions/check-in")
def check_in(
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    from bedbook.infra.db import txn

    with txn() as cur:
        occupant = occupant_service.check_in(
            cur, str(occupant_id), performed_by=user.actor, now=utc_now()
        )
        return _occupant_response(cur, occupant)


@router.post("/{occupant_id}/actions/check-out")
def check_out(
    body: CheckOutRequest | None = None,
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Check an occupant out; before the scheduled date an ``early_reason`` is required."""
    from bedbook.infra.db import txn

    now = utc_now()
    with txn() as cur:
        occupant = occupant_service.check_out(
            cur,
            str(occupant_id),
            performed_by=user.actor,
            now=now,
            today=local_today(now),
            early_reason=body.early_reason if body else None,
        )
        return _occupant_response(cur, occupant)


@router.post("/{occupant_id}/actions/cancel")
def cancel_occupant(
    body: CancelOccupantRequest,
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    from bedbook.infra.db import txn

    with txn() as cur:
        occupant = occupant_service.cancel(
            cur, str(occupant_id), body.reason, cancelled_by=user.actor, now=utc_now()
        )
        return _occupant_response(cur, occupant)


@router.get("/{occupant_id}/transfer-options")
def transfer_options(
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Beds in the same area that could take the occupant's whole stay."""
    from bedbook.infra.db import txn

    with txn(readonly=True) as cur:
        options = occupant_service.transfer_options(cur, str(occupant_id), now=utc_now())
    return {"items": [transfer_option_to_dict(room, bed) for room, bed in options]}


@router.post("/{occupant_id}/actions/transfer")
def transfer_occupant(
    body: TransferRequest,
    occupant_id: UUID = Path(..., description="Occupant UUID"),
    user: CurrentUser = Depends(require_role("admin")),
) -> dict:
    """Move a scheduled or checked-in occupant to another bed."""
    from bedbook.infra.db import txn

    target = Placement(
        building_id=str(body.building_id),
        room_id=str(body.room_id),
        bed_id=str(body.bed_id),
    )
    with txn() as cur:
        occupant = occupant_service.transfer(
            cur,
            str(occupant_id),
            target,
            body.reason,
            performed_by=user.actor,
            now=utc_now(),
            out_date=body.out_date,
        )
        return _occupant_response(cur, occupant)
