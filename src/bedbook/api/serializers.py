"""Domain objects to JSON-ready dicts for API responses."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from bedbook.domain.availability import DaySummary, RoomAvailability
from bedbook.domain.models import Bed, BookingRequest, Occupant, Room


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def room_summary(room: Room) -> dict[str, Any]:
    return {
        "id": room.id,
        "code": room.code,
        "name": room.name,
        "floor": room.floor,
        "building_id": room.building_id,
        "building_name": room.building_name,
        "area_id": room.area_id,
        "gender_policy": room.gender_policy.value,
        "allocation_policy": room.allocation_policy.value,
        "capacity": room.capacity,
    }


def room_availability_to_dict(result: RoomAvailability) -> dict[str, Any]:
    data = room_summary(result.room)
    data["available_beds"] = result.available_beds
    data["beds"] = [
        {
            "id": item.bed.id,
            "code": item.bed.code,
            "label": item.bed.label,
            "status": item.bed.status.value,
            "is_available": item.is_available,
            "has_pending_request": item.has_pending_request,
            "conflicts": [
                {
                    "check_in": _iso(c.check_in),
                    "check_out": _iso(c.check_out),
                    "status": c.status.value,
                    "occupant_name": c.occupant_name,
                }
                for c in item.conflicts
            ],
            "pending": [
                {
                    "check_in": _iso(p.check_in),
                    "check_out": _iso(p.check_out),
                    "booking_code": p.booking_code,
                }
                for p in item.pending
            ],
        }
        for item in result.beds
    ]
    return data


def day_summary_to_dict(summary: DaySummary) -> dict[str, Any]:
    return {
        "date": summary.day.isoformat(),
        "total": summary.total,
        "counts": {status.value: count for status, count in summary.counts.items()},
        "beds": [
            {"bed_id": b.bed_id, "bed_code": b.bed_code, "status": b.status.value}
            for b in summary.beds
        ],
    }


def occupant_to_dict(occupant: Occupant, location: str | None = None) -> dict[str, Any]:
    placement = occupant.placement
    return {
        "id": occupant.id,
        "booking_id": occupant.booking_id,
        "name": occupant.name,
        "identifier": occupant.identifier,
        "type": occupant.type.value,
        "gender": occupant.gender.value,
        "in_date": _iso(occupant.in_date),
        "out_date": _iso(occupant.out_date),
        "original_out_date": _iso(occupant.original_out_date),
        "status": occupant.status.value if occupant.status else None,
        "requested_bed_id": occupant.requested_bed_id,
        "building_id": placement.building_id if placement else None,
        "room_id": placement.room_id if placement else None,
        "bed_id": placement.bed_id if placement else None,
        "location": location,
        "email": occupant.email,
        "phone": occupant.phone,
        "company": occupant.company,
        "department": occupant.department,
        "actual_check_in_at": _iso(occupant.actual_check_in_at),
        "actual_check_out_at": _iso(occupant.actual_check_out_at),
        "checkout_reason": occupant.checkout_reason,
        "cancelled_at": _iso(occupant.cancelled_at),
        "cancelled_by": occupant.cancelled_by,
        "cancel_reason": occupant.cancel_reason,
    }


def booking_to_dict(
    booking: BookingRequest,
    locations: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Serialize a booking; ``locations`` maps bed IDs to display labels."""
    locations = locations or {}
    companion = booking.companion
    requester = booking.requester
    occupants = []
    for occupant in booking.occupants:
        bed_id = occupant.placement.bed_id if occupant.placement else occupant.requested_bed_id
        occupants.append(occupant_to_dict(occupant, locations.get(bed_id) if bed_id else None))
    return {
        "id": booking.id,
        "code": booking.code,
        "status": booking.status.value,
        "requester": {
            "user_id": requester.user_id,
            "name": requester.name,
            "nik": requester.nik,
            "email": requester.email,
            "phone": requester.phone,
            "company": requester.company,
            "department": requester.department,
        },
        "companion": (
            {
                "nik": companion.nik,
                "name": companion.name,
                "email": companion.email,
                "phone": companion.phone,
                "company": companion.company,
                "department": companion.department,
            }
            if companion
            else None
        ),
        "purpose": booking.purpose,
        "notes": booking.notes,
        "requested_at": _iso(booking.requested_at),
        "expires_at": _iso(booking.expires_at),
        "approved_at": _iso(booking.approved_at),
        "approved_by": booking.approved_by,
        "rejected_at": _iso(booking.rejected_at),
        "rejected_by": booking.rejected_by,
        "reject_reason": booking.reject_reason,
        "admin_notes": booking.admin_notes,
        "cancelled_at": _iso(booking.cancelled_at),
        "cancelled_by": booking.cancelled_by,
        "cancel_reason": booking.cancel_reason,
        "occupants": occupants,
        "attachments": [
            {
                "id": a.id,
                "file_name": a.file_name,
                "file_url": a.file_url,
                "file_type": a.file_type,
                "file_size": a.file_size,
                "description": a.description,
            }
            for a in booking.attachments
        ],
    }


def booking_bed_ids(bookings: list[BookingRequest]) -> list[str]:
    """Bed IDs referenced by the occupants of ``bookings``, for location lookup."""
    bed_ids: list[str] = []
    for booking in bookings:
        for occupant in booking.occupants:
            bed_id = occupant.placement.bed_id if occupant.placement else occupant.requested_bed_id
            if bed_id and bed_id not in bed_ids:
                bed_ids.append(bed_id)
    return bed_ids


def bed_to_dict(bed: Bed) -> dict[str, Any]:
    return {
        "id": bed.id,
        "room_id": bed.room_id,
        "code": bed.code,
        "label": bed.label,
        "position": bed.position,
        "status": bed.status.value,
    }


def transfer_option_to_dict(room: Room, bed: Bed) -> dict[str, Any]:
    return {
        "bed_id": bed.id,
        "bed_code": bed.code,
        "bed_label": bed.label,
        "room_id": room.id,
        "room_code": room.code,
        "room_name": room.name,
        "floor": room.floor,
        "building_id": room.building_id,
        "building_name": room.building_name,
    }
