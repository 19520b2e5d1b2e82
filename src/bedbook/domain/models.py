"""Bed booking domain model.

Plain in-memory structures passed by reference within one request. The
persistence layer builds them from rows; the availability calculator and the
lifecycle state machine operate on them without any I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from bedbook.domain.errors import InvalidIntervalError


# ── Enums ─────────────────────────────────────────────────


class BookingStatus(str, Enum):
    REQUEST = "request"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_BOOKING_STATUSES = frozenset(
    {
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }
)


class OccupantStatus(str, Enum):
    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


# Occupant statuses that hold a bed
LIVE_OCCUPANT_STATUSES = (OccupantStatus.SCHEDULED, OccupantStatus.CHECKED_IN)


class BedStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


class IntervalStatus(str, Enum):
    CHECKED_IN = "checked_in"
    RESERVED = "reserved"
    PENDING = "pending"


class DayStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    PENDING = "pending"
    MAINTENANCE = "maintenance"


class GenderPolicy(str, Enum):
    MALE_ONLY = "male_only"
    FEMALE_ONLY = "female_only"
    MIXED = "mixed"
    FLEXIBLE = "flexible"


class AllocationPolicy(str, Enum):
    EMPLOYEE_ONLY = "employee_only"
    GUEST_ELIGIBLE = "guest_eligible"


class OccupantType(str, Enum):
    EMPLOYEE = "employee"
    GUEST = "guest"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class OccupantLogAction(str, Enum):
    CREATED = "created"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    EARLY_CHECKOUT = "early_checkout"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"


# ── Rooms and beds ────────────────────────────────────────


@dataclass(frozen=True)
class OccupancyInterval:
    """A bed commitment: [check_in, check_out), open-ended when check_out is None."""

    check_in: date
    check_out: date | None
    status: IntervalStatus
    occupant_id: str | None = None
    occupant_name: str | None = None

    def __post_init__(self) -> None:
        if self.check_out is not None and self.check_out <= self.check_in:
            raise InvalidIntervalError(self.check_in, self.check_out)


@dataclass(frozen=True)
class PendingRequestInterval:
    """Dates requested by a booking that has not been processed yet."""

    check_in: date
    check_out: date
    booking_id: str
    booking_code: str

    def __post_init__(self) -> None:
        if self.check_out <= self.check_in:
            raise InvalidIntervalError(self.check_in, self.check_out)


@dataclass
class Bed:
    id: str
    room_id: str
    code: str
    label: str = ""
    position: int = 0
    status: BedStatus = BedStatus.AVAILABLE
    occupancies: list[OccupancyInterval] = field(default_factory=list)
    pending_requests: list[PendingRequestInterval] = field(default_factory=list)


@dataclass
class Room:
    id: str
    building_id: str
    code: str
    name: str
    gender_policy: GenderPolicy
    allocation_policy: AllocationPolicy
    floor: int = 1
    building_name: str = ""
    area_id: str | None = None
    beds: list[Bed] = field(default_factory=list)

    @property
    def capacity(self) -> int:
        return len(self.beds)

    def find_bed(self, bed_id: str) -> Bed | None:
        for bed in self.beds:
            if bed.id == bed_id:
                return bed
        return None


# ── Bookings and occupants ────────────────────────────────


@dataclass
class Companion:
    """Employee of record who sponsors the guests of a booking."""

    nik: str
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.nik and self.nik.strip() and self.name and self.name.strip())


@dataclass
class Placement:
    building_id: str
    room_id: str
    bed_id: str

    @property
    def is_complete(self) -> bool:
        return all(
            value and value.strip()
            for value in (self.building_id, self.room_id, self.bed_id)
        )


@dataclass
class Attachment:
    id: str
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    description: str | None = None


@dataclass
class Occupant:
    id: str
    name: str
    identifier: str
    type: OccupantType
    gender: Gender
    in_date: date
    out_date: date | None
    requested_bed_id: str | None = None
    placement: Placement | None = None
    status: OccupantStatus | None = None
    booking_id: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None
    actual_check_in_at: datetime | None = None
    actual_check_out_at: datetime | None = None
    original_out_date: date | None = None
    checkout_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None

    def interval(self) -> OccupancyInterval | None:
        """The bed commitment this occupant represents, if it holds a bed."""
        if self.placement is None or self.status not in LIVE_OCCUPANT_STATUSES:
            return None
        status = (
            IntervalStatus.CHECKED_IN
            if self.status == OccupantStatus.CHECKED_IN
            else IntervalStatus.RESERVED
        )
        return OccupancyInterval(
            check_in=self.in_date,
            check_out=self.out_date,
            status=status,
            occupant_id=self.id,
            occupant_name=self.name,
        )


@dataclass
class Requester:
    user_id: str
    name: str
    nik: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    department: str | None = None


@dataclass
class BookingRequest:
    id: str
    code: str
    requester: Requester
    occupants: list[Occupant]
    requested_at: datetime
    expires_at: datetime
    status: BookingStatus = BookingStatus.REQUEST
    companion: Companion | None = None
    purpose: str | None = None
    notes: str | None = None
    attachments: list[Attachment] = field(default_factory=list)
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    reject_reason: str | None = None
    admin_notes: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None

    @property
    def has_guest(self) -> bool:
        return any(o.type == OccupantType.GUEST for o in self.occupants)

    def find_occupant(self, occupant_id: str) -> Occupant | None:
        for occupant in self.occupants:
            if occupant.id == occupant_id:
                return occupant
        return None


@dataclass(frozen=True)
class OccupantLogEntry:
    """One history line for an occupant, appended by the persistence layer."""

    occupant_id: str
    action: OccupantLogAction
    performed_by: str
    performed_at: datetime
    bed_id: str | None = None
    reason: str | None = None
    previous_out_date: date | None = None
    new_out_date: date | None = None
    from_bed_id: str | None = None
