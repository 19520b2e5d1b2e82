"""Shared test helper functions for bedbook tests.

Plain functions (not fixtures) importable by conftest.py and test modules,
plus in-memory builders for rooms, beds and bookings.
"""

from __future__ import annotations

import base64
import time
from datetime import date, datetime, timedelta, timezone

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from bedbook.domain.models import (
    AllocationPolicy,
    Bed,
    BedStatus,
    BookingRequest,
    BookingStatus,
    Companion,
    Gender,
    GenderPolicy,
    IntervalStatus,
    Occupant,
    OccupancyInterval,
    OccupantStatus,
    OccupantType,
    PendingRequestInterval,
    Placement,
    Requester,
    Room,
)

TEST_ISSUER = "https://sso.example.com/realms/portal"
TEST_AUDIENCE = "bedbook-api"
TEST_CLIENT_ID = "bedbook-portal"
TEST_JWKS_URL = "https://sso.example.com/realms/portal/protocol/openid-connect/certs"

NOW = datetime(2024, 1, 5, 3, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 5)


# ── Tokens ────────────────────────────────────────────────


def generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    return private_key, private_key.public_key()


def create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return base64.urlsafe_b64encode(n.to_bytes(byte_length, "big")).rstrip(b"=").decode()

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = TEST_ISSUER,
    aud: str = TEST_AUDIENCE,
    exp: int | None = None,
    realm_roles: list[str] | None = None,
    client_roles: list[str] | None = None,
    **claims,
) -> str:
    """Create a signed Keycloak-style JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
        **claims,
    }
    if realm_roles is not None:
        payload["realm_access"] = {"roles": realm_roles}
    if client_roles is not None:
        payload["resource_access"] = {TEST_CLIENT_ID: {"roles": client_roles}}
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


# ── Domain builders ───────────────────────────────────────


def make_bed(
    bed_id: str = "bed-1",
    *,
    room_id: str = "room-1",
    code: str | None = None,
    status: BedStatus = BedStatus.AVAILABLE,
    occupancies: list[OccupancyInterval] | None = None,
    pending: list[PendingRequestInterval] | None = None,
    position: int = 0,
) -> Bed:
    return Bed(
        id=bed_id,
        room_id=room_id,
        code=code or bed_id.upper(),
        position=position,
        status=status,
        occupancies=occupancies or [],
        pending_requests=pending or [],
    )


def make_room(
    room_id: str = "room-1",
    *,
    building_id: str = "bldg-1",
    beds: list[Bed] | None = None,
    gender_policy: GenderPolicy = GenderPolicy.MIXED,
    allocation_policy: AllocationPolicy = AllocationPolicy.GUEST_ELIGIBLE,
) -> Room:
    return Room(
        id=room_id,
        building_id=building_id,
        code=room_id.upper(),
        name=f"Room {room_id}",
        gender_policy=gender_policy,
        allocation_policy=allocation_policy,
        building_name="Mess A",
        beds=beds if beds is not None else [make_bed(room_id=room_id)],
    )


def stay(check_in: date, check_out: date | None, status=IntervalStatus.RESERVED, **kw):
    return OccupancyInterval(check_in=check_in, check_out=check_out, status=status, **kw)


def make_occupant(
    occupant_id: str = "occ-1",
    *,
    name: str = "Budi",
    type: OccupantType = OccupantType.EMPLOYEE,
    gender: Gender = Gender.MALE,
    in_date: date = date(2024, 1, 10),
    out_date: date | None = date(2024, 1, 15),
    status: OccupantStatus | None = None,
    placement: Placement | None = None,
    requested_bed_id: str | None = "bed-1",
    booking_id: str | None = "bk-1",
) -> Occupant:
    return Occupant(
        id=occupant_id,
        name=name,
        identifier=f"ID-{occupant_id}",
        type=type,
        gender=gender,
        in_date=in_date,
        out_date=out_date,
        status=status,
        placement=placement,
        requested_bed_id=requested_bed_id,
        booking_id=booking_id,
    )


def make_booking(
    occupants: list[Occupant] | None = None,
    *,
    booking_id: str = "bk-1",
    status: BookingStatus = BookingStatus.REQUEST,
    companion: Companion | None = None,
    requested_at: datetime = NOW,
    expires_at: datetime | None = None,
) -> BookingRequest:
    return BookingRequest(
        id=booking_id,
        code="BK-20240105-001",
        requester=Requester(user_id="user-123", name="Siti", nik="12345678"),
        occupants=occupants if occupants is not None else [make_occupant()],
        requested_at=requested_at,
        expires_at=expires_at or requested_at + timedelta(hours=72),
        status=status,
        companion=companion,
        purpose="Site visit",
    )


def placement(bed_id: str = "bed-1", room_id: str = "room-1", building_id: str = "bldg-1"):
    return Placement(building_id=building_id, room_id=room_id, bed_id=bed_id)
