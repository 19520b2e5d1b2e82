"""Tests for the booking service with mocked repositories."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from bedbook.domain.booking_request import AttachmentDraft, BookingDraft, OccupantDraft
from bedbook.domain.errors import BookingValidationError, NotFoundError
from bedbook.domain.models import (
    BookingStatus,
    Gender,
    OccupantStatus,
    OccupantType,
    Requester,
)
from bedbook.services import booking_service
from helpers import NOW, TODAY, make_booking, make_occupant, make_room, placement

MODULE = "bedbook.services.booking_service"


@pytest.fixture
def repos():
    with patch(f"{MODULE}.rooms_repository") as rooms, \
         patch(f"{MODULE}.bookings_repository") as bookings, \
         patch(f"{MODULE}.occupants_repository") as occupants:
        rooms.rooms_by_bed.side_effect = lambda rs: {b.id: r for r in rs for b in r.beds}
        yield MagicMock(rooms=rooms, bookings=bookings, occupants=occupants)


def _draft(**kw) -> BookingDraft:
    occupant = OccupantDraft(
        bed_id="bed-1",
        name=" Budi ",
        identifier=kw.pop("identifier", "10012345"),
        type=OccupantType.EMPLOYEE,
        gender=Gender.MALE,
        in_date=date(2024, 1, 10),
        out_date=date(2024, 1, 15),
    )
    return BookingDraft(start=date(2024, 1, 10), end=date(2024, 1, 15), occupants=[occupant], **kw)


class TestCreateBooking:
    def _create(self, draft):
        return booking_service.create_booking(
            MagicMock(),
            draft,
            requester=Requester(user_id="user-123", name="Siti"),
            now=NOW,
            today=TODAY,
            ttl=timedelta(hours=72),
            tz=ZoneInfo("Asia/Jakarta"),
        )

    def test_stores_request(self, repos):
        repos.rooms.load_rooms.return_value = [make_room()]
        repos.bookings.next_booking_code.return_value = "BK-20240105-001"

        booking = self._create(
            _draft(attachments=[AttachmentDraft("memo.pdf", "https://files/x", "application/pdf", 10)])
        )

        assert booking.status == BookingStatus.REQUEST
        assert booking.code == "BK-20240105-001"
        assert booking.expires_at == NOW + timedelta(hours=72)
        assert booking.occupants[0].name == "Budi"
        assert booking.occupants[0].booking_id == booking.id
        assert booking.occupants[0].status is None
        assert booking.attachments[0].id
        repos.bookings.insert_booking.assert_called_once()
        kwargs = repos.bookings.insert_booking.call_args.kwargs
        assert kwargs == {"check_in_date": date(2024, 1, 10), "check_out_date": date(2024, 1, 15)}

    def test_missing_identifier_gets_temporary_one(self, repos):
        repos.rooms.load_rooms.return_value = [make_room()]
        booking = self._create(_draft(identifier=None))
        occupant = booking.occupants[0]
        assert occupant.identifier == f"TEMP-{occupant.id[:8]}"

    def test_invalid_draft_stores_nothing(self, repos):
        repos.rooms.load_rooms.return_value = []
        with pytest.raises(NotFoundError):
            self._create(_draft())
        repos.bookings.next_booking_code.assert_not_called()
        repos.bookings.insert_booking.assert_not_called()


class TestGetBooking:
    def test_persists_lazy_expiry(self, repos):
        repos.bookings.get_booking.return_value = make_booking(expires_at=NOW - timedelta(hours=1))
        booking = booking_service.get_booking(MagicMock(), "bk-1", now=NOW)
        assert booking.status == BookingStatus.EXPIRED
        repos.bookings.save_booking.assert_called_once()

    def test_fresh_request_not_saved(self, repos):
        repos.bookings.get_booking.return_value = make_booking()
        booking_service.get_booking(MagicMock(), "bk-1", now=NOW)
        repos.bookings.save_booking.assert_not_called()

    def test_unknown(self, repos):
        repos.bookings.get_booking.return_value = None
        with pytest.raises(NotFoundError):
            booking_service.get_booking(MagicMock(), "bk-404", now=NOW)


class TestApproveBooking:
    def test_falls_back_to_requested_bed(self, repos):
        booking = make_booking([make_occupant(requested_bed_id="bed-1")])
        repos.bookings.get_booking.return_value = booking
        repos.rooms.load_rooms.return_value = [make_room()]

        booking_service.approve_booking(MagicMock(), "bk-1", {}, approved_by="Admin", now=NOW)

        assert booking.status == BookingStatus.APPROVED
        assert booking.occupants[0].placement == placement("bed-1")
        assert booking.occupants[0].status == OccupantStatus.SCHEDULED
        assert repos.bookings.get_booking.call_args.kwargs == {"lock": True}
        repos.occupants.save_occupant.assert_called_once()
        repos.occupants.append_log.assert_called_once()

    def test_unknown_occupant_in_placements(self, repos):
        repos.bookings.get_booking.return_value = make_booking()
        with pytest.raises(NotFoundError):
            booking_service.approve_booking(
                MagicMock(), "bk-1", {"occ-404": placement()}, approved_by="Admin", now=NOW
            )

    def test_failed_approval_writes_nothing(self, repos):
        booking = make_booking(
            [make_occupant("occ-1"), make_occupant("occ-2", requested_bed_id=None)]
        )
        repos.bookings.get_booking.return_value = booking
        repos.rooms.load_rooms.return_value = [make_room()]

        with pytest.raises(BookingValidationError):
            booking_service.approve_booking(
                MagicMock(), "bk-1", {"occ-1": placement()}, approved_by="Admin", now=NOW
            )

        assert booking.status == BookingStatus.REQUEST
        repos.bookings.save_booking.assert_not_called()
        repos.occupants.save_occupant.assert_not_called()
        repos.occupants.append_log.assert_not_called()


class TestRejectAndCancel:
    def test_reject_saves(self, repos):
        repos.bookings.get_booking.return_value = make_booking()
        booking = booking_service.reject_booking(
            MagicMock(), "bk-1", "No beds", rejected_by="Admin", now=NOW
        )
        assert booking.status == BookingStatus.REJECTED
        assert repos.bookings.save_booking.call_args.args[1] is booking

    def test_reject_blank_reason_saves_nothing(self, repos):
        repos.bookings.get_booking.return_value = make_booking()
        with pytest.raises(BookingValidationError):
            booking_service.reject_booking(MagicMock(), "bk-1", "", rejected_by="Admin", now=NOW)
        repos.bookings.save_booking.assert_not_called()

    def test_cancel_unknown(self, repos):
        repos.bookings.get_booking.return_value = None
        with pytest.raises(NotFoundError):
            booking_service.cancel_booking(MagicMock(), "bk-404", "x", cancelled_by="Siti", now=NOW)
