"""Tests for front desk occupant actions with mocked repositories."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from bedbook.domain.errors import (
    BookingValidationError,
    InvalidTransitionError,
    NotFoundError,
    PrematureActionError,
)
from bedbook.domain.models import (
    BedStatus,
    Gender,
    GenderPolicy,
    OccupantLogAction,
    OccupantStatus,
    OccupantType,
    PendingRequestInterval,
)
from bedbook.services import occupant_service
from bedbook.services.occupant_service import DirectPlacement
from helpers import NOW, make_bed, make_occupant, make_room, placement, stay

MODULE = "bedbook.services.occupant_service"


@pytest.fixture
def repos():
    with patch(f"{MODULE}.rooms_repository") as rooms, \
         patch(f"{MODULE}.occupants_repository") as occupants:
        yield MagicMock(rooms=rooms, occupants=occupants)


def _checked_in():
    return make_occupant(status=OccupantStatus.CHECKED_IN, placement=placement())


class TestCheckInOut:
    def test_check_in_persists_and_logs(self, repos):
        occupant = make_occupant(status=OccupantStatus.SCHEDULED, placement=placement())
        repos.occupants.get_occupant.return_value = occupant

        occupant_service.check_in(MagicMock(), "occ-1", performed_by="Desk", now=NOW)

        assert repos.occupants.get_occupant.call_args.kwargs == {"lock": True}
        repos.occupants.save_occupant.assert_called_once()
        entry = repos.occupants.append_log.call_args.args[1]
        assert entry.action == OccupantLogAction.CHECKED_IN

    def test_unknown_occupant(self, repos):
        repos.occupants.get_occupant.return_value = None
        with pytest.raises(NotFoundError):
            occupant_service.check_in(MagicMock(), "occ-404", performed_by="Desk", now=NOW)

    def test_premature_checkout_writes_nothing(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        with pytest.raises(PrematureActionError):
            occupant_service.check_out(
                MagicMock(), "occ-1", performed_by="Desk", now=NOW, today=date(2024, 1, 12)
            )
        repos.occupants.save_occupant.assert_not_called()
        repos.occupants.append_log.assert_not_called()

    def test_early_checkout_logged(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        occupant = occupant_service.check_out(
            MagicMock(),
            "occ-1",
            performed_by="Desk",
            now=NOW,
            today=date(2024, 1, 12),
            early_reason="Family emergency",
        )
        assert occupant.out_date == date(2024, 1, 12)
        entry = repos.occupants.append_log.call_args.args[1]
        assert entry.action == OccupantLogAction.EARLY_CHECKOUT
        assert entry.reason == "Family emergency"

    def test_cancel(self, repos):
        repos.occupants.get_occupant.return_value = make_occupant(
            status=OccupantStatus.SCHEDULED, placement=placement()
        )
        occupant = occupant_service.cancel(
            MagicMock(), "occ-1", "No show", cancelled_by="Desk", now=NOW
        )
        assert occupant.status == OccupantStatus.CANCELLED


class TestScan:
    def test_not_found_writes_nothing(self, repos):
        repos.occupants.find_occupant_by_scan.return_value = None
        result = occupant_service.scan(
            MagicMock(), "non-existent-id", performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "not_found"
        repos.occupants.save_occupant.assert_not_called()

    def test_check_in_persisted(self, repos):
        occupant = make_occupant(status=OccupantStatus.SCHEDULED, placement=placement())
        repos.occupants.find_occupant_by_scan.return_value = occupant
        result = occupant_service.scan(
            MagicMock(), "occ-1", performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "checked_in"
        repos.occupants.find_occupant_by_scan.assert_called_once()
        assert repos.occupants.find_occupant_by_scan.call_args.args[1] == "occ-1"
        repos.occupants.save_occupant.assert_called_once()
        repos.occupants.append_log.assert_called_once()


class TestPlaceDirectly:
    def _request(self, **kw) -> DirectPlacement:
        values = {
            "room_id": "room-1",
            "bed_id": "bed-1",
            "name": " Joko ",
            "identifier": " 10099999 ",
            "type": OccupantType.EMPLOYEE,
            "gender": Gender.MALE,
            "in_date": date(2024, 1, 10),
        }
        values.update(kw)
        return DirectPlacement(**values)

    def test_open_ended_placement(self, repos):
        repos.rooms.load_rooms.return_value = [make_room()]

        occupant = occupant_service.place_directly(
            MagicMock(), self._request(), performed_by="Admin", now=NOW
        )

        assert occupant.booking_id is None
        assert occupant.name == "Joko"
        assert occupant.identifier == "10099999"
        assert occupant.status == OccupantStatus.SCHEDULED
        assert repos.rooms.load_rooms.call_args.kwargs["end"] == date.max
        repos.occupants.insert_occupant.assert_called_once()
        entry = repos.occupants.append_log.call_args.args[1]
        assert entry.occupant_id == occupant.id

    def test_unknown_room(self, repos):
        repos.rooms.load_rooms.return_value = []
        with pytest.raises(NotFoundError):
            occupant_service.place_directly(
                MagicMock(), self._request(), performed_by="Admin", now=NOW
            )

    def test_taken_bed_inserts_nothing(self, repos):
        repos.rooms.load_rooms.return_value = [
            make_room(beds=[make_bed(occupancies=[stay(date(2024, 1, 1), None)])])
        ]
        with pytest.raises(BookingValidationError):
            occupant_service.place_directly(
                MagicMock(), self._request(out_date=date(2024, 1, 20)), performed_by="Admin", now=NOW
            )
        repos.occupants.insert_occupant.assert_not_called()


class TestTransfer:
    def test_transfer_persists_and_logs(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        repos.rooms.load_rooms.return_value = [
            make_room("room-2", beds=[make_bed("bed-2", room_id="room-2")])
        ]

        occupant = occupant_service.transfer(
            MagicMock(),
            "occ-1",
            placement("bed-2", "room-2"),
            "Leaking roof",
            performed_by="Admin",
            now=NOW,
        )

        assert occupant.placement.bed_id == "bed-2"
        assert repos.occupants.get_occupant.call_args.kwargs == {"lock": True}
        load_kw = repos.rooms.load_rooms.call_args.kwargs
        assert load_kw["room_ids"] == ["room-2"]
        assert (load_kw["start"], load_kw["end"]) == (date(2024, 1, 10), date(2024, 1, 15))
        assert repos.occupants.save_occupant.call_args.args[1] is occupant
        entry = repos.occupants.append_log.call_args.args[1]
        assert entry.action == OccupantLogAction.TRANSFERRED
        assert entry.from_bed_id == "bed-1"

    def test_rooms_loaded_for_extended_stay(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        repos.rooms.load_rooms.return_value = [
            make_room("room-2", beds=[make_bed("bed-2", room_id="room-2")])
        ]
        occupant_service.transfer(
            MagicMock(),
            "occ-1",
            placement("bed-2", "room-2"),
            "x",
            performed_by="Admin",
            now=NOW,
            out_date=date(2024, 1, 22),
        )
        assert repos.rooms.load_rooms.call_args.kwargs["end"] == date(2024, 1, 22)

    def test_refused_transfer_writes_nothing(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        repos.rooms.load_rooms.return_value = [
            make_room(
                "room-2",
                beds=[
                    make_bed(
                        "bed-2",
                        room_id="room-2",
                        occupancies=[stay(date(2024, 1, 11), date(2024, 1, 13))],
                    )
                ],
            )
        ]
        with pytest.raises(BookingValidationError):
            occupant_service.transfer(
                MagicMock(), "occ-1", placement("bed-2", "room-2"), "x",
                performed_by="Admin", now=NOW,
            )
        repos.occupants.save_occupant.assert_not_called()
        repos.occupants.append_log.assert_not_called()

    def test_unknown_occupant(self, repos):
        repos.occupants.get_occupant.return_value = None
        with pytest.raises(NotFoundError):
            occupant_service.transfer(
                MagicMock(), "occ-404", placement("bed-2", "room-2"), "x",
                performed_by="Admin", now=NOW,
            )


class TestTransferOptions:
    def _area_rooms(self):
        current = make_room(
            beds=[make_bed("bed-1"), make_bed("bed-3")],
        )
        female = make_room(
            "room-2",
            gender_policy=GenderPolicy.FEMALE_ONLY,
            beds=[make_bed("bed-4", room_id="room-2")],
        )
        mixed = make_room(
            "room-3",
            beds=[
                make_bed("bed-5", room_id="room-3", status=BedStatus.MAINTENANCE),
                make_bed(
                    "bed-6",
                    room_id="room-3",
                    occupancies=[stay(date(2024, 1, 14), date(2024, 1, 16))],
                ),
                make_bed(
                    "bed-7",
                    room_id="room-3",
                    pending=[
                        PendingRequestInterval(
                            check_in=date(2024, 1, 10),
                            check_out=date(2024, 1, 12),
                            booking_id="bk-9",
                            booking_code="BK-20240105-009",
                        )
                    ],
                ),
                make_bed("bed-8", room_id="room-3"),
            ],
        )
        return [current, female, mixed]

    def test_free_compatible_beds_in_area(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        current_room = make_room()
        current_room.area_id = "area-1"
        repos.rooms.load_rooms.side_effect = [[current_room], self._area_rooms()]

        options = occupant_service.transfer_options(MagicMock(), "occ-1", now=NOW)

        assert [(room.id, bed.id) for room, bed in options] == [
            ("room-1", "bed-3"),
            ("room-3", "bed-7"),
            ("room-3", "bed-8"),
        ]
        area_kw = repos.rooms.load_rooms.call_args.kwargs
        assert area_kw["area_id"] == "area-1"
        assert area_kw["building_id"] is None
        assert repos.occupants.get_occupant.call_args.kwargs == {}

    def test_building_used_without_area(self, repos):
        repos.occupants.get_occupant.return_value = _checked_in()
        repos.rooms.load_rooms.side_effect = [[make_room()], []]

        assert occupant_service.transfer_options(MagicMock(), "occ-1", now=NOW) == []
        area_kw = repos.rooms.load_rooms.call_args.kwargs
        assert area_kw["area_id"] is None
        assert area_kw["building_id"] == "bldg-1"

    def test_checked_out_occupant_has_no_options(self, repos):
        repos.occupants.get_occupant.return_value = make_occupant(
            status=OccupantStatus.CHECKED_OUT, placement=placement()
        )
        with pytest.raises(InvalidTransitionError):
            occupant_service.transfer_options(MagicMock(), "occ-1", now=NOW)
        repos.rooms.load_rooms.assert_not_called()
