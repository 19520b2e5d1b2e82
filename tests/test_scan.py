"""Tests for the QR scan flow."""

from __future__ import annotations

import json
from datetime import date

from bedbook.domain.models import OccupantStatus
from bedbook.domain.scan import parse_scanned_identifier, process_scan
from helpers import NOW, make_occupant, placement

OCCUPANT_ID = "6f1c2d3e-0000-4000-8000-000000000001"


def _lookup_for(*occupants):
    by_id = {o.id: o for o in occupants}
    return lambda identifier: by_id.get(identifier)


def _placed(status: OccupantStatus):
    return make_occupant(OCCUPANT_ID, status=status, placement=placement())


class TestParseScannedIdentifier:
    def test_bare_id(self):
        assert parse_scanned_identifier(f"  {OCCUPANT_ID}\n") == OCCUPANT_ID

    def test_legacy_json_payload(self):
        assert parse_scanned_identifier(json.dumps({"o": OCCUPANT_ID, "v": 1})) == OCCUPANT_ID

    def test_json_without_id_kept_as_text(self):
        assert parse_scanned_identifier('{"x": 1}') == '{"x": 1}'

    def test_deeply_nested_input_kept_as_text(self):
        text = "[" * 100000
        assert parse_scanned_identifier(text) == text

    def test_deeply_nested_object_kept_as_text(self):
        text = '{"o":' * 100
        assert parse_scanned_identifier(text) == text


class TestProcessScan:
    def test_unknown_code_not_found(self):
        result = process_scan(
            "non-existent-id", _lookup_for(), performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "not_found"
        assert "non-existent-id" in result.message
        assert result.occupant is None
        assert not result.changed

    def test_scheduled_checks_in(self):
        occupant = _placed(OccupantStatus.SCHEDULED)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "checked_in"
        assert occupant.status == OccupantStatus.CHECKED_IN
        assert result.changed

    def test_checked_in_checks_out_on_schedule(self):
        occupant = _placed(OccupantStatus.CHECKED_IN)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 15)
        )
        assert result.outcome == "checked_out"
        assert occupant.status == OccupantStatus.CHECKED_OUT

    def test_early_checkout_refused_with_date(self):
        occupant = _placed(OccupantStatus.CHECKED_IN)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 12)
        )
        assert result.outcome == "rejected"
        assert result.expected_date == date(2024, 1, 15)
        assert "15 Jan 2024" in result.message
        assert occupant.status == OccupantStatus.CHECKED_IN
        assert not result.changed

    def test_checked_out_rejected(self):
        occupant = _placed(OccupantStatus.CHECKED_OUT)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 16)
        )
        assert result.outcome == "rejected"
        assert occupant.status == OccupantStatus.CHECKED_OUT

    def test_cancelled_rejected(self):
        occupant = _placed(OccupantStatus.CANCELLED)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "rejected"
        assert "cancelled" in result.message

    def test_unplaced_occupant_rejected(self):
        occupant = make_occupant(OCCUPANT_ID)
        result = process_scan(
            OCCUPANT_ID, _lookup_for(occupant), performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "rejected"
        assert occupant.status is None

    def test_legacy_json_checks_in(self):
        occupant = _placed(OccupantStatus.SCHEDULED)
        result = process_scan(
            json.dumps({"o": OCCUPANT_ID}),
            _lookup_for(occupant),
            performed_by="Desk",
            now=NOW,
            today=date(2024, 1, 10),
        )
        assert result.outcome == "checked_in"

    def test_garbage_input_not_found(self):
        text = "[" * 100000
        result = process_scan(
            text, _lookup_for(), performed_by="Desk", now=NOW, today=date(2024, 1, 10)
        )
        assert result.outcome == "not_found"
        assert result.scanned_input == text
