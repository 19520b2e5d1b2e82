"""QR scan flow for front-desk check-in and check-out.

Occupant QR codes carry the bare occupant ID. Codes printed by older
tickets carry a JSON object whose ``o`` field holds the ID.

Scanning never raises for expected outcomes: unknown IDs, wrong status and
early checkout all come back as a ``ScanResult`` the operator can read.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Literal

from bedbook.domain import lifecycle
from bedbook.domain.errors import InvalidTransitionError, PrematureActionError
from bedbook.domain.models import Occupant, OccupantLogEntry, OccupantStatus

logger = logging.getLogger(__name__)

ScanOutcome = Literal["checked_in", "checked_out", "not_found", "rejected"]


@dataclass
class ScanResult:
    outcome: ScanOutcome
    message: str
    scanned_input: str
    occupant: Occupant | None = None
    log_entry: OccupantLogEntry | None = None
    expected_date: date | None = None

    @property
    def changed(self) -> bool:
        return self.log_entry is not None


# Legacy payloads are a small flat object; anything else is a bare ID
MAX_LEGACY_PAYLOAD = 512


def parse_scanned_identifier(text: str) -> str:
    """Extract the occupant ID from scanned text."""
    trimmed = text.strip()
    if not (trimmed.startswith("{") and len(trimmed) <= MAX_LEGACY_PAYLOAD):
        return trimmed
    try:
        data = json.loads(trimmed)
    except (ValueError, RecursionError):
        return trimmed
    if isinstance(data, dict) and data.get("o"):
        return str(data["o"]).strip()
    return trimmed


_REJECTED_MESSAGES = {
    OccupantStatus.CHECKED_OUT: "Occupant has already checked out.",
    OccupantStatus.CANCELLED: "This reservation has been cancelled.",
}


def process_scan(
    text: str,
    lookup: Callable[[str], Occupant | None],
    *,
    performed_by: str,
    now: datetime,
    today: date,
) -> ScanResult:
    """Check an occupant in or out from a scanned code.

    A scheduled occupant is checked in; a checked-in occupant is checked
    out unless the scheduled check-out date is still ahead.

    Args:
        text: Raw scanned text.
        lookup: Finds an occupant by exact ID, None when unknown.
        performed_by: Operator name for the history log.
        now: Action timestamp.
        today: Current local date for the checkout guard.
    """
    identifier = parse_scanned_identifier(text)
    occupant = lookup(identifier) if identifier else None

    if occupant is None:
        logger.info("scan did not match an occupant")
        return ScanResult(
            outcome="not_found",
            message=f"No occupant found for scanned code: {text}",
            scanned_input=text,
        )

    if occupant.status in _REJECTED_MESSAGES:
        return ScanResult(
            outcome="rejected",
            message=_REJECTED_MESSAGES[occupant.status],
            scanned_input=text,
            occupant=occupant,
        )

    try:
        if occupant.status == OccupantStatus.CHECKED_IN:
            entry = lifecycle.check_out(
                occupant, performed_by=performed_by, now=now, today=today
            )
            return ScanResult(
                outcome="checked_out",
                message=f"{occupant.name} checked out.",
                scanned_input=text,
                occupant=occupant,
                log_entry=entry,
            )

        entry = lifecycle.check_in(occupant, performed_by=performed_by, now=now)
        return ScanResult(
            outcome="checked_in",
            message=f"{occupant.name} checked in.",
            scanned_input=text,
            occupant=occupant,
            log_entry=entry,
        )
    except PrematureActionError as exc:
        return ScanResult(
            outcome="rejected",
            message=(
                f"Not yet time to check out. Scheduled: "
                f"{exc.expected_date.strftime('%d %b %Y')}. "
                "Use the occupant detail page for an early checkout."
            ),
            scanned_input=text,
            occupant=occupant,
            expected_date=exc.expected_date,
        )
    except InvalidTransitionError as exc:
        return ScanResult(
            outcome="rejected",
            message=exc.message,
            scanned_input=text,
            occupant=occupant,
        )
