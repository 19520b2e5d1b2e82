"""Domain errors.

Every error here is a recoverable, caller-visible outcome. Guards raise
before any mutation, so the aggregate is unchanged when one propagates.
"""

from __future__ import annotations

from datetime import date


class BookingError(Exception):
    """Base class for bed booking domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BookingValidationError(BookingError):
    """Raised when input violates a booking constraint."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(BookingError):
    """Raised when a booking, occupant, room or bed does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found (ID: {identifier})")


class InvalidTransitionError(BookingError):
    """Raised when the current status does not permit the requested action."""

    def __init__(self, action: str, current_status: str) -> None:
        self.action = action
        self.current_status = current_status
        super().__init__(f"Cannot {action}: status is {current_status}")


class PrematureActionError(BookingError):
    """Raised when an action is attempted before its scheduled date."""

    def __init__(self, action: str, expected_date: date) -> None:
        self.action = action
        self.expected_date = expected_date
        super().__init__(
            f"Too early to {action}. Scheduled: {expected_date.strftime('%d %b %Y')}"
        )


class InvalidIntervalError(ValueError):
    """Raised when an interval ends on or before its start."""

    def __init__(self, check_in: date, check_out: date) -> None:
        self.check_in = check_in
        self.check_out = check_out
        super().__init__(
            f"check-out {check_out.isoformat()} must be after check-in {check_in.isoformat()}"
        )
