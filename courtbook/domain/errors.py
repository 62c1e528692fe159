class ReservationError(Exception):
    """Base class for user-facing booking errors.

    Each subclass carries a stable ``code``; ``message`` is safe to show to
    callers.
    """

    code = "internal"
    default_message = "internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedInputError(ReservationError):
    code = "malformed-input"
    default_message = "invalid date format, use an ISO 8601 string with an offset"


class InvalidRangeError(ReservationError):
    code = "invalid-range"
    default_message = "end time must be after start time"


class NotInFutureError(ReservationError):
    code = "not-in-future"
    default_message = "reservation must be in the future"


class DurationOutOfBoundsError(ReservationError):
    code = "duration-out-of-bounds"
    default_message = "duration is out of bounds"


class CourtNotFoundError(ReservationError):
    code = "court-not-found"
    default_message = "court not found"


class CourtAlreadyExistsError(ReservationError):
    code = "already-exists"
    default_message = "court already exists"


class SlotUnavailableError(ReservationError):
    code = "slot-unavailable"
    default_message = "court is already booked for that time"


class NotFoundError(ReservationError):
    code = "not-found"
    default_message = "not found"


class PermissionDeniedError(ReservationError):
    code = "permission-denied"
    default_message = "permission denied"


class UnauthenticatedError(ReservationError):
    code = "unauthenticated"
    default_message = "authentication required"


class InvalidStateError(ReservationError):
    code = "invalid-state"
    default_message = "reservation can no longer be changed"


class CancellationWindowClosedError(ReservationError):
    code = "cancellation-window-closed"
    default_message = "cancellation window closed"


class InternalError(ReservationError):
    code = "internal"
    default_message = "internal server error"
