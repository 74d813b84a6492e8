class SchedulingError(Exception):
    """Base class for booking session errors."""


class SlotUnavailableError(SchedulingError):
    """Raised when a session tries to select a slot it is not currently offered."""


class BookingNetworkError(SchedulingError):
    """The booking store could not be reached or did not answer; the request may be retried."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
