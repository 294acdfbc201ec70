from __future__ import annotations


class TimeClockError(Exception):
    """Base class for every error raised by timeclock."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTransition(TimeClockError):
    """The requested clock/pause operation is not legal in the current state."""


class NotFound(TimeClockError):
    """A referenced user, session or pause does not exist in the store."""


class StoreFailure(TimeClockError):
    """The storage layer could not complete a read or write."""
