"""Custom exceptions for Booking Sync application."""

from typing import Optional


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""


class AuthenticationError(CalendarSyncError):
    """Raised when obtaining calendar credentials fails."""


class ConfigurationError(CalendarSyncError):
    """Raised when configuration is invalid."""


class RemoteSourceError(CalendarSyncError):
    """Raised when the remote calendar cannot be read (network, timeout, 5xx).

    Transient: the pass is aborted and retried on the next trigger.
    """


class CursorInvalidated(RemoteSourceError):
    """Raised when the remote calendar rejects a sync token as expired."""

    def __init__(self, calendar_id: str, token: Optional[str] = None):
        super().__init__(f"Sync token rejected for calendar {calendar_id}")
        self.calendar_id = calendar_id
        self.token = token


class StoreError(CalendarSyncError):
    """Raised when local booking or cursor storage fails."""


class DuplicateBookingError(StoreError):
    """Raised when a booking already exists for (calendar_id, external_id)."""

    def __init__(self, calendar_id: str, external_id: str):
        super().__init__(
            f"Booking for event {external_id} already exists in calendar {calendar_id}"
        )
        self.calendar_id = calendar_id
        self.external_id = external_id


class SyncTimeoutError(CalendarSyncError):
    """Raised when a sync pass exceeds its deadline."""


class MalformedEventError(CalendarSyncError):
    """Raised when a remote event lacks the fields needed to mirror it."""

    def __init__(self, external_id: str, reason: str):
        super().__init__(f"Malformed event {external_id}: {reason}")
        self.external_id = external_id
        self.reason = reason
