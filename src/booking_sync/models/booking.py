"""Local booking and sync cursor models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .event import EventStatus, RemoteEvent

DEFAULT_CUSTOMER_NAME = "Walk-in"

# Fields mirrored from the remote event and compared on every redelivery
MIRRORED_FIELDS = ("start", "end", "status")


class Booking(BaseModel):
    """A booking mirrored from a barber's remote calendar."""

    id: Optional[int] = None
    calendar_id: str
    barber_id: int
    external_id: str

    customer_name: str = DEFAULT_CUSTOMER_NAME
    start: datetime
    end: datetime
    all_day: bool = False
    status: EventStatus = EventStatus.CONFIRMED

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_remote(
        cls, event: RemoteEvent, calendar_id: str, barber_id: int
    ) -> "Booking":
        """
        Build a new booking from a remote event.

        Args:
            event: Non-cancelled remote event with start and end times
            calendar_id: Owning calendar
            barber_id: Barber that owns the calendar

        Returns:
            Unsaved Booking
        """
        return cls(
            calendar_id=calendar_id,
            barber_id=barber_id,
            external_id=event.external_id,
            customer_name=(event.title or "").strip() or DEFAULT_CUSTOMER_NAME,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
            status=event.status,
        )

    def changed_fields(self, event: RemoteEvent) -> dict:
        """Return the mirrored fields whose remote value differs from ours."""
        changes = {}
        for name in MIRRORED_FIELDS:
            remote_value = getattr(event, name)
            if remote_value != getattr(self, name):
                changes[name] = remote_value
        if changes and event.all_day != self.all_day:
            changes["all_day"] = event.all_day
        return changes


class SyncCursor(BaseModel):
    """Resumption point for one remote calendar."""

    calendar_id: str
    token: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    model_config = {"frozen": True}
