"""Normalized remote calendar event data model."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    """Event status enumeration.

    Remote statuses collapse to this binary; Google's ``tentative`` is
    treated as confirmed.
    """

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @classmethod
    def from_remote(cls, value: Optional[str]) -> "EventStatus":
        if value == "cancelled":
            return cls.CANCELLED
        return cls.CONFIRMED


class RemoteEvent(BaseModel):
    """A single change reported by the remote calendar."""

    external_id: str
    status: EventStatus = EventStatus.CONFIRMED

    # Cancelled deltas usually omit times
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: bool = False

    title: Optional[str] = None
    updated: Optional[datetime] = None

    model_config = {"frozen": True}

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED

    @property
    def has_times(self) -> bool:
        return self.start is not None and self.end is not None


class ChangePage(BaseModel):
    """One page of a change listing."""

    events: list[RemoteEvent] = Field(default_factory=list)
    next_page_token: Optional[str] = None
    next_sync_token: Optional[str] = None

    @property
    def truncated(self) -> bool:
        """True when more pages follow for this listing."""
        return self.next_page_token is not None
