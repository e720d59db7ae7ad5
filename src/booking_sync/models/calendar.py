"""Barber calendar metadata model."""

from typing import Optional

from pydantic import BaseModel


class BarberCalendar(BaseModel):
    """A remote calendar mirrored into one barber's bookings."""

    name: str
    calendar_id: str
    barber_id: int

    # Push notification channel registered with the provider
    channel_id: Optional[str] = None
    channel_token: Optional[str] = None

    refresh_token: Optional[str] = None
    interval_minutes: Optional[int] = None

    model_config = {"frozen": True}
