"""Abstract base class for local booking stores."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models.booking import Booking


class BookingStore(ABC):
    """Abstract base class for booking stores.

    Every operation is scoped to one calendar and commits on its own.
    """

    @abstractmethod
    def find_by_external_id(
        self, calendar_id: str, external_id: str
    ) -> Optional[Booking]:
        """
        Look up a booking by its remote event id.

        Args:
            calendar_id: Owning calendar
            external_id: Remote event id

        Returns:
            Booking, or None if no booking mirrors this event

        Raises:
            StoreError: If the lookup fails
        """

    @abstractmethod
    def create(self, booking: Booking) -> Booking:
        """
        Insert a new booking.

        Args:
            booking: Booking to insert (``id`` is ignored)

        Returns:
            The stored Booking with its local id

        Raises:
            DuplicateBookingError: If (calendar_id, external_id) already exists
            StoreError: If the insert fails for any other reason
        """

    @abstractmethod
    def update(self, booking_id: int, fields: dict[str, Any]) -> Booking:
        """
        Update a booking in place.

        Args:
            booking_id: Local booking id
            fields: Field names and new values

        Returns:
            The updated Booking

        Raises:
            StoreError: If the booking is gone or the update fails
        """

    @abstractmethod
    def delete(self, calendar_id: str, external_id: str) -> bool:
        """
        Hard-delete the booking mirroring a remote event.

        Args:
            calendar_id: Owning calendar
            external_id: Remote event id

        Returns:
            True if a booking was deleted, False if none existed

        Raises:
            StoreError: If the delete fails
        """

    @abstractmethod
    def list_external_ids(self, calendar_id: str) -> set[str]:
        """Return the remote event ids of all bookings in a calendar."""
