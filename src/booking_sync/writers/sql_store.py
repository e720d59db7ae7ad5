"""Booking store backed by SQLAlchemy."""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.booking import Booking
from ..models.event import EventStatus
from ..storage.tables import BookingRow
from ..utils.date_utils import ensure_utc
from ..utils.exceptions import DuplicateBookingError, StoreError
from .base import BookingStore

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = {"customer_name", "start", "end", "all_day", "status"}


class SqlBookingStore(BookingStore):
    """Persist bookings in the ``bookings`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find_by_external_id(
        self, calendar_id: str, external_id: str
    ) -> Optional[Booking]:
        try:
            with self.session_factory() as session:
                row = session.execute(
                    select(BookingRow).where(
                        BookingRow.calendar_id == calendar_id,
                        BookingRow.external_id == external_id,
                    )
                ).scalar_one_or_none()
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to look up booking for event {external_id}: {e}") from e

    def create(self, booking: Booking) -> Booking:
        row = BookingRow(
            calendar_id=booking.calendar_id,
            barber_id=booking.barber_id,
            external_id=booking.external_id,
            customer_name=booking.customer_name,
            start=ensure_utc(booking.start),
            end=ensure_utc(booking.end),
            all_day=booking.all_day,
            status=booking.status.value,
        )
        try:
            with self.session_factory() as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                created = self._to_model(row)
        except IntegrityError as e:
            raise DuplicateBookingError(booking.calendar_id, booking.external_id) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create booking for event {booking.external_id}: {e}") from e

        logger.info(f"Created booking {created.id} for event {created.external_id}")
        return created

    def update(self, booking_id: int, fields: dict[str, Any]) -> Booking:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update booking fields: {sorted(unknown)}")

        try:
            with self.session_factory() as session:
                row = session.get(BookingRow, booking_id)
                if row is None:
                    raise StoreError(f"Booking {booking_id} no longer exists")
                for name, value in fields.items():
                    if name in ("start", "end"):
                        value = ensure_utc(value)
                    elif name == "status":
                        value = EventStatus(value).value
                    setattr(row, name, value)
                session.commit()
                session.refresh(row)
                updated = self._to_model(row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update booking {booking_id}: {e}") from e

        logger.info(f"Updated booking {booking_id}: {sorted(fields)}")
        return updated

    def delete(self, calendar_id: str, external_id: str) -> bool:
        try:
            with self.session_factory() as session:
                result = session.execute(
                    delete(BookingRow).where(
                        BookingRow.calendar_id == calendar_id,
                        BookingRow.external_id == external_id,
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete booking for event {external_id}: {e}") from e

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted booking for event {external_id}")
        return deleted

    def list_external_ids(self, calendar_id: str) -> set[str]:
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(BookingRow.external_id).where(BookingRow.calendar_id == calendar_id)
                ).scalars()
                return set(rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list bookings for calendar {calendar_id}: {e}") from e

    @staticmethod
    def _to_model(row: BookingRow) -> Booking:
        return Booking(
            id=row.id,
            calendar_id=row.calendar_id,
            barber_id=row.barber_id,
            external_id=row.external_id,
            customer_name=row.customer_name,
            start=ensure_utc(row.start),
            end=ensure_utc(row.end),
            all_day=row.all_day,
            status=EventStatus(row.status),
            created_at=ensure_utc(row.created_at) if row.created_at else None,
            updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
        )
