"""Per-calendar sync cursor persistence."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.booking import SyncCursor
from ..utils.date_utils import ensure_utc, utcnow
from ..utils.exceptions import StoreError
from .tables import SyncCursorRow

logger = logging.getLogger(__name__)


class CursorStore(ABC):
    """Abstract base class for cursor stores."""

    @abstractmethod
    def load(self, calendar_id: str) -> Optional[SyncCursor]:
        """
        Load the cursor for a calendar.

        Args:
            calendar_id: Remote calendar ID

        Returns:
            SyncCursor, or None if the calendar was never synced

        Raises:
            StoreError: If the cursor cannot be read
        """

    @abstractmethod
    def save(self, calendar_id: str, token: Optional[str]) -> SyncCursor:
        """
        Atomically replace the cursor for a calendar (last writer wins).

        Args:
            calendar_id: Remote calendar ID
            token: New sync token

        Returns:
            The persisted SyncCursor

        Raises:
            StoreError: If the cursor cannot be written
        """

    @abstractmethod
    def clear(self, calendar_id: str) -> None:
        """Forget the cursor so the next pass performs a full listing."""


class SqlCursorStore(CursorStore):
    """Cursor store backed by the ``sync_cursors`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load(self, calendar_id: str) -> Optional[SyncCursor]:
        try:
            with self.session_factory() as session:
                row = session.get(SyncCursorRow, calendar_id)
                if row is None:
                    return None
                return SyncCursor(
                    calendar_id=row.calendar_id,
                    token=row.token,
                    last_synced_at=ensure_utc(row.last_synced_at) if row.last_synced_at else None,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load cursor for {calendar_id}: {e}") from e

    def save(self, calendar_id: str, token: Optional[str]) -> SyncCursor:
        synced_at = utcnow()
        try:
            try:
                self._upsert(calendar_id, token, synced_at)
            except IntegrityError:
                # Another writer inserted the row first; overwrite it
                self._upsert(calendar_id, token, synced_at)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save cursor for {calendar_id}: {e}") from e

        logger.debug(f"Cursor for {calendar_id} saved")
        return SyncCursor(calendar_id=calendar_id, token=token, last_synced_at=synced_at)

    def _upsert(self, calendar_id, token, synced_at) -> None:
        with self.session_factory() as session, session.begin():
            row = session.get(SyncCursorRow, calendar_id)
            if row is None:
                session.add(
                    SyncCursorRow(calendar_id=calendar_id, token=token, last_synced_at=synced_at)
                )
            else:
                row.token = token
                row.last_synced_at = synced_at

    def clear(self, calendar_id: str) -> None:
        try:
            with self.session_factory() as session, session.begin():
                row = session.get(SyncCursorRow, calendar_id)
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to clear cursor for {calendar_id}: {e}") from e
        logger.info(f"Cursor for {calendar_id} cleared")
