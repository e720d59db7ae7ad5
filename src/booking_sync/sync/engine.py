"""Reconciliation of remote calendar changes into local bookings."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ..models.booking import Booking
from ..models.calendar import BarberCalendar
from ..models.event import RemoteEvent
from ..utils.exceptions import DuplicateBookingError
from ..writers.base import BookingStore
from .decisions import Action, Decision, decide

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a sync operation."""

    calendar_id: str = ""
    events_read: int = 0
    events_created: int = 0
    events_updated: int = 0
    events_deleted: int = 0
    events_skipped: int = 0
    events_malformed: int = 0
    orphans_removed: int = 0
    pages: int = 0
    full_resync: bool = False
    cursor_token: Optional[str] = None
    committed: bool = False
    coalesced: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Reconciler:
    """Apply pages of remote events to a booking store.

    Each event is decided and applied on its own; the store commits every
    operation individually, so replaying a page after a partial failure
    converges to the same state.
    """

    def __init__(self, store: BookingStore):
        """
        Initialize reconciler.

        Args:
            store: Local booking store
        """
        self.store = store

    def apply_page(
        self,
        calendar: BarberCalendar,
        events: Iterable[RemoteEvent],
        result: Optional[SyncResult] = None,
        check_deadline: Optional[Callable[[], None]] = None,
    ) -> SyncResult:
        """
        Apply one page of remote events.

        Events for the same external id within a page are applied in page
        order, so the later one wins.

        Args:
            calendar: Calendar the events belong to
            events: Remote events from one page
            result: Result to accumulate counters into
            check_deadline: Called before each event; raises to abort

        Returns:
            SyncResult with updated counters

        Raises:
            StoreError: If the booking store fails (aborts the pass)
        """
        result = result or SyncResult(calendar_id=calendar.calendar_id)

        for event in events:
            if check_deadline:
                check_deadline()
            result.events_read += 1
            decision = self.apply_event(calendar, event)
            self._count(result, decision)

        return result

    def apply_event(self, calendar: BarberCalendar, event: RemoteEvent) -> Decision:
        """
        Decide and apply a single remote event.

        Safe to retry: applying the same event twice leaves the same booking.

        Returns:
            The decision that was applied
        """
        existing = None
        if not event.is_cancelled:
            existing = self.store.find_by_external_id(calendar.calendar_id, event.external_id)

        decision = decide(event, existing)
        try:
            self._dispatch(calendar, decision)
        except DuplicateBookingError:
            # A concurrent or retried pass created it first; re-decide against it
            logger.info(
                f"Event {event.external_id} already stored in {calendar.calendar_id}, "
                "updating existing booking instead"
            )
            existing = self.store.find_by_external_id(calendar.calendar_id, event.external_id)
            decision = decide(event, existing)
            self._dispatch(calendar, decision)

        return decision

    def _dispatch(self, calendar: BarberCalendar, decision: Decision) -> None:
        event = decision.event

        if decision.action == Action.DELETE:
            deleted = self.store.delete(calendar.calendar_id, event.external_id)
            if not deleted:
                logger.debug(f"Cancelled event {event.external_id} had no booking")

        elif decision.action == Action.CREATE:
            self.store.create(
                Booking.from_remote(event, calendar.calendar_id, calendar.barber_id)
            )

        elif decision.action == Action.UPDATE:
            self.store.update(decision.existing.id, decision.changes)

        elif decision.malformed:
            logger.warning(
                f"Skipping malformed event {event.external_id} in "
                f"{calendar.calendar_id}: missing start or end time"
            )

    @staticmethod
    def _count(result: SyncResult, decision: Decision) -> None:
        if decision.action == Action.CREATE:
            result.events_created += 1
        elif decision.action == Action.UPDATE:
            result.events_updated += 1
        elif decision.action == Action.DELETE:
            result.events_deleted += 1
        elif decision.malformed:
            result.events_malformed += 1
        else:
            result.events_skipped += 1

    def remove_orphans(self, calendar: BarberCalendar, seen_ids: set[str]) -> int:
        """
        Delete bookings absent from a full snapshot.

        Only valid after a full listing: a full snapshot lists every event
        still on the calendar, so anything stored but unseen was removed
        remotely.

        Args:
            calendar: Calendar that was fully listed
            seen_ids: External ids present in the snapshot, cancelled or not

        Returns:
            Number of bookings removed
        """
        orphans = self.store.list_external_ids(calendar.calendar_id) - seen_ids
        removed = 0
        for external_id in sorted(orphans):
            if self.store.delete(calendar.calendar_id, external_id):
                removed += 1
        if removed:
            logger.info(f"Removed {removed} orphaned bookings from {calendar.calendar_id}")
        return removed
