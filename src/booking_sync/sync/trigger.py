"""Sync passes for one calendar at a time: locking, paging and cursor commit."""

import logging
import threading
import time
from typing import Callable, Iterable, Optional

from ..config import SyncSettings
from ..models.calendar import BarberCalendar
from ..readers.base import RemoteEventSource
from ..storage.cursor_store import CursorStore
from ..utils.exceptions import (
    CalendarSyncError,
    CursorInvalidated,
    StoreError,
    SyncTimeoutError,
)
from ..writers.base import BookingStore
from .engine import Reconciler, SyncResult

logger = logging.getLogger(__name__)


class _CalendarState:
    """Single-flight bookkeeping for one calendar."""

    def __init__(self):
        self.lock = threading.Lock()
        self.pending = False
        self.consecutive_failures = 0


class _Deadline:
    def __init__(self, calendar_id: str, seconds: float):
        self.calendar_id = calendar_id
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def check(self) -> None:
        if time.monotonic() > self.expires_at:
            raise SyncTimeoutError(
                f"Sync pass for {self.calendar_id} exceeded {self.seconds:.0f}s"
            )


class SyncTrigger:
    """Run sync passes, at most one at a time per calendar.

    Webhook pings and the fallback timer both land here. A trigger for a
    calendar that is already syncing is coalesced: it marks the calendar
    pending and returns, and the running pass goes around once more when it
    finishes. Different calendars sync in parallel.
    """

    def __init__(
        self,
        source: Optional[RemoteEventSource],
        store: BookingStore,
        cursors: CursorStore,
        settings: Optional[SyncSettings] = None,
        source_factory: Optional[Callable[[BarberCalendar], RemoteEventSource]] = None,
    ):
        """
        Initialize sync trigger.

        Args:
            source: Remote change feed shared by all calendars
            store: Local booking store
            cursors: Cursor store
            settings: Sync tuning (defaults from environment)
            source_factory: Builds a source per calendar (per-barber credentials)
        """
        if source is None and source_factory is None:
            raise ValueError("Either source or source_factory is required")
        self.source = source
        self.source_factory = source_factory
        self.store = store
        self.cursors = cursors
        self.settings = settings or SyncSettings()
        self.reconciler = Reconciler(store)
        self._states: dict[str, _CalendarState] = {}
        self._states_lock = threading.Lock()

    def source_for(self, calendar: BarberCalendar) -> RemoteEventSource:
        """Remote source used for a calendar."""
        if self.source_factory is not None:
            return self.source_factory(calendar)
        return self.source

    def _state(self, calendar_id: str) -> _CalendarState:
        with self._states_lock:
            state = self._states.get(calendar_id)
            if state is None:
                state = _CalendarState()
                self._states[calendar_id] = state
            return state

    def is_syncing(self, calendar_id: str) -> bool:
        return self._state(calendar_id).lock.locked()

    def consecutive_failures(self, calendar_id: str) -> int:
        return self._state(calendar_id).consecutive_failures

    def sync(self, calendar: BarberCalendar, reason: str = "manual") -> SyncResult:
        """
        Sync one calendar unless a pass for it is already running.

        Args:
            calendar: Calendar to sync
            reason: What triggered the pass (for logs)

        Returns:
            SyncResult of the last pass run, or a coalesced result if another
            pass already owns the calendar
        """
        state = self._state(calendar.calendar_id)

        # pending is only read or written under _states_lock
        with self._states_lock:
            acquired = state.lock.acquire(blocking=False)
            if acquired:
                state.pending = False
            else:
                state.pending = True

        if not acquired:
            logger.info(
                f"Sync for {calendar.name} already running, coalescing {reason} trigger"
            )
            return SyncResult(calendar_id=calendar.calendar_id, coalesced=True)

        released = False
        try:
            while True:
                result = self._run_pass(calendar, reason, state)
                with self._states_lock:
                    if not state.pending:
                        state.lock.release()
                        released = True
                        return result
                    state.pending = False
                reason = "coalesced"
                logger.info(f"Re-running sync for {calendar.name} after coalesced trigger")
        finally:
            if not released:
                state.lock.release()

    def sync_all(
        self, calendars: Iterable[BarberCalendar], reason: str = "manual"
    ) -> dict[str, SyncResult]:
        """Sync calendars one after another; a failing calendar does not stop the rest."""
        results = {}
        for calendar in calendars:
            results[calendar.name] = self.sync(calendar, reason=reason)
        return results

    def _run_pass(
        self, calendar: BarberCalendar, reason: str, state: _CalendarState
    ) -> SyncResult:
        result = SyncResult(calendar_id=calendar.calendar_id)
        logger.info(f"Starting sync for {calendar.name} ({reason})")

        try:
            cursor = self.cursors.load(calendar.calendar_id)
            token = cursor.token if cursor else None
            deadline = _Deadline(calendar.calendar_id, self.settings.pass_timeout_seconds)

            try:
                next_token = self._fetch_and_apply(calendar, token, result, deadline)
            except CursorInvalidated:
                if token is None:
                    raise
                logger.warning(
                    f"Sync token for {calendar.name} was invalidated, performing full resync"
                )
                result = SyncResult(calendar_id=calendar.calendar_id)
                next_token = self._fetch_and_apply(calendar, None, result, deadline)

            self._commit(calendar, next_token, result)

        except StoreError as e:
            state.consecutive_failures += 1
            msg = f"Local storage failure syncing {calendar.name}: {e}"
            logger.error(msg)
            result.errors.append(msg)
            return result

        except CalendarSyncError as e:
            state.consecutive_failures += 1
            msg = f"Sync failed for {calendar.name}: {e}"
            if state.consecutive_failures >= self.settings.failure_alert_threshold:
                logger.error(
                    f"{msg} ({state.consecutive_failures} consecutive failures)"
                )
            else:
                logger.warning(msg)
            result.errors.append(msg)
            return result

        except Exception as e:
            state.consecutive_failures += 1
            msg = f"Unexpected error syncing {calendar.name}: {e}"
            logger.exception(msg)
            result.errors.append(msg)
            return result

        state.consecutive_failures = 0
        logger.info(
            f"Sync complete for {calendar.name}: {result.events_read} read, "
            f"{result.events_created} created, "
            f"{result.events_updated} updated, "
            f"{result.events_deleted} deleted, "
            f"{result.events_skipped} skipped, "
            f"{result.events_malformed} malformed, "
            f"{result.orphans_removed} orphans removed"
        )
        return result

    def _fetch_and_apply(
        self,
        calendar: BarberCalendar,
        token: Optional[str],
        result: SyncResult,
        deadline: _Deadline,
    ) -> Optional[str]:
        """
        Page through the change feed, applying each page before fetching the next.

        Returns:
            The sync token to persist once everything has been applied
        """
        source = self.source_for(calendar)
        full_resync = token is None
        result.full_resync = full_resync
        seen_ids: set[str] = set()
        page_token = None

        while True:
            deadline.check()
            page = source.list_changes(
                calendar.calendar_id,
                sync_token=token,
                page_token=page_token,
                page_size=self.settings.page_size,
            )
            result.pages += 1

            if full_resync:
                seen_ids.update(event.external_id for event in page.events)

            self.reconciler.apply_page(
                calendar, page.events, result, check_deadline=deadline.check
            )

            if not page.truncated:
                break
            page_token = page.next_page_token

        if full_resync:
            result.orphans_removed = self.reconciler.remove_orphans(calendar, seen_ids)

        if not page.next_sync_token:
            logger.warning(f"No sync token returned for {calendar.name}; next pass will be full")
        return page.next_sync_token

    def _commit(
        self, calendar: BarberCalendar, token: Optional[str], result: SyncResult
    ) -> None:
        """Persist the cursor, retrying with the same token on storage errors."""
        attempts = max(self.settings.commit_retries, 1)
        for attempt in range(1, attempts + 1):
            try:
                self.cursors.save(calendar.calendar_id, token)
                result.cursor_token = token
                result.committed = True
                return
            except StoreError as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"Cursor commit for {calendar.name} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                time.sleep(self.settings.commit_retry_delay_seconds)
