"""Unit tests for the Reconciler."""
from unittest.mock import patch

import pytest

from booking_sync.models.event import EventStatus, RemoteEvent
from booking_sync.sync.decisions import Action
from booking_sync.sync.engine import Reconciler
from booking_sync.utils.exceptions import DuplicateBookingError, StoreError

from conftest import at, cancelled, confirmed


@pytest.fixture
def reconciler(booking_store):
    return Reconciler(booking_store)


class TestApplyPage:
    """Test cases for Reconciler.apply_page."""

    def test_creates_booking_from_event(self, reconciler, booking_store, calendar):
        result = reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30), "Tariq")])

        booking = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        assert result.events_created == 1
        assert booking.barber_id == 7
        assert booking.customer_name == "Tariq"
        assert booking.start == at(9)
        assert booking.end == at(9, 30)
        assert booking.status == EventStatus.CONFIRMED

    def test_missing_title_falls_back_to_walk_in(self, reconciler, booking_store, calendar):
        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30), title="  ")])

        booking = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        assert booking.customer_name == "Walk-in"

    def test_same_event_twice_creates_once(self, reconciler, booking_store, calendar):
        event = confirmed("E1", at(9), at(9, 30))

        first = reconciler.apply_page(calendar, [event])
        before = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        second = reconciler.apply_page(calendar, [event])
        after = booking_store.find_by_external_id(calendar.calendar_id, "E1")

        assert first.events_created == 1
        assert second.events_created == 0
        assert second.events_updated == 0
        assert second.events_skipped == 1
        assert after == before
        assert booking_store.list_external_ids(calendar.calendar_id) == {"E1"}

    def test_cancellation_after_confirmation_removes_booking(
        self, reconciler, booking_store, calendar
    ):
        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])

        for _ in range(3):
            reconciler.apply_page(calendar, [cancelled("E1")])
            assert booking_store.find_by_external_id(calendar.calendar_id, "E1") is None

    def test_cancellation_of_unknown_event_is_not_an_error(self, reconciler, calendar):
        result = reconciler.apply_page(calendar, [cancelled("never-seen")])

        assert result.events_deleted == 1
        assert result.ok

    def test_rescheduled_event_updates_in_place(self, reconciler, booking_store, calendar):
        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])
        original = booking_store.find_by_external_id(calendar.calendar_id, "E1")

        result = reconciler.apply_page(calendar, [confirmed("E1", at(11), at(11, 45))])

        updated = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        assert result.events_updated == 1
        assert updated.id == original.id
        assert updated.start == at(11)
        assert updated.end == at(11, 45)

    def test_malformed_event_is_skipped_and_rest_of_page_applied(
        self, reconciler, booking_store, calendar
    ):
        events = [
            RemoteEvent(external_id="BAD", status=EventStatus.CONFIRMED),
            confirmed("E2", at(10), at(10, 30)),
        ]

        result = reconciler.apply_page(calendar, events)

        assert result.events_malformed == 1
        assert result.events_created == 1
        assert booking_store.find_by_external_id(calendar.calendar_id, "BAD") is None
        assert booking_store.find_by_external_id(calendar.calendar_id, "E2") is not None

    def test_later_event_for_same_id_in_page_wins(self, reconciler, booking_store, calendar):
        events = [
            confirmed("E1", at(9), at(9, 30)),
            confirmed("E1", at(14), at(14, 30)),
        ]

        reconciler.apply_page(calendar, events)

        booking = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        assert booking.start == at(14)

    def test_bookings_are_scoped_per_calendar(
        self, reconciler, booking_store, calendar
    ):
        other = calendar.model_copy(update={"calendar_id": "dre@example.com", "barber_id": 8})

        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])
        reconciler.apply_page(other, [confirmed("E1", at(12), at(12, 30))])
        reconciler.apply_page(other, [cancelled("E1")])

        assert booking_store.find_by_external_id(calendar.calendar_id, "E1") is not None
        assert booking_store.find_by_external_id(other.calendar_id, "E1") is None

    def test_store_failure_propagates(self, reconciler, booking_store, calendar):
        with patch.object(booking_store, "create", side_effect=StoreError("disk full")):
            with pytest.raises(StoreError):
                reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])

    def test_deadline_check_runs_before_each_event(self, reconciler, calendar):
        calls = []

        reconciler.apply_page(
            calendar,
            [confirmed("E1", at(9), at(9, 30)), confirmed("E2", at(10), at(10, 30))],
            check_deadline=lambda: calls.append(1),
        )

        assert len(calls) == 2


class TestDuplicateCreate:
    """A create that loses a race falls back to updating the winner's row."""

    def test_conflict_becomes_update(self, reconciler, booking_store, calendar):
        # Simulate a concurrent pass inserting between our lookup and our create
        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])
        real_find = booking_store.find_by_external_id
        lookups = []

        def stale_then_real(calendar_id, external_id):
            lookups.append(external_id)
            if len(lookups) == 1:
                return None
            return real_find(calendar_id, external_id)

        with patch.object(booking_store, "find_by_external_id", side_effect=stale_then_real):
            decision = reconciler.apply_event(calendar, confirmed("E1", at(15), at(15, 30)))

        assert decision.action == Action.UPDATE
        booking = booking_store.find_by_external_id(calendar.calendar_id, "E1")
        assert booking.start == at(15)
        assert booking_store.list_external_ids(calendar.calendar_id) == {"E1"}

    def test_store_rejects_duplicate_create(self, reconciler, booking_store, calendar):
        from booking_sync.models.booking import Booking

        reconciler.apply_page(calendar, [confirmed("E1", at(9), at(9, 30))])

        with pytest.raises(DuplicateBookingError):
            booking_store.create(
                Booking.from_remote(
                    confirmed("E1", at(9), at(9, 30)), calendar.calendar_id, calendar.barber_id
                )
            )


class TestRemoveOrphans:
    """Test cases for Reconciler.remove_orphans."""

    def test_removes_only_unseen_bookings(self, reconciler, booking_store, calendar):
        reconciler.apply_page(
            calendar,
            [confirmed("E1", at(9), at(9, 30)), confirmed("E2", at(10), at(10, 30))],
        )

        removed = reconciler.remove_orphans(calendar, {"E1"})

        assert removed == 1
        assert booking_store.list_external_ids(calendar.calendar_id) == {"E1"}
