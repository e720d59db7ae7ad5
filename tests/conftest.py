"""Shared fixtures for booking sync tests."""
from datetime import datetime
from typing import Optional

import pytest
import pytz

from booking_sync.config import SyncSettings
from booking_sync.models.calendar import BarberCalendar
from booking_sync.models.event import ChangePage, EventStatus, RemoteEvent
from booking_sync.readers.base import RemoteEventSource
from booking_sync.storage.cursor_store import SqlCursorStore
from booking_sync.storage.database import create_db_engine, create_session_factory, init_db
from booking_sync.sync.trigger import SyncTrigger
from booking_sync.utils.exceptions import CursorInvalidated
from booking_sync.writers.sql_store import SqlBookingStore


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    """UTC datetime on January 2024."""
    return datetime(2024, 1, day, hour, minute, tzinfo=pytz.utc)


def confirmed(external_id: str, start: datetime, end: datetime, title: str = "Jay") -> RemoteEvent:
    return RemoteEvent(
        external_id=external_id,
        status=EventStatus.CONFIRMED,
        start=start,
        end=end,
        title=title,
    )


def cancelled(external_id: str) -> RemoteEvent:
    return RemoteEvent(external_id=external_id, status=EventStatus.CANCELLED)


class FakeEventSource(RemoteEventSource):
    """Scripted change feed.

    ``feeds`` maps a sync token (None for a full listing) to a list of pages.
    Pages are ChangePage objects or exceptions to raise. Page tokens are
    generated as ``"<sync token>#<page index>"``.
    """

    def __init__(self, feeds: Optional[dict] = None):
        self.feeds = feeds or {}
        self.calls = []
        self.invalid_tokens = set()

    def list_changes(self, calendar_id, sync_token=None, page_token=None, page_size=250):
        self.calls.append((calendar_id, sync_token, page_token))
        if sync_token in self.invalid_tokens:
            raise CursorInvalidated(calendar_id, sync_token)

        pages = self.feeds[sync_token]
        index = int(page_token.split("#")[1]) if page_token else 0
        page = pages[index]
        if isinstance(page, Exception):
            raise page

        if index + 1 < len(pages):
            return ChangePage(events=page.events, next_page_token=f"{sync_token}#{index + 1}")
        return page


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def booking_store(session_factory):
    return SqlBookingStore(session_factory)


@pytest.fixture
def cursor_store(session_factory):
    return SqlCursorStore(session_factory)


@pytest.fixture
def calendar():
    return BarberCalendar(
        name="marcus",
        calendar_id="marcus@example.com",
        barber_id=7,
        channel_id="chan-marcus",
        channel_token="s3cret",
    )


@pytest.fixture
def settings():
    return SyncSettings(
        page_size=2,
        pass_timeout_seconds=30,
        failure_alert_threshold=3,
        commit_retries=3,
        commit_retry_delay_seconds=0,
    )


@pytest.fixture
def source():
    return FakeEventSource()


@pytest.fixture
def trigger(source, booking_store, cursor_store, settings):
    return SyncTrigger(source, booking_store, cursor_store, settings=settings)
