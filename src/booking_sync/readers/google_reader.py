"""Google Calendar change feed using the Calendar v3 REST API."""

import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import requests

from ..auth.base import AuthProvider
from ..models.event import ChangePage, EventStatus, RemoteEvent
from ..utils.date_utils import parse_event_time, parse_timestamp
from ..utils.exceptions import (
    AuthenticationError,
    CursorInvalidated,
    MalformedEventError,
    RemoteSourceError,
)
from .base import RemoteEventSource

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

# Google answers 410 Gone when a syncToken has expired
CURSOR_INVALIDATED_STATUS = 410
TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}


class GoogleCalendarEventSource(RemoteEventSource):
    """Read incremental changes from a Google Calendar."""

    def __init__(
        self,
        auth_provider: AuthProvider,
        api_base: str = GOOGLE_CALENDAR_API,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Google Calendar event source.

        Args:
            auth_provider: Provides bearer tokens for the calendar owner
            api_base: Calendar API base URL
            timeout: Per-request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.auth_provider = auth_provider
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        token = self.auth_provider.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _events_url(self, calendar_id: str) -> str:
        return f"{self.api_base}/calendars/{quote(calendar_id, safe='')}/events"

    def list_changes(
        self,
        calendar_id: str,
        sync_token: Optional[str] = None,
        page_token: Optional[str] = None,
        page_size: int = 250,
    ) -> ChangePage:
        params = {
            "showDeleted": "true",
            "singleEvents": "true",
            "maxResults": page_size,
        }
        if sync_token:
            params["syncToken"] = sync_token
        if page_token:
            params["pageToken"] = page_token

        try:
            resp = self.session.get(
                self._events_url(calendar_id),
                headers=self._headers(),
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RemoteSourceError(f"Timed out listing events for {calendar_id}") from e
        except requests.RequestException as e:
            raise RemoteSourceError(f"Failed to list events for {calendar_id}: {e}") from e

        if resp.status_code == CURSOR_INVALIDATED_STATUS:
            raise CursorInvalidated(calendar_id, sync_token)
        if resp.status_code in (401, 403):
            self.auth_provider.clear_cache()
            raise AuthenticationError(
                f"Calendar {calendar_id} rejected credentials ({resp.status_code})"
            )
        if resp.status_code in TRANSIENT_STATUSES or resp.status_code >= 500:
            raise RemoteSourceError(
                f"Calendar {calendar_id} returned {resp.status_code}: {resp.text[:200]}"
            )
        if resp.status_code != 200:
            raise RemoteSourceError(
                f"Unexpected response {resp.status_code} for {calendar_id}: {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteSourceError(
                f"Calendar {calendar_id} returned a non-JSON body: {resp.text[:200]}"
            ) from e
        if not isinstance(data, dict):
            raise RemoteSourceError(f"Calendar {calendar_id} returned an unexpected payload")

        events = []
        for item in data.get("items") or []:
            event = self._transform_event(item)
            if event is not None:
                events.append(event)

        page = ChangePage(
            events=events,
            next_page_token=data.get("nextPageToken"),
            next_sync_token=data.get("nextSyncToken"),
        )
        logger.debug(
            f"Fetched {len(events)} events for {calendar_id} "
            f"(more pages: {page.truncated})"
        )
        return page

    def watch(
        self,
        calendar_id: str,
        channel_id: str,
        address: str,
        token: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> dict:
        """
        Register a push notification channel for a calendar.

        Args:
            calendar_id: Calendar to watch
            channel_id: Unique channel id (echoed in X-Goog-Channel-ID)
            address: Public HTTPS webhook URL
            token: Shared secret echoed in X-Goog-Channel-Token
            ttl_seconds: Requested channel lifetime

        Returns:
            Channel resource returned by Google (includes resourceId, expiration)
        """
        body = {"id": channel_id, "type": "web_hook", "address": address}
        if token:
            body["token"] = token
        if ttl_seconds:
            body["params"] = {"ttl": str(ttl_seconds)}

        try:
            resp = self.session.post(
                f"{self._events_url(calendar_id)}/watch",
                headers=self._headers(),
                json=body,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            channel = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteSourceError(f"Failed to watch calendar {calendar_id}: {e}") from e

        logger.info(
            f"Watching {calendar_id} on channel {channel_id} "
            f"(expires {channel.get('expiration')})"
        )
        return channel

    def stop_channel(self, channel_id: str, resource_id: str) -> None:
        """Stop a push notification channel."""
        try:
            resp = self.session.post(
                f"{self.api_base}/channels/stop",
                headers=self._headers(),
                json={"id": channel_id, "resourceId": resource_id},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RemoteSourceError(f"Failed to stop channel {channel_id}: {e}") from e
        logger.info(f"Stopped channel {channel_id}")

    def _transform_event(self, item: dict) -> Optional[RemoteEvent]:
        """Transform a Google event resource to the normalized model."""
        if not isinstance(item, dict):
            logger.warning("Dropping non-object item from change feed")
            return None

        event_id = item.get("id")
        if not event_id:
            logger.warning("Dropping event without id from change feed")
            return None

        status = EventStatus.from_remote(item.get("status"))
        summary = item.get("summary")

        # Malformed times are left empty; the reconciler skips such events
        try:
            start, end, start_all_day = _parse_times(event_id, item)
        except MalformedEventError as e:
            logger.warning(str(e))
            start, end, start_all_day = None, None, False

        return RemoteEvent(
            external_id=str(event_id),
            status=status,
            start=start,
            end=end,
            all_day=start_all_day,
            title=summary if isinstance(summary, str) else None,
            updated=parse_timestamp(item.get("updated")),
        )


def _parse_times(event_id: str, item: dict) -> tuple[Optional[datetime], Optional[datetime], bool]:
    try:
        start, all_day = parse_event_time(item.get("start"))
        end, _ = parse_event_time(item.get("end"))
    except (ValueError, TypeError) as e:
        raise MalformedEventError(event_id, f"unparseable times ({e})") from e
    return start, end, all_day
