"""Abstract base class for remote event sources."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.event import ChangePage


class RemoteEventSource(ABC):
    """Abstract base class for remote calendar change feeds."""

    @abstractmethod
    def list_changes(
        self,
        calendar_id: str,
        sync_token: Optional[str] = None,
        page_token: Optional[str] = None,
        page_size: int = 250,
    ) -> ChangePage:
        """
        List events changed since a sync token.

        Without a sync token the source returns a full snapshot of the
        calendar's current events. When ``next_page_token`` is set on the
        result, call again with it (and the same sync token) for the next
        page; the final page carries ``next_sync_token``.

        Args:
            calendar_id: Remote calendar ID
            sync_token: Token from the previous completed pass, or None
            page_token: Continuation token from the previous page
            page_size: Maximum events per page

        Returns:
            ChangePage with normalized events

        Raises:
            CursorInvalidated: If the sync token was rejected as expired
            RemoteSourceError: On network, timeout or server failures
            AuthenticationError: If the source rejects our credentials
        """
