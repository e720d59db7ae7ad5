"""
Google Calendar push notification endpoint.

Notifications only say "this calendar changed"; the body is empty and the
interesting bits are in the X-Goog-* headers. Each accepted ping schedules
a sync pass for the calendar behind the channel and returns immediately.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, FastAPI, Header, HTTPException

from ..config import SyncConfig
from ..sync.trigger import SyncTrigger

logger = logging.getLogger(__name__)

# Sent once when a channel is created; nothing to fetch yet
HANDSHAKE_STATE = "sync"


def create_router(trigger: SyncTrigger, sync_config: SyncConfig) -> APIRouter:
    router = APIRouter(prefix="/webhooks", tags=["calendar-webhooks"])

    @router.post("/google-calendar")
    async def handle_google_calendar_webhook(
        background_tasks: BackgroundTasks,
        x_goog_channel_id: Optional[str] = Header(None),
        x_goog_channel_token: Optional[str] = Header(None),
        x_goog_resource_state: Optional[str] = Header(None),
        x_goog_message_number: Optional[str] = Header(None),
    ):
        """
        Handle a Google Calendar push notification.

        Security:
        - Channel id must belong to a configured calendar
        - Channel token is compared in constant time when configured
        """
        if not x_goog_channel_id:
            raise HTTPException(status_code=400, detail="Missing X-Goog-Channel-ID")

        calendar = sync_config.by_channel_id(x_goog_channel_id)
        if calendar is None:
            logger.warning(f"Notification for unknown channel {x_goog_channel_id}")
            raise HTTPException(status_code=404, detail="Unknown channel")

        if calendar.channel_token and not hmac.compare_digest(
            calendar.channel_token.encode(), (x_goog_channel_token or "").encode()
        ):
            logger.warning(f"Channel token mismatch for {calendar.name}")
            raise HTTPException(status_code=403, detail="Invalid channel token")

        if x_goog_resource_state == HANDSHAKE_STATE:
            logger.info(f"Channel {x_goog_channel_id} handshake for {calendar.name}")
            return {"status": "ok"}

        logger.debug(
            f"Notification #{x_goog_message_number} for {calendar.name} "
            f"({x_goog_resource_state})"
        )
        background_tasks.add_task(trigger.sync, calendar, "webhook")
        return {"status": "accepted"}

    return router


def create_app(trigger: SyncTrigger, sync_config: SyncConfig) -> FastAPI:
    """Build the webhook application."""
    app = FastAPI(title="Booking Sync", version="1.0.0")
    app.include_router(create_router(trigger, sync_config))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
