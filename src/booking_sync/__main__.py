"""CLI entry point for Booking Sync application."""

import argparse
import sys
import threading
import uuid

from .auth.google_auth import GoogleAuthProvider
from .config import AppConfig, SyncConfig, config, sync_config
from .models.calendar import BarberCalendar
from .readers.google_reader import GoogleCalendarEventSource
from .storage.cursor_store import SqlCursorStore
from .storage.database import create_db_engine, create_session_factory, init_db
from .sync.scheduler import FallbackScheduler
from .sync.trigger import SyncTrigger
from .utils.exceptions import CalendarSyncError, ConfigurationError
from .utils.logging import setup_logging
from .writers.sql_store import SqlBookingStore


class GoogleSourceFactory:
    """One event source per calendar, each with its owner's credentials."""

    def __init__(self, app_config: AppConfig):
        self.app_config = app_config
        self._sources: dict[str, GoogleCalendarEventSource] = {}
        self._lock = threading.Lock()

    def __call__(self, calendar: BarberCalendar) -> GoogleCalendarEventSource:
        with self._lock:
            source = self._sources.get(calendar.calendar_id)
            if source is None:
                if not calendar.refresh_token:
                    raise ConfigurationError(
                        f"Calendar '{calendar.name}' has no refresh_token configured"
                    )
                timeout = self.app_config.sync.request_timeout_seconds
                auth = GoogleAuthProvider(
                    self.app_config.google, calendar.refresh_token, timeout=timeout
                )
                source = GoogleCalendarEventSource(
                    auth, api_base=self.app_config.google.api_base, timeout=timeout
                )
                self._sources[calendar.calendar_id] = source
            return source


def _select_calendars(names, cfg: SyncConfig, logger) -> list[BarberCalendar]:
    if not names:
        return list(cfg.calendars.values())
    selected = []
    for name in names:
        if name not in cfg.calendars:
            raise ConfigurationError(f"Unknown calendar: {name}")
        selected.append(cfg.calendars[name])
    logger.debug(f"Selected calendars: {', '.join(names)}")
    return selected


def _serve(trigger, calendars, app_config: AppConfig, cfg: SyncConfig, logger) -> int:
    import uvicorn

    from .webhook.app import create_app

    scheduler = FallbackScheduler(trigger, app_config.sync.fallback_interval_minutes)
    scheduler.start(calendars)

    # Catch up on anything missed while we were down
    for calendar in calendars:
        threading.Thread(
            target=trigger.sync, args=(calendar, "startup"), daemon=True
        ).start()

    try:
        uvicorn.run(
            create_app(trigger, cfg),
            host=app_config.webhook_host,
            port=app_config.webhook_port,
            log_config=None,
        )
    finally:
        scheduler.shutdown()
    logger.info("Webhook server stopped")
    return 0


def _watch(factory: GoogleSourceFactory, calendars, app_config: AppConfig, logger) -> int:
    if not app_config.webhook_address:
        logger.error("WEBHOOK_ADDRESS must be set to register push channels")
        return 1
    for calendar in calendars:
        channel_id = calendar.channel_id or str(uuid.uuid4())
        channel = factory(calendar).watch(
            calendar.calendar_id,
            channel_id=channel_id,
            address=app_config.webhook_address,
            token=calendar.channel_token,
        )
        print(f"{calendar.name}: channel {channel_id}")
        print(f"  Resource ID: {channel.get('resourceId')}")
        print(f"  Expires: {channel.get('expiration')}")
        if not calendar.channel_id:
            print("  Add this channel_id to sync_config.yaml to accept its notifications")
    return 0


def _print_result(name: str, result) -> None:
    print(f"\n{name}:")
    if result.coalesced:
        print("  Already syncing, trigger coalesced")
        return
    print(f"  Pages: {result.pages}{' (full resync)' if result.full_resync else ''}")
    print(f"  Events read: {result.events_read}")
    print(f"  Created: {result.events_created}")
    print(f"  Updated: {result.events_updated}")
    print(f"  Deleted: {result.events_deleted}")
    print(f"  Skipped: {result.events_skipped}")
    print(f"  Malformed: {result.events_malformed}")
    if result.full_resync:
        print(f"  Orphans removed: {result.orphans_removed}")
    print(f"  Cursor committed: {result.committed}")
    for err in result.errors:
        print(f"  ! {err}")


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Booking Sync - Mirror barber Google Calendars into local bookings"
    )
    parser.add_argument(
        "--calendar",
        nargs="*",
        help="Calendar name(s) from sync_config.yaml (default: all configured calendars)",
    )
    parser.add_argument("--init-db", action="store_true", help="Create database tables")
    parser.add_argument("--sync", action="store_true", help="Run one sync pass per calendar")
    parser.add_argument(
        "--full-resync",
        action="store_true",
        help="Discard stored cursors before syncing (implies --sync)",
    )
    parser.add_argument(
        "--reset-cursor",
        action="store_true",
        help="Discard stored cursors so the next pass is a full resync",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Register Google push notification channels",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the webhook server and fallback timer",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else config.log_level
    logger = setup_logging(level=log_level, log_file=config.log_file)

    try:
        engine = create_db_engine(config.database_url, pool_timeout=config.db_pool_timeout)
        if args.init_db:
            init_db(engine)
            if not (args.sync or args.full_resync or args.serve or args.watch or args.reset_cursor):
                return 0

        if not sync_config.has_config:
            logger.error("No sync_config.yaml found or no calendars configured")
            return 1

        calendars = _select_calendars(args.calendar, sync_config, logger)
        session_factory = create_session_factory(engine)
        cursors = SqlCursorStore(session_factory)
        factory = GoogleSourceFactory(config)
        trigger = SyncTrigger(
            None,
            SqlBookingStore(session_factory),
            cursors,
            settings=config.sync,
            source_factory=factory,
        )

        if args.reset_cursor or args.full_resync:
            for calendar in calendars:
                cursors.clear(calendar.calendar_id)
            if args.reset_cursor and not (args.full_resync or args.sync or args.serve):
                return 0

        if args.watch:
            return _watch(factory, calendars, config, logger)

        if args.sync or args.full_resync:
            results = trigger.sync_all(calendars, reason="cli")
            for name, result in results.items():
                _print_result(name, result)
            return 0 if all(r.ok for r in results.values()) else 1

        if args.serve:
            return _serve(trigger, calendars, config, sync_config, logger)

        parser.print_help()
        return 0

    except CalendarSyncError as e:
        logger.error(f"Booking sync error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
