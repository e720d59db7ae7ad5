"""Periodic fallback sync for calendars whose push notifications were missed."""

import logging
from typing import Iterable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from ..models.calendar import BarberCalendar
from .trigger import SyncTrigger

logger = logging.getLogger(__name__)


def _job_id(calendar: BarberCalendar) -> str:
    return f"calendar_sync:{calendar.calendar_id}"


class FallbackScheduler:
    """Run ``SyncTrigger.sync`` for every calendar on a fixed interval."""

    def __init__(
        self,
        trigger: SyncTrigger,
        default_interval_minutes: int = 15,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.trigger = trigger
        self.default_interval_minutes = default_interval_minutes
        self.scheduler = scheduler or BackgroundScheduler()

    def add_calendar(self, calendar: BarberCalendar) -> None:
        minutes = calendar.interval_minutes or self.default_interval_minutes
        self.scheduler.add_job(
            self.trigger.sync,
            "interval",
            minutes=minutes,
            id=_job_id(calendar),
            args=[calendar],
            kwargs={"reason": "timer"},
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Fallback sync for {calendar.name} every {minutes} min")

    def remove_calendar(self, calendar: BarberCalendar) -> None:
        self.scheduler.remove_job(_job_id(calendar))

    def start(self, calendars: Iterable[BarberCalendar]) -> None:
        for calendar in calendars:
            self.add_calendar(calendar)
        self.scheduler.start()
        logger.info("Fallback sync scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Fallback sync scheduler stopped")
