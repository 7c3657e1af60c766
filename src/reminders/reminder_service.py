"""Reminder service that wires tracker, dispatcher and monitor together.

This module provides the main ReminderService class: it owns the single
eligibility tracker of the process and hands it to both the dispatcher
(which records deliveries) and the monitor (which checks them).
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from config.config import CalendarConfig, RemindersConfig
from src.models.reminders import BatchSummary
from src.reminders.eligibility import InMemoryReminderTracker, ReminderRuleTable, ReminderTracker
from src.reminders.event_monitor import CalendarSource, EventMonitor, utc_now
from src.reminders.notification_dispatcher import Messenger, NotificationDispatcher
from src.utils.date_parser import get_timezone
from src.utils.logger import log_info, log_debug


class ReminderService:
    """Main service for checking and sending reminders.

    This service:
    - Builds the rule table from configuration
    - Owns the eligibility tracker shared by monitor and dispatcher
    - Runs batches on demand and, optionally, from a polling loop
    """

    def __init__(
        self,
        calendar: CalendarSource,
        messenger: Messenger,
        config: RemindersConfig,
        calendar_config: CalendarConfig,
        tracker: Optional[ReminderTracker] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """Initialize the reminder service.

        Args:
            calendar: Source of upcoming calendar entries
            messenger: Fan-out sink for reminder messages
            config: Reminders configuration
            calendar_config: Calendar configuration (timezone, look-ahead)
            tracker: Eligibility store; a fresh in-memory one by default
            clock: Source of "now"
        """
        self.config = config
        self.zone = get_timezone(calendar_config.timezone)
        self.tracker = tracker or InMemoryReminderTracker()
        self.rules = ReminderRuleTable.from_config(config)

        self.dispatcher = NotificationDispatcher(
            messenger=messenger,
            tracker=self.tracker,
            zone=self.zone,
            team_name=config.team_name,
        )
        self.monitor = EventMonitor(
            calendar=calendar,
            dispatcher=self.dispatcher,
            tracker=self.tracker,
            rules=self.rules,
            zone=self.zone,
            look_ahead_days=calendar_config.look_ahead_days,
            check_interval_seconds=config.check_interval_seconds,
            clock=clock,
        )

        self._is_started = False

        log_info("ReminderService initialized")

    @property
    def is_started(self) -> bool:
        return self._is_started

    async def start(self) -> None:
        """Start the reminder service."""
        if self._is_started:
            log_debug("ReminderService already started")
            return

        if not self.config.enabled:
            log_info("Reminders disabled in configuration")
            return

        if self.config.background_polling:
            await self.monitor.start()
        else:
            log_info("Background polling disabled; reminders run only when triggered")

        self._is_started = True
        log_info("ReminderService started successfully")

    async def stop(self) -> None:
        """Stop the reminder service."""
        if not self._is_started:
            return

        await self.monitor.stop()

        self._is_started = False
        log_info("ReminderService stopped")

    async def check_reminders(self, now: Optional[datetime] = None) -> BatchSummary:
        """Run one reminder batch (timer, manual trigger or CLI)."""
        return await self.monitor.process_upcoming_events(now=now)

    def get_stats(self) -> Dict[str, Any]:
        """Get reminder service statistics.

        Returns:
            Dictionary with service stats
        """
        last = self.monitor.last_summary
        return {
            **self.tracker.get_stats(),
            "isStarted": self._is_started,
            "enabled": self.config.enabled,
            "polling": {
                "running": self.monitor.is_running,
                "intervalSeconds": self.config.check_interval_seconds,
            },
            "rules": self.rules.describe(),
            "batchesRun": self.monitor.batches_run,
            "lastBatch": {
                "timestamp": last.timestamp.isoformat(),
                "processed": last.processed,
                "total": last.total,
                "totalRemindersSent": last.total_reminders_sent,
            } if last else None,
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
