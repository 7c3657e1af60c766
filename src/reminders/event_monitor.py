"""Event monitor: one reminder batch over the upcoming calendar entries.

A batch fetches every entry inside the look-ahead window, classifies it,
measures its distance to the due instant, asks the tracker whether that
trigger point is still due and, if so, hands it to the dispatcher. The same
batch runs from the in-process polling loop, the timer endpoint and the
manual endpoint.
"""

import asyncio
from datetime import datetime, timezone, tzinfo
from typing import Callable, List, Optional, Protocol

from src.models.calendar import Event
from src.models.reminders import BatchSummary, ProcessedEvent, RecipientResult
from src.reminders.classifier import classify
from src.reminders.eligibility import ReminderRuleTable, ReminderTracker
from src.reminders.notification_dispatcher import NotificationDispatcher
from src.utils.date_parser import resolve_due_instant
from src.utils.logger import log_info, log_error, log_debug


class CalendarUnavailableError(RuntimeError):
    """The calendar could not be read; nothing can be processed."""


class CalendarSource(Protocol):
    async def list_upcoming(self, days_ahead: int) -> List[Event]:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventMonitor:
    """Runs reminder batches, on demand or from a background polling loop.

    Batches inside one process are serialized. Separate processes (for
    example overlapping cron-triggered deployments) are not coordinated and
    may send a reminder twice.
    """

    def __init__(
        self,
        calendar: CalendarSource,
        dispatcher: NotificationDispatcher,
        tracker: ReminderTracker,
        rules: ReminderRuleTable,
        zone: tzinfo,
        look_ahead_days: int = 30,
        check_interval_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now
    ):
        """Initialize the event monitor.

        Args:
            calendar: Source of upcoming calendar entries
            dispatcher: Dispatcher for sending reminders
            tracker: Record of trigger points already fired
            rules: Reminder rule table per category
            zone: Team timezone for calendar-day arithmetic
            look_ahead_days: Days ahead fetched per batch
            check_interval_seconds: Polling interval of the background loop
            clock: Source of "now"
        """
        self.calendar = calendar
        self.dispatcher = dispatcher
        self.tracker = tracker
        self.rules = rules
        self.zone = zone
        self.look_ahead_days = look_ahead_days
        self.check_interval = check_interval_seconds
        self._clock = clock

        self._batch_lock = asyncio.Lock()
        self._is_running: bool = False
        self._monitor_task: Optional[asyncio.Task] = None
        self.last_summary: Optional[BatchSummary] = None
        self.batches_run: int = 0

        log_info(f"EventMonitor initialized: look-ahead {look_ahead_days} days, "
                 f"check interval {check_interval_seconds}s")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Start the background polling task."""
        if self._is_running:
            log_debug("EventMonitor already running")
            return

        self._is_running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        log_info("EventMonitor polling started")

    async def stop(self) -> None:
        """Stop the background polling task."""
        if not self._is_running:
            return

        self._is_running = False
        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None

        log_info("EventMonitor polling stopped")

    async def _monitor_loop(self) -> None:
        log_debug("Event monitor loop started")

        while self._is_running:
            try:
                await self.process_upcoming_events()
            except asyncio.CancelledError:
                log_debug("Monitor loop cancelled")
                break
            except Exception as e:
                log_error(f"Scheduled reminder check failed: {e}")

            try:
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                break

        log_debug("Event monitor loop ended")

    async def process_upcoming_events(self, now: Optional[datetime] = None) -> BatchSummary:
        """Run one reminder batch.

        Args:
            now: Reference time; defaults to the monitor's clock

        Returns:
            Batch summary with one result per entry that has a due instant

        Raises:
            CalendarUnavailableError: If the upcoming entries cannot be fetched
        """
        async with self._batch_lock:
            now = now or self._clock()

            try:
                events = await self.calendar.list_upcoming(self.look_ahead_days)
            except Exception as e:
                log_error(f"Could not fetch upcoming events: {e}")
                raise CalendarUnavailableError(f"Calendar unavailable: {e}") from e

            log_info(f"Processing {len(events)} upcoming events...")

            results: List[ProcessedEvent] = []
            for event in events:
                result = await self._process_event(event, now)
                if result is not None:
                    results.append(result)

            summary = BatchSummary(
                processed=sum(1 for r in results if r.processed),
                total=len(results),
                total_reminders_sent=sum(r.reminders_sent for r in results),
                results=results,
                timestamp=now,
            )
            self.last_summary = summary
            self.batches_run += 1

            log_info(f"Processing complete: {summary.total_reminders_sent} reminders sent "
                     f"for {summary.processed}/{summary.total} events")
            return summary

    async def _process_event(self, event: Event, now: datetime) -> Optional[ProcessedEvent]:
        """Classify, measure and, if due, dispatch one entry.

        Returns None for entries that cannot be tracked (no id, no title, no
        due instant, cancelled). Any error raised while handling the entry is
        recorded on its result instead of propagating.
        """
        if not event.id or not event.summary or event.status == "cancelled":
            log_debug(f"Skipping untrackable event: {event.id or '<no id>'}")
            return None

        due = resolve_due_instant(event.start.date_time, event.start.date, self.zone)
        if due is None:
            log_debug(f"Skipping event without a due date: {event.summary}")
            return None

        category = classify(event.summary, event.description)
        result = ProcessedEvent(
            id=event.id,
            title=event.summary,
            type=category.value,
            date=due.isoformat(),
        )

        try:
            rule = self.rules.rule_for(category)
            distance = rule.measure(due, now, self.zone)
            if distance.trigger_point is None:
                return result
            if not self.tracker.is_due(event.id, distance.trigger_point, rule):
                return result

            report = await self.dispatcher.dispatch(category, event, distance)
            result.trigger_point = str(distance.trigger_point)
            result.processed = report.delivered
            result.reminders_sent = report.successful
            result.failed = report.failed
            result.recipients = [
                RecipientResult(
                    recipient=r.recipient,
                    success=r.success,
                    message_id=r.message_id,
                    error=r.error,
                )
                for r in report.results
            ]
            if not report.delivered:
                result.error = "Reminder could not be delivered to any recipient"
        except Exception as e:
            log_error(f"Error processing event {event.summary}: {e}", exc_info=True)
            result.error = str(e) or type(e).__name__

        return result
