"""Notification dispatcher for sending reminders to the team.

The dispatcher renders the category's message template for an entry, fans
it out to every configured recipient through the messaging client and,
when at least one recipient received it, records the trigger point as fired.
A total outage therefore leaves the trigger point open for the next check,
while a partial delivery is not repeated.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Deque, Dict, List, Protocol

from src.messaging.whatsapp_client import SendResult
from src.models.calendar import Event
from src.reminders import templates
from src.reminders.classifier import (
    Category,
    extract_birthday_name,
    extract_design_month,
)
from src.reminders.eligibility import ReminderDistance, ReminderTracker
from src.utils.date_parser import format_long_date, format_meeting_time, local_date
from src.utils.logger import log_debug, log_error, log_info, log_warning


class Messenger(Protocol):
    """Fan-out sink for rendered messages."""

    async def send_to_all(self, text: str) -> List[SendResult]:
        ...


@dataclass
class DispatchReport:
    """Delivery outcome of one reminder for one entry."""
    category: Category
    event_id: str
    event_summary: str
    trigger_point: Any
    message: str
    results: List[SendResult] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    @property
    def delivered(self) -> bool:
        return self.successful > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "title": self.event_summary,
            "type": self.category.value,
            "triggerPoint": self.trigger_point,
            "successful": self.successful,
            "failed": self.failed,
            "createdAt": self.created_at.isoformat(),
        }


_ROSTER_PREFIXES = ("roster due:", "create roster:")


def _program_name(title: str) -> str:
    name = title.replace("📋", "").strip()
    lowered = name.lower()
    for prefix in _ROSTER_PREFIXES:
        if lowered.startswith(prefix):
            return name[len(prefix):].strip() or title
    return name or title


class NotificationDispatcher:
    """Renders category messages and delivers them to all recipients."""

    def __init__(
        self,
        messenger: Messenger,
        tracker: ReminderTracker,
        zone: tzinfo,
        team_name: str = "Church Media Team",
        history_size: int = 50
    ):
        """Initialize the notification dispatcher.

        Args:
            messenger: Client that sends a text to every recipient
            tracker: Eligibility tracker updated after a delivery
            zone: Team timezone used to format dates
            team_name: Signature appended to every message
            history_size: Number of recent dispatches kept for the dashboard
        """
        self.messenger = messenger
        self.tracker = tracker
        self.zone = zone
        self.team_name = team_name
        self._history: Deque[DispatchReport] = deque(maxlen=history_size)

        log_debug("NotificationDispatcher initialized")

    def render(self, category: Category, event: Event, distance: ReminderDistance) -> str:
        """Render the reminder text of ``event`` for its category."""
        title = event.summary

        if category is Category.BIRTHDAY:
            return templates.render_birthday(
                extract_birthday_name(title),
                format_long_date(distance.due, self.zone),
                distance.days,
                self.team_name,
            )
        if category is Category.MONTHLY_DESIGN:
            today = local_date(distance.due, self.zone) - timedelta(days=distance.days)
            return templates.render_monthly_design(
                extract_design_month(title, today=today),
                distance.days,
                self.team_name,
            )
        if category is Category.MEETING:
            return templates.render_meeting(
                title,
                format_meeting_time(distance.due, self.zone),
                distance.hours,
                self.team_name,
            )
        if category is Category.ROSTER:
            return templates.render_roster(
                _program_name(title),
                format_long_date(distance.due, self.zone),
                distance.days,
                self.team_name,
            )
        return templates.render_custom(
            title,
            format_long_date(distance.due, self.zone),
            distance.days,
            self.team_name,
            description=event.description,
        )

    async def dispatch(self, category: Category, event: Event, distance: ReminderDistance) -> DispatchReport:
        """Send the reminder for ``event`` to every recipient.

        Each send is independent; the trigger point is marked fired on the
        tracker only if at least one recipient received the message.
        """
        message = self.render(category, event, distance)
        log_info(f"Sending {category.value} reminder for '{event.summary}' ({distance.describe()})")

        results = await self.messenger.send_to_all(message)
        report = DispatchReport(
            category=category,
            event_id=event.id,
            event_summary=event.summary,
            trigger_point=distance.trigger_point,
            message=message,
            results=results,
        )

        if report.delivered:
            self.tracker.mark_fired(event.id, distance.trigger_point)
            if report.failed:
                log_warning(f"Reminder for '{event.summary}' reached {report.successful}/{len(results)} recipients")
        else:
            log_error(f"Reminder for '{event.summary}' reached no recipient; will retry on next check")

        self._history.appendleft(report)
        return report

    async def broadcast(self, title: str, message: str) -> List[SendResult]:
        """Send an operator-composed message to every recipient."""
        log_info(f"Broadcasting custom message: {title}")
        return await self.messenger.send_to_all(templates.render_broadcast(title, message, self.team_name))

    async def send_test_message(self) -> List[SendResult]:
        log_info("Sending WhatsApp test message")
        return await self.messenger.send_to_all(templates.render_test_message())

    def get_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent dispatches, newest first."""
        return [report.to_dict() for report in list(self._history)[:limit]]
