from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pytest

from config.config import AppConfig, CalendarConfig, ServerConfig, WhatsAppConfig
from src.messaging.whatsapp_client import SendResult
from src.models.calendar import Event, EventCreate, EventDateTime
from src.reminders.eligibility import InMemoryReminderTracker
from src.utils.date_parser import get_timezone


ZONE = get_timezone("Africa/Lagos")

# Tuesday 2026-03-10, 09:00 in Lagos
NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)

RECIPIENTS = ["2348000000001", "2348000000002", "2348000000003"]


def make_event(
    event_id: str,
    summary: str,
    date: Optional[str] = None,
    date_time: Optional[str] = None,
    description: Optional[str] = None,
    status: str = "confirmed",
) -> Event:
    return Event(
        id=event_id,
        calendar_id="primary",
        summary=summary,
        description=description,
        start=EventDateTime(date=date, date_time=date_time),
        end=EventDateTime(date=date, date_time=date_time),
        status=status,
    )


class FakeCalendar:
    """In-memory calendar collaborator."""

    def __init__(self, events: Iterable[Event] = (), error: Optional[Exception] = None) -> None:
        self.events: List[Event] = list(events)
        self.error = error
        self.created: List[EventCreate] = []
        self.deleted: List[str] = []
        self.fail_on: set = set()
        self.is_connected = True
        self.fetches = 0

    async def list_upcoming(self, days_ahead: int) -> List[Event]:
        self.fetches += 1
        if self.error:
            raise self.error
        return list(self.events)

    async def create_event(self, event_create: EventCreate) -> Event:
        if event_create.summary in self.fail_on:
            raise RuntimeError(f"calendar rejected {event_create.summary}")
        self.created.append(event_create)
        all_day = len(event_create.start) == 10
        return Event(
            id=f"created-{len(self.created)}",
            calendar_id=event_create.calendar_id,
            summary=event_create.summary,
            description=event_create.description,
            start=EventDateTime(
                date=event_create.start if all_day else None,
                date_time=None if all_day else event_create.start,
            ),
            end=EventDateTime(
                date=event_create.end if all_day else None,
                date_time=None if all_day else event_create.end,
            ),
        )

    async def delete_event(self, event_id: str, calendar_id: Optional[str] = None) -> bool:
        self.deleted.append(event_id)
        return True


class FakeMessenger:
    """Records every fan-out; recipients in ``failing`` get an error result."""

    def __init__(self, recipients: Iterable[str] = RECIPIENTS, failing: Iterable[str] = ()) -> None:
        self.recipients = list(recipients)
        self.failing = set(failing)
        self.sent: List[str] = []

    async def send_to_all(self, text: str) -> List[SendResult]:
        self.sent.append(text)
        results = []
        for index, recipient in enumerate(self.recipients):
            if recipient in self.failing:
                results.append(SendResult(recipient=recipient, success=False, error="Recipient not on allow list"))
            else:
                results.append(SendResult(recipient=recipient, success=True, message_id=f"wamid.{len(self.sent)}.{index}"))
        return results

    def verify_webhook(self, mode, token, challenge):
        if mode == "subscribe" and token == "verify-me":
            return challenge or ""
        return None


@pytest.fixture
def zone():
    return ZONE


@pytest.fixture
def tracker() -> InMemoryReminderTracker:
    return InMemoryReminderTracker()


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        calendar=CalendarConfig(
            calendar_mcp_path=str(tmp_path / "google-calendar-mcp"),
            oauth_credentials_path=str(tmp_path / "gcp-oauth.keys.json"),
            timezone="Africa/Lagos",
        ),
        whatsapp=WhatsAppConfig(
            phone_number_id="1234567890",
            access_token="token",
            verify_token="verify-me",
            recipient_numbers=RECIPIENTS,
            send_delay_seconds=0,
        ),
        server=ServerConfig(cron_secret="s3cret"),
    )
