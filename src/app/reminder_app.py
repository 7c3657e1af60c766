"""Application orchestration for programmatic access.

This module centralizes startup/shutdown of the reminder hub so it can be
reused by different front-ends (CLI, HTTP API, etc.).
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from dateutil import parser as dateutil_parser

from config.config import AppConfig, load_config
from src.calendar_mcp.mcp_client import MCPClient
from src.calendar_mcp.provisioning import CalendarProvisioner
from src.importers.birthday_sheet import read_birthdays_from_csv, read_birthdays_from_excel
from src.messaging.whatsapp_client import SendResult, WhatsAppClient
from src.models.calendar import BirthdayRecord, Event, EventCreate, ReminderOverride
from src.reminders.event_monitor import utc_now
from src.reminders.reminder_service import ReminderService
from src.utils.date_parser import parse_date_value
from src.utils.logger import log_error, log_info, log_warning, setup_logging


SUPPORTED_UPLOADS = (".xlsx", ".csv")


class CalendarClient(Protocol):
    """Calendar operations the hub relies on."""

    @property
    def is_connected(self) -> bool:
        ...

    async def list_upcoming(self, days_ahead: int) -> List[Event]:
        ...

    async def create_event(self, event_create: EventCreate) -> Event:
        ...

    async def delete_event(self, event_id: str, calendar_id: Optional[str] = None) -> bool:
        ...


class MessagingClient(Protocol):
    """Messaging operations the hub relies on."""

    async def send_to_all(self, text: str) -> List[SendResult]:
        ...

    def verify_webhook(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        ...


def _parse_moment(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return dateutil_parser.isoparse(str(value))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid {field_name}: {value}") from e


def _parse_day(value: Any, field_name: str) -> date:
    parsed = parse_date_value(value)
    if parsed is None:
        raise ValueError(f"Invalid {field_name}: {value}")
    return parsed


def _send_summary(results: List[SendResult]) -> Dict[str, Any]:
    successful = sum(1 for r in results if r.success)
    return {
        "success": successful > 0,
        "sent": successful,
        "failed": len(results) - successful,
        "results": [r.to_dict() for r in results],
    }


class ReminderApp:
    """Coordinates core services for the reminder hub.

    Collaborators passed in are used as-is; collaborators built from the
    configuration are connected on startup and closed on shutdown.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[AppConfig] = None,
        calendar_client: Optional[CalendarClient] = None,
        messenger: Optional[MessagingClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config_path = config_path
        self._config: Optional[AppConfig] = config
        self._calendar_client = calendar_client
        self._messenger = messenger
        self._owns_calendar = calendar_client is None
        self._owns_messenger = messenger is None
        self._clock = clock

        self._reminder_service: Optional[ReminderService] = None
        self._provisioner: Optional[CalendarProvisioner] = None

        self._startup_lock = asyncio.Lock()
        self._is_started = False

    @property
    def config(self) -> AppConfig:
        if not self._config:
            raise RuntimeError("ReminderApp not started yet; config unavailable")
        return self._config

    @property
    def calendar(self) -> CalendarClient:
        if not self._calendar_client:
            raise RuntimeError("ReminderApp not started yet; calendar unavailable")
        return self._calendar_client

    @property
    def messenger(self) -> MessagingClient:
        if not self._messenger:
            raise RuntimeError("ReminderApp not started yet; messenger unavailable")
        return self._messenger

    @property
    def reminder_service(self) -> ReminderService:
        if not self._reminder_service:
            raise RuntimeError("ReminderApp not started yet; reminder service unavailable")
        return self._reminder_service

    @property
    def provisioner(self) -> CalendarProvisioner:
        if not self._provisioner:
            raise RuntimeError("ReminderApp not started yet; provisioner unavailable")
        return self._provisioner

    @property
    def is_started(self) -> bool:
        return self._is_started

    async def startup(self, start_polling: bool = True) -> None:
        """Load configuration and initialize dependencies.

        Args:
            start_polling: Start the background polling loop (if configured)
        """

        async with self._startup_lock:
            if self._is_started:
                return

            if self._config is None:
                log_info("ReminderApp startup: loading configuration")
                self._config = load_config(self._config_path)
            setup_logging(self._config.logging.level)

            if self._calendar_client is None:
                log_info("ReminderApp startup: connecting MCP client")
                mcp_client = MCPClient(
                    mcp_server_path=self._config.calendar.calendar_mcp_path,
                    oauth_credentials_path=self._config.calendar.oauth_credentials_path,
                    calendar_id=self._config.calendar.calendar_id,
                    time_zone=self._config.calendar.timezone,
                )
                await mcp_client.connect()
                self._calendar_client = mcp_client

            if self._messenger is None:
                self._messenger = WhatsAppClient(self._config.whatsapp)

            self._provisioner = CalendarProvisioner(
                self._calendar_client,
                calendar_id=self._config.calendar.calendar_id,
                timezone=self._config.calendar.timezone,
            )

            log_info("ReminderApp startup: starting reminder service")
            self._reminder_service = ReminderService(
                calendar=self._calendar_client,
                messenger=self._messenger,
                config=self._config.reminders,
                calendar_config=self._config.calendar,
                clock=self._clock,
            )
            if start_polling:
                await self._reminder_service.start()

            self._is_started = True
            log_info("ReminderApp startup complete")

    async def shutdown(self) -> None:
        """Gracefully shut down services."""

        if not self._is_started:
            return

        log_info("ReminderApp shutdown: stopping services")

        if self._reminder_service:
            try:
                await self._reminder_service.stop()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                log_error(f"Error stopping ReminderService: {exc}")

        if self._owns_messenger and isinstance(self._messenger, WhatsAppClient):
            try:
                await self._messenger.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                log_error(f"Error closing WhatsApp client: {exc}")
            self._messenger = None

        if self._owns_calendar and isinstance(self._calendar_client, MCPClient):
            try:
                await self._calendar_client.disconnect()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                log_error(f"Error disconnecting MCP client: {exc}")
            self._calendar_client = None

        self._is_started = False
        log_info("ReminderApp shutdown complete")

    async def _ensure_started(self) -> None:
        if not self._is_started:
            await self.startup()

    async def check_reminders(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run one reminder batch and return the trigger response body.

        Raises:
            CalendarUnavailableError: If the calendar cannot be read
        """
        await self._ensure_started()
        summary = await self.reminder_service.check_reminders(now=now)
        return summary.to_response(self.reminder_service.get_stats())

    async def list_events(self, days: int = 30) -> List[Dict[str, Any]]:
        """Upcoming entries for the dashboard."""
        await self._ensure_started()
        if days < 1:
            raise ValueError("days must be at least 1")
        events = await self.calendar.list_upcoming(days)
        return [event.to_summary() for event in events]

    async def delete_event(self, event_id: str) -> bool:
        await self._ensure_started()
        return await self.calendar.delete_event(event_id)

    async def sync_calendar(self, action: Optional[str], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one provisioning action from the dashboard.

        Raises:
            ValueError: On a missing/unknown action or missing fields
        """
        await self._ensure_started()
        data = data or {}

        if not action:
            raise ValueError("Action is required")

        if action == "create_monthly_designs":
            year = int(data.get("year") or self._clock().astimezone(self.provisioner.zone).year)
            results = await self.provisioner.create_monthly_design_events(year)
            created = sum(1 for r in results if r["success"])
            return {
                "success": True,
                "message": f"Created {created} monthly design events for {year}",
                "results": results,
                "year": year,
            }

        if action == "create_meeting":
            if not data.get("title") or not data.get("dateTime"):
                raise ValueError("Title and dateTime are required")
            event = await self.provisioner.create_meeting_event(
                data["title"],
                _parse_moment(data["dateTime"], "dateTime"),
                duration_minutes=int(data.get("duration") or 60),
                description=data.get("description"),
            )
            return {"success": True, "message": "Meeting created successfully", "event": event.to_summary()}

        if action == "create_roster_event":
            if not data.get("programName") or not data.get("programDate") or not data.get("dueDate"):
                raise ValueError("Program name, program date, and due date are required")
            event = await self.provisioner.create_roster_event(
                data["programName"],
                _parse_day(data["programDate"], "programDate"),
                _parse_day(data["dueDate"], "dueDate"),
            )
            return {"success": True, "message": "Roster event created successfully", "event": event.to_summary()}

        if action == "create_custom_event":
            if not data.get("title") or (not data.get("date") and not data.get("dateTime")):
                raise ValueError("Title and date/dateTime are required")
            reminders = None
            if data.get("reminders"):
                reminders = [ReminderOverride(**r) for r in data["reminders"]]

            if data.get("allDay") or not data.get("dateTime"):
                event = await self.provisioner.create_custom_event(
                    data["title"],
                    day=_parse_day(data.get("date"), "date"),
                    description=data.get("description"),
                    reminders=reminders,
                    color_id=data.get("colorId") or "7",
                )
            else:
                end = data.get("endDateTime")
                event = await self.provisioner.create_custom_event(
                    data["title"],
                    start=_parse_moment(data["dateTime"], "dateTime"),
                    end=_parse_moment(end, "endDateTime") if end else None,
                    description=data.get("description"),
                    reminders=reminders,
                    color_id=data.get("colorId") or "7",
                )
            return {"success": True, "message": "Custom event created successfully", "event": event.to_summary()}

        raise ValueError(f"Unknown action: {action}")

    async def import_birthdays(self, filename: str, content: bytes) -> Dict[str, Any]:
        """Create birthday entries from an uploaded roster spreadsheet.

        Raises:
            ValueError: On an unsupported file type or a file without valid rows
        """
        await self._ensure_started()

        lowered = (filename or "").lower()
        if not lowered.endswith(SUPPORTED_UPLOADS):
            raise ValueError("Please upload an Excel (.xlsx) or CSV (.csv) file")

        if lowered.endswith(".csv"):
            sheet = read_birthdays_from_csv(content.decode("utf-8-sig"))
        else:
            sheet = read_birthdays_from_excel(content)

        if not sheet.records:
            raise ValueError("No valid birthdays found in the file")

        results = await self.provisioner.bulk_create_birthdays(sheet.records)
        return self._import_response(results, sheet.skipped)

    async def add_birthdays(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create birthday entries from manually entered ``{name, date}`` pairs."""
        await self._ensure_started()

        records: List[BirthdayRecord] = []
        skipped: List[Dict[str, Any]] = []
        for index, entry in enumerate(entries or []):
            name = str(entry.get("name") or "").strip()
            birthday = parse_date_value(entry.get("date") or entry.get("birthday"))
            if not name or birthday is None:
                skipped.append({"row": index + 1, "reason": "name and a valid date are required"})
                continue
            records.append(BirthdayRecord(name=name, birthday=birthday))

        if not records:
            raise ValueError("No valid birthdays provided")

        results = await self.provisioner.bulk_create_birthdays(records)
        return self._import_response(results, skipped)

    @staticmethod
    def _import_response(results: List[Dict[str, Any]], skipped: List[Dict[str, Any]]) -> Dict[str, Any]:
        created = sum(1 for r in results if r["success"])
        if created < len(results):
            log_warning(f"{len(results) - created} birthday entries could not be created")
        return {
            "success": created > 0,
            "message": f"Created {created} of {len(results)} birthday events",
            "total": len(results),
            "created": created,
            "failed": len(results) - created,
            "skipped": skipped,
            "results": results,
        }

    async def send_custom_message(self, title: Optional[str], message: Optional[str]) -> Dict[str, Any]:
        """Broadcast an operator message to every recipient."""
        await self._ensure_started()
        if not title or not message:
            raise ValueError("Title and message are required")
        results = await self.reminder_service.dispatcher.broadcast(title, message)
        return _send_summary(results)

    async def send_test_message(self) -> Dict[str, Any]:
        await self._ensure_started()
        results = await self.reminder_service.dispatcher.send_test_message()
        return _send_summary(results)

    def verify_webhook(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        return self.messenger.verify_webhook(mode, token, challenge)

    def auth_status(self) -> Dict[str, Any]:
        """Calendar connection state."""
        connected = bool(self._calendar_client and self._calendar_client.is_connected)
        return {
            "authenticated": connected,
            "calendarId": self._config.calendar.calendar_id if self._config else None,
        }

    def get_reminder_stats(self) -> Dict[str, Any]:
        """Return reminder service status information."""

        if not self._reminder_service:
            raise RuntimeError("ReminderApp not started yet; stats unavailable")

        return self._reminder_service.get_stats()

    def get_notifications(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent reminder dispatches, newest first."""

        if not self._reminder_service:
            return []

        return self._reminder_service.dispatcher.get_recent(limit)

    def snapshot(self) -> Dict[str, Any]:
        """Return a health snapshot of the hub state."""

        return {
            "is_started": self._is_started,
            "config_loaded": self._config is not None,
            "calendar_connected": self.auth_status()["authenticated"],
            "reminder_stats": self._reminder_service.get_stats() if self._reminder_service else None,
        }
