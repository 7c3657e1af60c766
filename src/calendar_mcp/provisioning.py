"""Creation of the team's recurring calendar entries.

Every title produced here carries the marker the reminder classifier looks
for, so entries created from the dashboard or the CLI come back from the
calendar in the right category.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Protocol

from src.models.calendar import BirthdayRecord, Event, EventCreate, ReminderOverride
from src.utils.date_parser import get_timezone, next_annual_occurrence
from src.utils.logger import log_info, log_error, log_warning


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

ONE_DAY_MINUTES = 24 * 60


class EventCreator(Protocol):
    async def create_event(self, event_create: EventCreate) -> Event:
        ...


class CalendarProvisioner:
    """Creates birthday, monthly design, meeting, roster and custom entries."""

    def __init__(
        self,
        calendar_client: EventCreator,
        calendar_id: str = "primary",
        timezone: str = "Africa/Lagos"
    ):
        self.calendar_client = calendar_client
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.zone = get_timezone(timezone)

    def _today(self) -> date:
        return datetime.now(self.zone).date()

    def _all_day(
        self,
        summary: str,
        day: date,
        description: Optional[str] = None,
        reminders: Optional[List[ReminderOverride]] = None,
        recurrence: Optional[List[str]] = None,
        color_id: Optional[str] = None
    ) -> EventCreate:
        # All-day end dates are exclusive
        return EventCreate(
            calendar_id=self.calendar_id,
            summary=summary,
            description=description,
            start=day.isoformat(),
            end=(day + timedelta(days=1)).isoformat(),
            reminders=reminders,
            recurrence=recurrence,
            color_id=color_id,
            time_zone=self.timezone,
        )

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.zone)
        return moment

    async def create_birthday_event(
        self,
        name: str,
        birth_date: date,
        sub_unit: str = "",
        today: Optional[date] = None
    ) -> Event:
        """Create a yearly all-day birthday entry.

        The first instance is placed on the next occurrence of the birthday
        (today included), so the series never starts in the past.
        """
        first = next_annual_occurrence(birth_date, today or self._today())
        description = f"Birthday celebration for {name}"
        if sub_unit:
            description += f" ({sub_unit})"

        log_info(f"Creating birthday entry for {name} starting {first.isoformat()}")
        return await self.calendar_client.create_event(self._all_day(
            f"🎂 {name}'s Birthday",
            first,
            description=description,
            reminders=[
                ReminderOverride(minutes=ONE_DAY_MINUTES),
                ReminderOverride(minutes=60),
            ],
            recurrence=["RRULE:FREQ=YEARLY"],
        ))

    async def bulk_create_birthdays(
        self,
        records: Iterable[BirthdayRecord],
        today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Create one birthday entry per record.

        Records are created one at a time; a failed record is reported and
        the remaining ones are still attempted.
        """
        results: List[Dict[str, Any]] = []
        for record in records:
            try:
                event = await self.create_birthday_event(
                    record.name, record.birthday, sub_unit=record.sub_unit, today=today
                )
                results.append({"name": record.name, "success": True, "eventId": event.id})
            except Exception as e:
                log_error(f"Failed to create birthday entry for {record.name}: {e}")
                results.append({"name": record.name, "success": False, "error": str(e)})

        created = sum(1 for r in results if r["success"])
        log_info(f"Birthday import: {created}/{len(results)} entries created")
        return results

    async def create_monthly_design_events(self, year: int) -> List[Dict[str, Any]]:
        """Create the twelve "new month design" entries of ``year``."""
        results: List[Dict[str, Any]] = []
        for index, month in enumerate(MONTH_NAMES, start=1):
            try:
                event = await self.calendar_client.create_event(self._all_day(
                    f"🎨 Happy New Month Design - {month}",
                    date(year, index, 1),
                    description=f"Prepare and publish the new month design for {month} {year}",
                    reminders=[ReminderOverride(minutes=3 * ONE_DAY_MINUTES)],
                ))
                results.append({"month": month, "success": True, "eventId": event.id})
            except Exception as e:
                log_error(f"Failed to create design entry for {month} {year}: {e}")
                results.append({"month": month, "success": False, "error": str(e)})

        if not any(r["success"] for r in results):
            log_warning(f"No monthly design entries could be created for {year}")
        return results

    async def create_meeting_event(
        self,
        title: str,
        start: datetime,
        duration_minutes: int = 60,
        description: Optional[str] = None
    ) -> Event:
        """Create a timed meeting entry with popups a day and half an hour before."""
        start = self._localize(start)
        end = start + timedelta(minutes=duration_minutes)

        log_info(f"Creating meeting entry '{title}' at {start.isoformat()}")
        return await self.calendar_client.create_event(EventCreate(
            calendar_id=self.calendar_id,
            summary=f"📅 Meeting: {title}",
            description=description,
            start=start.isoformat(),
            end=end.isoformat(),
            reminders=[
                ReminderOverride(minutes=ONE_DAY_MINUTES),
                ReminderOverride(minutes=30),
            ],
            time_zone=self.timezone,
        ))

    async def create_roster_event(self, program_name: str, program_date: date, due_date: date) -> Event:
        """Create the all-day entry by which a program's duty roster must exist."""
        if due_date > program_date:
            raise ValueError("Roster due date must not be after the program date")

        log_info(f"Creating roster entry for {program_name} due {due_date.isoformat()}")
        return await self.calendar_client.create_event(self._all_day(
            f"📋 Roster Due: {program_name}",
            due_date,
            description=(
                f"Duty roster for {program_name} "
                f"(program on {program_date.isoformat()}) must be ready"
            ),
            reminders=[ReminderOverride(minutes=0)],
        ))

    async def create_custom_event(
        self,
        title: str,
        day: Optional[date] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        description: Optional[str] = None,
        reminders: Optional[List[ReminderOverride]] = None,
        color_id: str = "7"
    ) -> Event:
        """Create an all-day (``day``) or timed (``start``/``end``) entry.

        Raises:
            ValueError: If neither ``day`` nor ``start`` is given
        """
        reminders = reminders or [ReminderOverride(minutes=ONE_DAY_MINUTES)]

        if start is not None:
            start = self._localize(start)
            end = self._localize(end) if end is not None else start
            event_create = EventCreate(
                calendar_id=self.calendar_id,
                summary=title,
                description=description,
                start=start.isoformat(),
                end=end.isoformat(),
                reminders=reminders,
                color_id=color_id,
                time_zone=self.timezone,
            )
        elif day is not None:
            event_create = self._all_day(
                title, day, description=description, reminders=reminders, color_id=color_id
            )
        else:
            raise ValueError("Either a date or a start time is required")

        log_info(f"Creating custom entry '{title}'")
        return await self.calendar_client.create_event(event_create)
