"""Data models for calendar entities."""

from datetime import date
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ReminderOverride(BaseModel):
    """Calendar-side popup/email reminder for an entry."""
    method: str = Field(default="popup", description="Reminder method: 'email' or 'popup'")
    minutes: int = Field(description="Minutes before the entry to remind")


class EventDateTime(BaseModel):
    """Event date/time information."""
    date_time: Optional[str] = Field(default=None, description="ISO 8601 datetime string with timezone")
    date: Optional[str] = Field(default=None, description="Date only (for all-day events)")
    time_zone: Optional[str] = Field(default=None, description="IANA timezone")

    @property
    def is_all_day(self) -> bool:
        return self.date_time is None and self.date is not None


class Event(BaseModel):
    """Calendar entry as read back from the calendar."""
    id: str = Field(description="Event ID, stable across fetches of the same instance")
    calendar_id: str = Field(description="Calendar ID this event belongs to")
    summary: str = Field(default="", description="Event title/summary")
    description: Optional[str] = Field(default=None, description="Event description")
    start: EventDateTime = Field(default_factory=EventDateTime, description="Event start date/time")
    end: EventDateTime = Field(default_factory=EventDateTime, description="Event end date/time")
    location: Optional[str] = Field(default=None, description="Event location")
    status: str = Field(default="confirmed", description="Event status: confirmed, tentative, cancelled")
    html_link: Optional[str] = Field(default=None, description="Link to event in Google Calendar")
    recurrence: Optional[List[str]] = Field(default=None, description="Recurrence rules (RRULE)")
    recurring_event_id: Optional[str] = Field(default=None, description="Parent series ID for recurring instances")
    color_id: Optional[str] = Field(default=None, description="Event color ID")

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "id": "abc123_20260314",
                "calendar_id": "primary",
                "summary": "🎂 Ada's Birthday",
                "start": {"date": "2026-03-14"},
                "end": {"date": "2026-03-15"},
                "status": "confirmed"
            }
        }

    def to_summary(self) -> Dict[str, Any]:
        """Compact representation used by the HTTP listing."""
        return {
            "id": self.id,
            "title": self.summary,
            "description": self.description,
            "start": self.start.model_dump(exclude_none=True),
            "end": self.end.model_dump(exclude_none=True),
            "location": self.location,
            "htmlLink": self.html_link,
        }


class EventCreate(BaseModel):
    """Model for creating a new calendar entry.

    ``start``/``end`` are either YYYY-MM-DD (all-day) or ISO 8601 datetimes.
    For all-day entries ``end`` is exclusive, as the calendar API expects.
    """
    calendar_id: str = Field(default="primary", description="Calendar ID to create event in")
    summary: str = Field(description="Event title")
    description: Optional[str] = Field(default=None, description="Event description")
    start: str = Field(description="Start date or datetime")
    end: str = Field(description="End date or datetime")
    location: Optional[str] = Field(default=None, description="Event location")
    reminders: Optional[List[ReminderOverride]] = Field(default=None, description="Popup reminder overrides")
    recurrence: Optional[List[str]] = Field(default=None, description="Recurrence rules, e.g. RRULE:FREQ=YEARLY")
    color_id: Optional[str] = Field(default=None, description="Event color ID")
    time_zone: Optional[str] = Field(default=None, description="Timezone for the event")


class EventList(BaseModel):
    """List of events with metadata."""
    events: List[Event] = Field(description="List of events")
    total_count: int = Field(description="Total number of events")
    calendars: Optional[List[str]] = Field(default=None, description="Calendar IDs queried")


class BirthdayRecord(BaseModel):
    """One team member row from a roster spreadsheet or manual entry."""
    name: str
    birthday: date
    phone: str = ""
    sub_unit: str = ""
