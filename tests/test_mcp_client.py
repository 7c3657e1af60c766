import json
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple

import pytest

from src.calendar_mcp.mcp_client import MCPClient
from src.models.calendar import EventCreate, ReminderOverride


class FakeSession:
    """Stands in for ``mcp.ClientSession`` once connected."""

    def __init__(self, responses: Dict[str, Any], errors: Tuple[str, ...] = ()) -> None:
        self.responses = responses
        self.errors = errors
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def call_tool(self, name: str, arguments: Dict[str, Any]):
        self.calls.append((name, arguments))
        if name in self.errors:
            return SimpleNamespace(content=[SimpleNamespace(text="Calendar API error")], isError=True)
        return SimpleNamespace(content=[SimpleNamespace(text=json.dumps(self.responses[name]))], isError=False)


@pytest.fixture
def client(tmp_path):
    server = tmp_path / "google-calendar-mcp"
    (server / "build").mkdir(parents=True)
    (server / "build" / "index.js").write_text("// server")
    credentials = tmp_path / "gcp-oauth.keys.json"
    credentials.write_text("{}")
    return MCPClient(str(server), str(credentials), calendar_id="team@group.calendar.google.com", time_zone="Africa/Lagos")


def test_constructor_requires_built_server(tmp_path):
    credentials = tmp_path / "gcp-oauth.keys.json"
    credentials.write_text("{}")
    (tmp_path / "unbuilt").mkdir()

    with pytest.raises(FileNotFoundError, match="not built"):
        MCPClient(str(tmp_path / "unbuilt"), str(credentials))


async def test_calls_fail_before_connect(client):
    assert not client.is_connected
    with pytest.raises(RuntimeError, match="not connected"):
        await client.list_upcoming(30)


async def test_list_upcoming_parses_events(client):
    session = FakeSession({
        "list-events": {
            "events": [
                {
                    "id": "abc_20260314",
                    "summary": "🎂 Ada's Birthday",
                    "start": {"date": "2026-03-14"},
                    "end": {"date": "2026-03-15"},
                    "recurringEventId": "abc",
                },
                {
                    "id": "mtg1",
                    "summary": "📅 Meeting: Planning",
                    "description": "Agenda in the doc",
                    "start": {"dateTime": "2026-03-12T10:00:00+01:00", "timeZone": "Africa/Lagos"},
                    "end": {"dateTime": "2026-03-12T11:00:00+01:00"},
                    "htmlLink": "https://calendar.google.com/event?eid=mtg1",
                },
            ]
        }
    })
    client.session = session

    events = await client.list_upcoming(30)

    assert [e.id for e in events] == ["abc_20260314", "mtg1"]
    assert events[0].start.is_all_day
    assert events[0].recurring_event_id == "abc"
    assert events[1].start.date_time == "2026-03-12T10:00:00+01:00"
    assert events[1].html_link.endswith("mtg1")

    name, arguments = session.calls[0]
    assert name == "list-events"
    assert arguments["calendarId"] == "team@group.calendar.google.com"
    assert arguments["timeZone"] == "Africa/Lagos"
    assert arguments["timeMin"] < arguments["timeMax"]


async def test_create_event_sends_reminders_and_recurrence(client):
    session = FakeSession({"create-event": {"event": {"id": "new1", "summary": "🎂 Ada's Birthday", "start": {"date": "2026-03-14"}}}})
    client.session = session

    event = await client.create_event(EventCreate(
        calendar_id="primary",
        summary="🎂 Ada's Birthday",
        start="2026-03-14",
        end="2026-03-15",
        recurrence=["RRULE:FREQ=YEARLY"],
        reminders=[ReminderOverride(minutes=1440), ReminderOverride(minutes=60)],
        color_id="7",
    ))

    assert event.id == "new1"
    _, arguments = session.calls[0]
    assert arguments["start"] == "2026-03-14"
    assert arguments["recurrence"] == ["RRULE:FREQ=YEARLY"]
    assert arguments["reminders"] == {
        "useDefault": False,
        "overrides": [{"method": "popup", "minutes": 1440}, {"method": "popup", "minutes": 60}],
    }
    assert arguments["colorId"] == "7"
    assert "description" not in arguments


async def test_tool_error_is_raised(client):
    client.session = FakeSession({}, errors=("delete-event",))

    with pytest.raises(RuntimeError, match="Calendar API error"):
        await client.delete_event("evt1")


async def test_delete_event_uses_default_calendar(client):
    session = FakeSession({"delete-event": {"success": True}})
    client.session = session

    assert await client.delete_event("evt1") is True
    assert session.calls[0][1]["calendarId"] == "team@group.calendar.google.com"
