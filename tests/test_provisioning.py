from datetime import date, datetime

import pytest

from src.calendar_mcp.provisioning import CalendarProvisioner
from src.models.calendar import BirthdayRecord
from src.reminders.classifier import Category, classify

from conftest import FakeCalendar


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def provisioner(calendar):
    return CalendarProvisioner(calendar, calendar_id="primary", timezone="Africa/Lagos")


async def test_birthday_entry_starts_on_next_occurrence(provisioner, calendar):
    await provisioner.create_birthday_event("Ada", date(1995, 3, 14), today=date(2026, 10, 18))

    created = calendar.created[0]
    assert created.summary == "🎂 Ada's Birthday"
    assert created.start == "2027-03-14"
    assert created.end == "2027-03-15"
    assert created.recurrence == ["RRULE:FREQ=YEARLY"]
    assert [r.minutes for r in created.reminders] == [1440, 60]


async def test_bulk_birthdays_continue_after_failure(provisioner, calendar):
    calendar.fail_on.add("🎂 Bola's Birthday")
    records = [
        BirthdayRecord(name="Ada", birthday=date(1995, 12, 1)),
        BirthdayRecord(name="Bola", birthday=date(1990, 11, 2)),
        BirthdayRecord(name="Chidi", birthday=date(1988, 10, 20), sub_unit="Camera"),
    ]

    results = await provisioner.bulk_create_birthdays(records, today=date(2026, 10, 18))

    assert [r["success"] for r in results] == [True, False, True]
    assert "rejected" in results[1]["error"]
    assert calendar.created[-1].description == "Birthday celebration for Chidi (Camera)"


async def test_monthly_design_entries(provisioner, calendar):
    results = await provisioner.create_monthly_design_events(2027)

    assert len(results) == 12
    assert all(r["success"] for r in results)
    assert calendar.created[0].summary == "🎨 Happy New Month Design - January"
    assert calendar.created[11].start == "2027-12-01"
    assert calendar.created[11].end == "2027-12-02"


async def test_meeting_entry_is_timed_in_team_zone(provisioner, calendar):
    await provisioner.create_meeting_event("Planning", datetime(2026, 3, 12, 10, 0), duration_minutes=90)

    created = calendar.created[0]
    assert created.summary == "📅 Meeting: Planning"
    assert created.start == "2026-03-12T10:00:00+01:00"
    assert created.end == "2026-03-12T11:30:00+01:00"
    assert [r.minutes for r in created.reminders] == [1440, 30]


async def test_roster_entry(provisioner, calendar):
    await provisioner.create_roster_event("Easter Service", date(2026, 4, 5), date(2026, 4, 1))

    created = calendar.created[0]
    assert created.summary == "📋 Roster Due: Easter Service"
    assert created.start == "2026-04-01"
    assert "2026-04-05" in created.description


async def test_roster_due_after_program_is_rejected(provisioner):
    with pytest.raises(ValueError):
        await provisioner.create_roster_event("Easter Service", date(2026, 4, 5), date(2026, 4, 6))


async def test_custom_entry_requires_a_date(provisioner):
    with pytest.raises(ValueError):
        await provisioner.create_custom_event("Youth Conference")


async def test_custom_all_day_entry(provisioner, calendar):
    await provisioner.create_custom_event("Youth Conference", day=date(2026, 8, 1), description="Bring the drone")

    created = calendar.created[0]
    assert created.start == "2026-08-01"
    assert created.color_id == "7"
    assert [r.minutes for r in created.reminders] == [1440]


async def test_created_titles_classify_back(provisioner, calendar):
    await provisioner.create_birthday_event("Ada", date(1995, 3, 14))
    await provisioner.create_monthly_design_events(2027)
    await provisioner.create_meeting_event("Planning", datetime(2026, 3, 12, 10, 0))
    await provisioner.create_roster_event("Easter Service", date(2026, 4, 5), date(2026, 4, 1))

    categories = [classify(c.summary, c.description) for c in calendar.created]

    assert categories[0] is Category.BIRTHDAY
    assert set(categories[1:13]) == {Category.MONTHLY_DESIGN}
    assert categories[13] is Category.MEETING
    assert categories[14] is Category.ROSTER
