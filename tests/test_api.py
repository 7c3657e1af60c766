from __future__ import annotations

from datetime import timedelta
from typing import Optional, Tuple

from fastapi.testclient import TestClient

from config.config import AppConfig
from src.api.server import create_app, is_authorized
from src.app.reminder_app import ReminderApp

from conftest import NOW, FakeCalendar, FakeMessenger, make_event


AUTH = {"Authorization": "Bearer s3cret"}


def scenario_calendar(error: Optional[Exception] = None) -> FakeCalendar:
    return FakeCalendar(
        [
            make_event("ada", "🎂 Ada's Birthday", date="2026-03-10"),
            make_event("mtg", "📅 Meeting: Planning", date_time=(NOW + timedelta(hours=0.8)).isoformat()),
            make_event("yc", "Youth Conference", date="2026-03-30"),
        ],
        error=error,
    )


def build_test_client(
    app_config: AppConfig,
    calendar: Optional[FakeCalendar] = None,
    messenger: Optional[FakeMessenger] = None,
) -> Tuple[TestClient, FakeCalendar, FakeMessenger]:
    app_config.reminders.background_polling = False
    calendar = calendar or scenario_calendar()
    messenger = messenger or FakeMessenger()
    hub = ReminderApp(config=app_config, calendar_client=calendar, messenger=messenger, clock=lambda: NOW)
    return TestClient(create_app(hub)), calendar, messenger


def test_is_authorized():
    assert is_authorized("Bearer s3cret", "s3cret")
    assert not is_authorized("Bearer wrong", "s3cret")
    assert not is_authorized("s3cret", "s3cret")
    assert not is_authorized(None, "s3cret")
    assert not is_authorized("Bearer ", "")


def test_cron_trigger_requires_secret(app_config) -> None:
    client, _, messenger = build_test_client(app_config)
    with client:
        assert client.post("/cron/check-reminders").status_code == 401
        resp = client.get("/cron/check-reminders", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}
    assert messenger.sent == []


def test_cron_trigger_runs_batch(app_config) -> None:
    client, _, messenger = build_test_client(app_config)
    with client:
        resp = client.get("/cron/check-reminders", headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()
        assert data["processed"] == 2
        assert data["total"] == 3
        assert data["totalRemindersSent"] == 6
        assert data["stats"]["totalReminders"] == 2
        assert len(messenger.sent) == 2

        # Timer and manual trigger share one eligibility store
        again = client.post("/reminders/check").json()
        assert again["processed"] == 0
        assert len(messenger.sent) == 2


def test_manual_trigger_can_be_disabled(app_config) -> None:
    app_config.server.allow_manual_trigger = False
    client, _, messenger = build_test_client(app_config)
    with client:
        resp = client.post("/reminders/check")
        assert resp.status_code == 403
    assert messenger.sent == []


def test_calendar_outage_returns_500(app_config) -> None:
    client, _, _ = build_test_client(app_config, calendar=scenario_calendar(error=ConnectionError("token expired")))
    with client:
        resp = client.post("/reminders/check")
        assert resp.status_code == 500
        data = resp.json()
        assert data["success"] is False
        assert "token expired" in data["error"]
        assert "timestamp" in data


def test_list_and_delete_events(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    with client:
        resp = client.get("/calendar/events", params={"days": 7})
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 3
        assert data["events"][0]["title"] == "🎂 Ada's Birthday"
        assert data["events"][0]["start"] == {"date": "2026-03-10"}

        resp = client.delete("/calendar/events/ada")
        assert resp.json() == {"success": True, "eventId": "ada"}
    assert calendar.deleted == ["ada"]


def test_calendar_sync_validation(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    with client:
        resp = client.post("/calendar/sync", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Action is required"}

        resp = client.post("/calendar/sync", json={"action": "create_party"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Unknown action: create_party"}

        resp = client.post("/calendar/sync", json={"action": "create_meeting", "data": {"title": "Planning"}})
        assert resp.status_code == 400
    assert calendar.created == []


def test_calendar_sync_actions(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    with client:
        resp = client.post("/calendar/sync", json={"action": "create_monthly_designs", "data": {"year": 2027}})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Created 12 monthly design events for 2027"

        resp = client.post("/calendar/sync", json={
            "action": "create_meeting",
            "data": {"title": "Planning", "dateTime": "2026-03-12T10:00:00", "duration": 45},
        })
        assert resp.status_code == 200
        assert resp.json()["event"]["title"] == "📅 Meeting: Planning"

        resp = client.post("/calendar/sync", json={
            "action": "create_roster_event",
            "data": {"programName": "Easter Service", "programDate": "2026-04-05", "dueDate": "2026-04-01"},
        })
        assert resp.status_code == 200

        resp = client.post("/calendar/sync", json={
            "action": "create_custom_event",
            "data": {"title": "Youth Conference", "date": "2026-08-01", "allDay": True},
        })
        assert resp.status_code == 200

    assert len(calendar.created) == 15
    assert calendar.created[12].end == "2026-03-12T10:45:00+01:00"


def test_birthday_upload(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    csv_body = b"Name,Birthday,Phone\nAda,1995-03-14,+2348030000000\nBola,not a date,\nChidi,20/10/1988,\n"
    with client:
        resp = client.post("/birthdays/upload", files={"file": ("team.csv", csv_body, "text/csv")})
        assert resp.status_code == 200
        data = resp.json()
        assert data["created"] == 2
        assert data["skipped"] == [{"row": 3, "reason": "unparsable birthday: not a date"}]
    assert [c.summary for c in calendar.created] == ["🎂 Ada's Birthday", "🎂 Chidi's Birthday"]


def test_birthday_upload_rejects_bad_input(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    with client:
        resp = client.post("/birthdays/upload")
        assert resp.status_code == 400
        assert resp.json() == {"error": "No file uploaded"}

        resp = client.post("/birthdays/upload", files={"file": ("team.txt", b"Ada", "text/plain")})
        assert resp.status_code == 400

        garbage = ("team.xlsx", b"not a workbook", "application/octet-stream")
        resp = client.post("/birthdays/upload", files={"file": garbage})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Not a valid .xlsx workbook"}

        resp = client.post("/birthdays/upload", files={"file": ("team.csv", b"Name,Birthday\n,\n", "text/csv")})
        assert resp.status_code == 400
        assert resp.json() == {"error": "No valid birthdays found in the file"}
    assert calendar.created == []


def test_manual_birthdays(app_config) -> None:
    client, calendar, _ = build_test_client(app_config)
    with client:
        resp = client.put("/birthdays", json={"birthdays": [{"name": "Ada", "date": "1995-03-14"}, {"name": ""}]})
        assert resp.status_code == 200
        assert resp.json()["created"] == 1

        resp = client.put("/birthdays", json={"birthdays": []})
        assert resp.status_code == 400
    assert len(calendar.created) == 1


def test_whatsapp_broadcast_and_test(app_config) -> None:
    client, _, messenger = build_test_client(app_config)
    with client:
        resp = client.post("/whatsapp/send", json={"title": "Rehearsal"})
        assert resp.status_code == 400

        resp = client.post("/whatsapp/send", json={"title": "Rehearsal", "message": "5pm today"})
        assert resp.status_code == 200
        assert resp.json()["sent"] == 3

        resp = client.post("/whatsapp/test")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
    assert "System Test Message" in messenger.sent[-1]


def test_whatsapp_webhook(app_config) -> None:
    client, _, _ = build_test_client(app_config)
    params = {"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"}
    with client:
        resp = client.get("/whatsapp/webhook", params=params)
        assert resp.status_code == 200
        assert resp.text == "1158201444"

        resp = client.get("/whatsapp/webhook", params={**params, "hub.verify_token": "wrong"})
        assert resp.status_code == 403

        inbound = {"entry": [{"changes": [{"value": {"statuses": [{"id": "wamid.1", "status": "delivered"}]}}]}]}
        resp = client.post("/whatsapp/webhook", json=inbound)
        assert resp.json() == {"status": "received"}

        malformed_bodies = [
            {"entry": None},
            {"entry": ["x", {"changes": None}]},
            {"entry": [{"changes": [{"value": []}]}]},
            [1, 2],
        ]
        for malformed in malformed_bodies:
            resp = client.post("/whatsapp/webhook", json=malformed)
            assert resp.status_code == 200
            assert resp.json()["status"] in ("received", "ignored")


def test_status_stats_and_health(app_config) -> None:
    client, _, _ = build_test_client(app_config)
    with client:
        assert client.get("/auth/status").json() == {"authenticated": True, "calendarId": "primary"}

        client.post("/reminders/check")
        stats = client.get("/stats").json()
        assert stats["reminders"]["totalEvents"] == 2
        assert stats["reminders"]["batchesRun"] == 1
        assert stats["reminders"]["lastBatch"]["processed"] == 2
        assert len(stats["recentDispatches"]) == 2

        health = client.get("/health").json()
        assert health["is_started"] is True
        assert health["config_loaded"] is True
