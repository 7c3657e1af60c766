"""HTTP API for the reminder hub."""

from __future__ import annotations

import hmac
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from src.app.reminder_app import ReminderApp
from src.utils.logger import log_error, log_info, log_warning


class SyncRequest(BaseModel):
    action: Optional[str] = Field(default=None, description="Provisioning action to run")
    data: Dict[str, Any] = Field(default_factory=dict)


class BirthdaysRequest(BaseModel):
    birthdays: List[Dict[str, Any]] = Field(default_factory=list, description="Entries of {name, date}")


class BroadcastRequest(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None


class StatsResponse(BaseModel):
    reminders: Dict[str, Any]
    recent_dispatches: List[Dict[str, Any]] = Field(default_factory=list, serialization_alias="recentDispatches")


def get_hub(app: FastAPI) -> ReminderApp:
    hub = getattr(app.state, "hub", None)
    if hub is None:
        raise RuntimeError("Reminder hub instance is not configured on the application state")
    return hub


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def server_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc) or type(exc).__name__, "timestamp": _now_iso()},
    )


def is_authorized(authorization: Optional[str], secret: str) -> bool:
    """Constant-time check of ``Authorization: Bearer <secret>``."""
    if not secret or not authorization:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8"))


def webhook_items(container: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """Dict items of ``container[key]``; anything malformed yields nothing."""
    items = container.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def create_app(hub_instance: ReminderApp | None = None) -> FastAPI:
    hub = hub_instance or ReminderApp()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.hub = hub
        await hub.startup()
        try:
            yield
        finally:
            await hub.shutdown()

    app = FastAPI(
        title="Media Team Reminder Hub API",
        version="1.0.0",
        description="Calendar-driven WhatsApp reminders for the church media team.",
        lifespan=lifespan,
    )

    async def run_batch() -> JSONResponse:
        try:
            body = await get_hub(app).check_reminders()
            return JSONResponse(content=body)
        except Exception as exc:
            log_error(f"Reminder check failed: {exc}")
            return server_error(exc)

    @app.api_route("/cron/check-reminders", methods=["GET", "POST"])
    async def cron_check_endpoint(request: Request) -> JSONResponse:
        secret = get_hub(app).config.server.cron_secret
        if not is_authorized(request.headers.get("authorization"), secret):
            log_warning("Rejected unauthorized reminder check")
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})
        log_info("Timer-triggered reminder check")
        return await run_batch()

    @app.post("/reminders/check")
    async def manual_check_endpoint() -> JSONResponse:
        if not get_hub(app).config.server.allow_manual_trigger:
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"error": "Manual reminder checks are disabled"},
            )
        log_info("Manually triggered reminder check")
        return await run_batch()

    @app.get("/calendar/events")
    async def list_events_endpoint(days: int = Query(default=30)) -> JSONResponse:
        try:
            events = await get_hub(app).list_events(days)
            return JSONResponse(content={"success": True, "count": len(events), "events": events})
        except ValueError as exc:
            return bad_request(str(exc))
        except Exception as exc:
            log_error(f"Failed to list events: {exc}")
            return server_error(exc)

    @app.delete("/calendar/events/{event_id}")
    async def delete_event_endpoint(event_id: str) -> JSONResponse:
        try:
            deleted = await get_hub(app).delete_event(event_id)
            return JSONResponse(content={"success": deleted, "eventId": event_id})
        except Exception as exc:
            log_error(f"Failed to delete event {event_id}: {exc}")
            return server_error(exc)

    @app.post("/calendar/sync")
    async def calendar_sync_endpoint(payload: SyncRequest) -> JSONResponse:
        try:
            return JSONResponse(content=await get_hub(app).sync_calendar(payload.action, payload.data))
        except ValueError as exc:
            return bad_request(str(exc))
        except Exception as exc:
            log_error(f"Calendar sync failed: {exc}")
            return server_error(exc)

    @app.post("/birthdays/upload")
    async def upload_birthdays_endpoint(file: Optional[UploadFile] = File(default=None)) -> JSONResponse:
        if file is None:
            return bad_request("No file uploaded")
        try:
            content = await file.read()
            return JSONResponse(content=await get_hub(app).import_birthdays(file.filename or "", content))
        except ValueError as exc:
            return bad_request(str(exc))
        except Exception as exc:
            log_error(f"Birthday upload failed: {exc}")
            return server_error(exc)

    @app.put("/birthdays")
    async def add_birthdays_endpoint(payload: BirthdaysRequest) -> JSONResponse:
        try:
            return JSONResponse(content=await get_hub(app).add_birthdays(payload.birthdays))
        except ValueError as exc:
            return bad_request(str(exc))
        except Exception as exc:
            log_error(f"Adding birthdays failed: {exc}")
            return server_error(exc)

    @app.post("/whatsapp/send")
    async def whatsapp_send_endpoint(payload: BroadcastRequest) -> JSONResponse:
        try:
            return JSONResponse(content=await get_hub(app).send_custom_message(payload.title, payload.message))
        except ValueError as exc:
            return bad_request(str(exc))
        except Exception as exc:
            log_error(f"Broadcast failed: {exc}")
            return server_error(exc)

    @app.post("/whatsapp/test")
    async def whatsapp_test_endpoint() -> JSONResponse:
        try:
            return JSONResponse(content=await get_hub(app).send_test_message())
        except Exception as exc:
            log_error(f"Test message failed: {exc}")
            return server_error(exc)

    @app.get("/whatsapp/webhook")
    async def whatsapp_verify_endpoint(
        mode: Optional[str] = Query(default=None, alias="hub.mode"),
        token: Optional[str] = Query(default=None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    ):
        answer = get_hub(app).verify_webhook(mode, token, challenge)
        if answer is None:
            log_warning("WhatsApp webhook verification failed")
            return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "Verification failed"})
        return PlainTextResponse(answer)

    @app.post("/whatsapp/webhook")
    async def whatsapp_inbound_endpoint(request: Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            return {"status": "ignored"}

        if not isinstance(body, dict):
            return {"status": "ignored"}

        for entry in webhook_items(body, "entry"):
            for change in webhook_items(entry, "changes"):
                value = change.get("value")
                if not isinstance(value, dict):
                    continue
                for message in webhook_items(value, "messages"):
                    log_info(f"Inbound WhatsApp message from {message.get('from')}: {message.get('type')}")
                for delivery in webhook_items(value, "statuses"):
                    log_info(f"WhatsApp message {delivery.get('id')} status: {delivery.get('status')}")
        return {"status": "received"}

    @app.get("/auth/status")
    async def auth_status_endpoint() -> Dict[str, Any]:
        return get_hub(app).auth_status()

    @app.get("/stats")
    async def stats_endpoint():
        try:
            stats = StatsResponse(
                reminders=get_hub(app).get_reminder_stats(),
                recent_dispatches=get_hub(app).get_notifications(),
            )
            return JSONResponse(content=stats.model_dump(mode="json", by_alias=True))
        except Exception as exc:
            log_error(f"Failed to fetch stats: {exc}")
            return server_error(exc)

    @app.get("/health")
    async def health_endpoint():
        try:
            return get_hub(app).snapshot()
        except Exception as exc:  # pragma: no cover
            return server_error(exc)

    return app


app = create_app()
