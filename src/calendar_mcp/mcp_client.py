"""MCP client for Google Calendar integration."""

import json
import os
from pathlib import Path
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from ..models.calendar import Event, EventCreate, EventList, EventDateTime
from ..utils.date_parser import get_timezone, to_iso_format
from ..utils.logger import log_info, log_error, log_debug, log_warning


class MCPClient:
    """Client for interfacing with the Google Calendar MCP server.

    The MCP server owns the OAuth flow: it reads the client secrets from
    ``GOOGLE_OAUTH_CREDENTIALS`` and keeps its own refreshed tokens.
    """

    def __init__(
        self,
        mcp_server_path: str,
        oauth_credentials_path: str,
        calendar_id: str = "primary",
        time_zone: str = "UTC"
    ):
        """Initialize the MCP client.

        Args:
            mcp_server_path: Path to the Google Calendar MCP server directory
            oauth_credentials_path: Path to OAuth credentials JSON file
            calendar_id: Calendar used when none is given explicitly
            time_zone: IANA timezone for listing windows
        """
        self.mcp_server_path = Path(mcp_server_path)
        self.oauth_credentials_path = Path(oauth_credentials_path)
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        self.session: Optional[ClientSession] = None
        self._read_stream = None
        self._write_stream = None
        self._stdio_context = None
        self._session_context = None

        if not self.mcp_server_path.exists():
            raise FileNotFoundError(f"MCP server path not found: {mcp_server_path}")

        server_entry = self.mcp_server_path / "build" / "index.js"
        if not server_entry.exists():
            raise FileNotFoundError(
                f"MCP server not built. Run 'npm run build' in {mcp_server_path}"
            )

        if not self.oauth_credentials_path.exists():
            raise FileNotFoundError(
                f"OAuth credentials not found: {oauth_credentials_path}"
            )

    @property
    def is_connected(self) -> bool:
        return self.session is not None

    async def connect(self) -> None:
        """Connect to the MCP server."""
        log_info("Connecting to Google Calendar MCP server...")

        try:
            server_params = StdioServerParameters(
                command="node",
                args=[str(self.mcp_server_path / "build" / "index.js")],
                env={
                    **dict(os.environ),
                    "GOOGLE_OAUTH_CREDENTIALS": str(self.oauth_credentials_path),
                }
            )

            self._stdio_context = stdio_client(server_params)
            self._read_stream, self._write_stream = await self._stdio_context.__aenter__()

            log_debug("Stdio streams established, creating session...")
            self._session_context = ClientSession(self._read_stream, self._write_stream)
            self.session = await self._session_context.__aenter__()

            result = await self.session.initialize()

            log_info("Successfully connected to MCP server")
            log_debug(f"Server: {result.serverInfo.name} v{result.serverInfo.version}")

        except Exception as e:
            log_error(f"Failed to connect to MCP server: {e}", exc_info=True)
            self.session = None
            raise

    async def disconnect(self) -> None:
        """Disconnect from the MCP server."""
        if self.session:
            log_info("Disconnecting from MCP server...")
            try:
                if self._session_context:
                    await self._session_context.__aexit__(None, None, None)
                if self._stdio_context:
                    await self._stdio_context.__aexit__(None, None, None)
                log_info("Disconnected from MCP server")
            except Exception as e:
                log_error(f"Error during disconnect: {e}")
            finally:
                self.session = None
                self._stdio_context = None
                self._session_context = None

    async def _call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Call an MCP tool and return the decoded JSON result.

        Raises:
            RuntimeError: If not connected, or if the tool reports an error
        """
        if not self.session:
            raise RuntimeError("MCP client not connected. Call connect() first.")

        log_debug(f"Calling MCP tool: {tool_name} with args: {arguments}")

        try:
            result = await self.session.call_tool(tool_name, arguments)
        except Exception as e:
            log_error(f"Error calling tool {tool_name}: {e}")
            raise

        text = ""
        if result.content:
            text = getattr(result.content[0], "text", "") or ""

        if getattr(result, "isError", False):
            raise RuntimeError(f"Tool {tool_name} failed: {text or 'unknown error'}")

        if not text:
            log_warning(f"Tool {tool_name} returned empty response")
            return {}

        try:
            response_data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Tool {tool_name} returned non-JSON content: {text[:200]}") from e

        log_debug(f"Tool {tool_name} completed successfully")
        return response_data

    async def list_events(
        self,
        calendar_id: Optional[str] = None,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        time_zone: Optional[str] = None
    ) -> EventList:
        """List events from a calendar.

        Args:
            calendar_id: Calendar ID (default: the configured calendar)
            time_min: Start time in ISO 8601 format
            time_max: End time in ISO 8601 format
            time_zone: Timezone for the query

        Returns:
            EventList with matching events; recurring series are expanded
            into their individual instances by the server
        """
        calendar_id = calendar_id or self.calendar_id
        log_info(f"Fetching events from calendar: {calendar_id}")

        if not time_min:
            time_min = to_iso_format(datetime.now())
        if not time_max:
            time_max = to_iso_format(datetime.now() + timedelta(days=7))

        arguments = {
            "calendarId": calendar_id,
            "timeMin": time_min,
            "timeMax": time_max,
            "timeZone": time_zone or self.time_zone,
        }

        try:
            result = await self._call_tool("list-events", arguments)
            events = [self._parse_event(data, calendar_id) for data in result.get("events", [])]
            log_info(f"Found {len(events)} events")
            return EventList(events=events, total_count=len(events), calendars=[calendar_id])

        except Exception as e:
            log_error(f"Failed to list events: {e}")
            raise

    async def list_upcoming(self, days_ahead: int = 30) -> List[Event]:
        """Entries from now through ``days_ahead`` days from now."""
        now = datetime.now(get_timezone(self.time_zone))
        event_list = await self.list_events(
            time_min=to_iso_format(now),
            time_max=to_iso_format(now + timedelta(days=days_ahead)),
        )
        return event_list.events

    async def create_event(self, event_create: EventCreate) -> Event:
        """Create a new calendar event.

        Args:
            event_create: Event creation data

        Returns:
            Created Event
        """
        log_info(f"Creating event: {event_create.summary}")

        arguments: Dict[str, Any] = {
            "calendarId": event_create.calendar_id,
            "summary": event_create.summary,
            "start": event_create.start,
            "end": event_create.end,
        }

        if event_create.description:
            arguments["description"] = event_create.description
        if event_create.location:
            arguments["location"] = event_create.location
        if event_create.color_id:
            arguments["colorId"] = event_create.color_id
        if event_create.time_zone:
            arguments["timeZone"] = event_create.time_zone
        if event_create.recurrence:
            arguments["recurrence"] = event_create.recurrence
        if event_create.reminders:
            arguments["reminders"] = {
                "useDefault": False,
                "overrides": [r.model_dump() for r in event_create.reminders],
            }

        try:
            result = await self._call_tool("create-event", arguments)
            event = self._parse_event(result.get("event", {}), event_create.calendar_id)
            log_info(f"Successfully created event: {event.id}")
            return event

        except Exception as e:
            log_error(f"Failed to create event: {e}")
            raise

    async def delete_event(self, event_id: str, calendar_id: Optional[str] = None) -> bool:
        """Delete a calendar event.

        Returns:
            True if successful
        """
        calendar_id = calendar_id or self.calendar_id
        log_info(f"Deleting event: {event_id}")

        arguments = {
            "calendarId": calendar_id,
            "eventId": event_id,
            "sendUpdates": "none"
        }

        try:
            result = await self._call_tool("delete-event", arguments)
            success = bool(result.get("success", False))
            if success:
                log_info(f"Successfully deleted event: {event_id}")
            else:
                log_warning(f"Delete event returned success=False for: {event_id}")
            return success

        except Exception as e:
            log_error(f"Failed to delete event: {e}")
            raise

    @staticmethod
    def _parse_event(event_data: Dict[str, Any], calendar_id: str) -> Event:
        """Parse event data from MCP response into Event model."""
        start_data = event_data.get("start") or {}
        end_data = event_data.get("end") or {}

        return Event(
            id=event_data.get("id", ""),
            calendar_id=calendar_id,
            summary=event_data.get("summary", ""),
            description=event_data.get("description"),
            start=EventDateTime(
                date_time=start_data.get("dateTime"),
                date=start_data.get("date"),
                time_zone=start_data.get("timeZone"),
            ),
            end=EventDateTime(
                date_time=end_data.get("dateTime"),
                date=end_data.get("date"),
                time_zone=end_data.get("timeZone"),
            ),
            location=event_data.get("location"),
            status=event_data.get("status", "confirmed"),
            html_link=event_data.get("htmlLink"),
            recurrence=event_data.get("recurrence"),
            recurring_event_id=event_data.get("recurringEventId"),
            color_id=event_data.get("colorId"),
        )
