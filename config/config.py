"""Configuration management for the application."""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


KNOWN_CATEGORIES = ("birthday", "monthly_design", "meeting", "roster", "custom")


class MeetingWindow(BaseModel):
    """Hour band before a meeting in which a reminder fires once."""
    name: str = Field(description="Trigger point name, e.g. 'day_before'")
    min_hours: float = Field(description="Lower bound of hours until the meeting")
    max_hours: float = Field(description="Upper bound of hours until the meeting")

    @property
    def width_hours(self) -> float:
        return self.max_hours - self.min_hours


class CalendarConfig(BaseModel):
    """Google Calendar (MCP) configuration."""
    calendar_mcp_path: str = Field(description="Path to Google Calendar MCP server")
    oauth_credentials_path: str = Field(description="Path to OAuth credentials JSON")
    calendar_id: str = Field(default="primary", description="Calendar holding the team's entries")
    timezone: str = Field(default="Africa/Lagos", description="IANA timezone used for day arithmetic")
    look_ahead_days: int = Field(default=30, description="Days ahead fetched per reminder batch")


class WhatsAppConfig(BaseModel):
    """WhatsApp Cloud API configuration."""
    api_url: str = Field(default="https://graph.facebook.com/v18.0", description="Graph API base URL")
    phone_number_id: str = Field(default="", description="Sender phone number ID")
    access_token: str = Field(default="", description="Graph API access token")
    verify_token: str = Field(default="", description="Webhook verification token")
    recipient_numbers: List[str] = Field(default_factory=list, description="Phone numbers receiving reminders")
    send_delay_seconds: float = Field(default=1.0, description="Pause between two sends")
    request_timeout_seconds: float = Field(default=30.0, description="HTTP timeout per request")

    @field_validator("recipient_numbers", mode="before")
    @classmethod
    def split_recipients(cls, value: Any) -> Any:
        # Env expansion yields a single comma-separated string
        if value is None:
            return []
        if isinstance(value, str):
            return [number.strip() for number in value.split(",") if number.strip()]
        return value


class RemindersConfig(BaseModel):
    """Reminders service configuration."""
    enabled: bool = Field(default=True, description="Whether reminders are enabled")
    background_polling: bool = Field(default=True, description="Run the in-process polling loop")
    check_interval_seconds: int = Field(default=3600, description="Interval between two reminder batches")
    team_name: str = Field(default="Church Media Team", description="Signature used in messages")
    rules: Dict[str, List[int]] = Field(
        default_factory=lambda: {
            "birthday": [7, 3, 1, 0],
            "monthly_design": [3, 1, 0],
            "roster": [3],
            "custom": [],
        },
        description="Days-before trigger points per category",
    )
    meeting_windows: List[MeetingWindow] = Field(
        default_factory=lambda: [
            MeetingWindow(name="day_before", min_hours=23, max_hours=25),
            MeetingWindow(name="hour_before", min_hours=0.5, max_hours=1.5),
        ],
        description="Hour bands for meeting reminders, checked in order",
    )


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    cron_secret: str = Field(default="", description="Bearer secret expected from the timer")
    allow_manual_trigger: bool = Field(default=True, description="Expose the unauthenticated manual trigger")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")


class AppConfig(BaseModel):
    """Application configuration."""
    calendar: CalendarConfig
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)
    reminders: RemindersConfig = Field(default_factory=RemindersConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in configuration data.

    Supports ${VAR} and ${VAR:default} syntax.
    """
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_part = data[2:-1]
            if ":" in var_part:
                var_name, default_value = var_part.split(":", 1)
                return os.getenv(var_name, default_value)
            else:
                var_name = var_part
                return os.getenv(var_name, data)
        return data
    else:
        return data


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config YAML file. Defaults to config/config.yaml

    Returns:
        AppConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config_path = Path(os.getenv("REMINDERS_CONFIG", Path(__file__).parent / "config.yaml"))
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = yaml.safe_load(f) or {}

    config_data = expand_env_vars(config_data)

    try:
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}")


def validate_config(config: AppConfig) -> List[str]:
    """Validate that all required configuration values are present and valid.

    Args:
        config: Application configuration

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    # Calendar MCP server
    mcp_path = Path(config.calendar.calendar_mcp_path)
    if not mcp_path.exists():
        errors.append(f"Google Calendar MCP server path does not exist: {config.calendar.calendar_mcp_path}")
    elif not (mcp_path / "build" / "index.js").exists():
        errors.append(f"Google Calendar MCP server not built. Run 'npm run build' in {config.calendar.calendar_mcp_path}")

    oauth_path = Path(config.calendar.oauth_credentials_path)
    if not oauth_path.exists():
        errors.append(f"OAuth credentials file not found: {config.calendar.oauth_credentials_path}")

    # WhatsApp
    if not config.whatsapp.access_token:
        errors.append("WHATSAPP_ACCESS_TOKEN is not set")
    if not config.whatsapp.phone_number_id:
        errors.append("WHATSAPP_PHONE_NUMBER_ID is not set")
    if not config.whatsapp.recipient_numbers:
        errors.append("No WhatsApp recipients configured")

    if not config.server.cron_secret:
        errors.append("CRON_SECRET is not set; the timer endpoint will reject every call")

    # Reminder rules
    for category in config.reminders.rules:
        if category not in KNOWN_CATEGORIES:
            errors.append(f"Unknown reminder category in rules: {category}")
    if "meeting" in config.reminders.rules:
        errors.append("Meeting reminders are configured through meeting_windows, not rules")

    errors.extend(_validate_meeting_windows(config.reminders))

    return errors


def _validate_meeting_windows(reminders: RemindersConfig) -> List[str]:
    errors = []
    interval_hours = reminders.check_interval_seconds / 3600
    windows = sorted(reminders.meeting_windows, key=lambda w: w.min_hours)

    for window in windows:
        if window.min_hours < 0 or window.width_hours <= 0:
            errors.append(f"Meeting window '{window.name}' must satisfy 0 <= min_hours < max_hours")
        elif window.width_hours < interval_hours:
            errors.append(
                f"Meeting window '{window.name}' is {window.width_hours:g}h wide but reminders are "
                f"checked every {interval_hours:g}h; this reminder can be skipped between two checks"
            )

    for earlier, later in zip(windows, windows[1:]):
        if later.min_hours < earlier.max_hours:
            errors.append(f"Meeting windows '{earlier.name}' and '{later.name}' overlap")

    names = [window.name for window in windows]
    if len(names) != len(set(names)):
        errors.append("Meeting window names must be unique")

    return errors


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance.

    Returns:
        AppConfig: Global configuration

    Raises:
        RuntimeError: If configuration hasn't been loaded
    """
    global _config
    if _config is None:
        raise RuntimeError("Configuration not loaded. Call load_config() first.")
    return _config


def init_config(config_path: Optional[Path] = None) -> AppConfig:
    """Initialize the global configuration.

    Args:
        config_path: Path to config file (optional)

    Returns:
        AppConfig: Loaded configuration
    """
    global _config
    _config = load_config(config_path)
    return _config
