"""Result models returned by a reminder batch."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class RecipientResult(BaseModel):
    """Outcome of one message send to one recipient."""
    recipient: str
    success: bool
    message_id: Optional[str] = Field(default=None, serialization_alias="messageId")
    error: Optional[str] = None


class ProcessedEvent(BaseModel):
    """Per-entry detail of a reminder batch."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    type: str = Field(description="Category the entry was classified into")
    date: str = Field(description="Due date or datetime, ISO 8601")
    processed: bool = Field(default=False, description="At least one reminder was delivered")
    trigger_point: Optional[str] = Field(default=None, serialization_alias="triggerPoint")
    reminders_sent: int = Field(default=0, serialization_alias="remindersSent")
    failed: int = Field(default=0, description="Recipients the reminder could not reach")
    recipients: List[RecipientResult] = Field(default_factory=list)
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Summary of one pass over the upcoming entries."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    processed: int = 0
    total: int = 0
    total_reminders_sent: int = Field(default=0, serialization_alias="totalRemindersSent")
    results: List[ProcessedEvent] = Field(default_factory=list)
    timestamp: datetime

    def to_response(self, stats: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """JSON body of the trigger endpoints."""
        payload = self.model_dump(mode="json", by_alias=True)
        payload["stats"] = stats or {}
        return payload
