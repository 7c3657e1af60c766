"""WhatsApp Cloud API client used as the reminder fan-out sink."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from config.config import WhatsAppConfig
from src.utils.logger import log_debug, log_error, log_info, log_warning


@dataclass
class SendResult:
    """Result of sending one text message to one recipient."""
    recipient: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient": self.recipient,
            "success": self.success,
            "messageId": self.message_id,
            "error": self.error,
        }


def normalize_phone(number: str) -> str:
    """Strip spaces and the leading '+' ("+234 803 000" -> "234803000")."""
    return "".join(ch for ch in number if ch not in " +")


def _provider_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict) and error_payload.get("message"):
            return str(error_payload["message"])
    return f"HTTP {response.status_code}: {response.text[:200]}"


class WhatsAppClient:
    """Sends text messages through the WhatsApp Business Cloud API.

    Sends never raise on provider or transport errors; failures come back as
    ``SendResult(success=False)`` so one bad recipient cannot stop a fan-out.
    """

    def __init__(self, config: WhatsAppConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)

    @property
    def recipients(self) -> List[str]:
        return list(self.config.recipient_numbers)

    @property
    def messages_url(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/{self.config.phone_number_id}/messages"

    async def send(self, recipient: str, text: str) -> SendResult:
        """Send ``text`` to one recipient."""
        to = normalize_phone(recipient)
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        headers = {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._http_client.post(self.messages_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log_error(f"WhatsApp send to {to} failed: {e}")
            return SendResult(recipient=to, success=False, error=str(e) or type(e).__name__)

        if response.status_code < 200 or response.status_code >= 300:
            error = _provider_error(response)
            log_error(f"WhatsApp send to {to} rejected: {error}")
            return SendResult(recipient=to, success=False, error=error)

        try:
            message_id = response.json()["messages"][0]["id"]
        except (ValueError, KeyError, IndexError, TypeError):
            log_warning(f"WhatsApp accepted message to {to} without a message id")
            message_id = None

        log_debug(f"WhatsApp message {message_id} sent to {to}")
        return SendResult(recipient=to, success=True, message_id=message_id)

    async def send_to_all(self, text: str) -> List[SendResult]:
        """Send ``text`` to every configured recipient, one at a time.

        ``send_delay_seconds`` is awaited between two sends to stay under
        the provider's rate limits.
        """
        recipients = self.recipients
        if not recipients:
            log_warning("No WhatsApp recipients configured; nothing sent")
            return []

        results: List[SendResult] = []
        for index, recipient in enumerate(recipients):
            if index and self.config.send_delay_seconds > 0:
                await asyncio.sleep(self.config.send_delay_seconds)
            results.append(await self.send(recipient, text))

        successful = sum(1 for r in results if r.success)
        log_info(f"WhatsApp fan-out: {successful}/{len(results)} delivered")
        return results

    def verify_webhook(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        """Answer Meta's webhook verification handshake.

        Returns:
            The challenge to echo back, or None if verification fails
        """
        if mode == "subscribe" and self.config.verify_token and token == self.config.verify_token:
            log_info("WhatsApp webhook verified")
            return challenge or ""
        return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
