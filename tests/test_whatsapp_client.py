import json
from typing import List

import httpx
import pytest

from config.config import WhatsAppConfig
from src.messaging.whatsapp_client import WhatsAppClient, normalize_phone


def build_client(handler, recipients=("+234 800 000 0001", "2348000000002"), verify_token="verify-me"):
    config = WhatsAppConfig(
        phone_number_id="1234567890",
        access_token="token-abc",
        verify_token=verify_token,
        recipient_numbers=list(recipients),
        send_delay_seconds=0,
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppClient(config, http_client=http_client)


def test_recipient_numbers_accept_comma_separated_string():
    config = WhatsAppConfig(recipient_numbers=" +2348000000001, 2348000000002 ,,")
    assert config.recipient_numbers == ["+2348000000001", "2348000000002"]


def test_normalize_phone():
    assert normalize_phone("+234 803 000 0000") == "2348030000000"


async def test_send_posts_text_message():
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.ABC"}]})

    client = build_client(handler)
    result = await client.send("+234 800 000 0001", "hello team")

    assert result.success
    assert result.message_id == "wamid.ABC"
    assert result.recipient == "2348000000001"

    request = requests[0]
    assert str(request.url) == "https://graph.facebook.com/v18.0/1234567890/messages"
    assert request.headers["authorization"] == "Bearer token-abc"
    body = json.loads(request.content)
    assert body == {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": "2348000000001",
        "type": "text",
        "text": {"preview_url": False, "body": "hello team"},
    }


async def test_provider_error_message_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Recipient phone number not in allowed list", "code": 131030}})

    result = await build_client(handler).send("2348000000001", "hi")

    assert not result.success
    assert result.error == "Recipient phone number not in allowed list"


async def test_transport_error_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await build_client(handler).send("2348000000001", "hi")

    assert not result.success
    assert "connection refused" in result.error


async def test_send_to_all_is_independent_per_recipient():
    def handler(request: httpx.Request) -> httpx.Response:
        to = json.loads(request.content)["to"]
        if to == "2348000000001":
            return httpx.Response(500, text="upstream failure")
        return httpx.Response(200, json={"messages": [{"id": f"wamid.{to}"}]})

    results = await build_client(handler).send_to_all("reminder")

    assert [r.success for r in results] == [False, True]
    assert results[0].error.startswith("HTTP 500")
    assert results[1].message_id == "wamid.2348000000002"


async def test_send_to_all_without_recipients():
    def handler(request: httpx.Request) -> httpx.Response:
        pytest.fail("no request expected")

    assert await build_client(handler, recipients=()).send_to_all("reminder") == []


def test_verify_webhook():
    client = build_client(lambda request: httpx.Response(200))

    assert client.verify_webhook("subscribe", "verify-me", "12345") == "12345"
    assert client.verify_webhook("subscribe", "wrong", "12345") is None
    assert client.verify_webhook("unsubscribe", "verify-me", "12345") is None


def test_verify_webhook_requires_configured_token():
    client = build_client(lambda request: httpx.Response(200), verify_token="")
    assert client.verify_webhook("subscribe", "", "12345") is None
