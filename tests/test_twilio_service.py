"""Tests for the Twilio WhatsApp transport using httpx.MockTransport."""

import httpx
import pytest

from hostenly.core.errors import TransportError
from hostenly.services.twilio_service import (
    TwilioService,
    strip_channel_prefix,
    to_whatsapp_address,
)


def make_service(handler) -> TwilioService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TwilioService(
        account_sid="ACtest",
        auth_token="secret",
        api_base="https://api.twilio.test/2010-04-01",
        http_client=client,
    )


def test_channel_prefix_helpers():
    assert strip_channel_prefix("whatsapp:+15551234567") == "+15551234567"
    assert strip_channel_prefix(" +15551234567 ") == "+15551234567"
    assert to_whatsapp_address("+15551234567") == "whatsapp:+15551234567"
    assert to_whatsapp_address("whatsapp:+15551234567") == "whatsapp:+15551234567"


@pytest.mark.asyncio
async def test_send_posts_form_and_returns_receipt():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = request.content.decode()
        return httpx.Response(
            201,
            json={
                "sid": "SM123",
                "status": "queued",
                "to": "whatsapp:+15559998888",
                "from": "whatsapp:+15550001111",
            },
        )

    receipt = await make_service(handler).send("+15550001111", "+15559998888", "Hi there")

    assert receipt.sid == "SM123"
    assert receipt.status == "queued"
    assert seen["url"] == "https://api.twilio.test/2010-04-01/Accounts/ACtest/Messages.json"
    assert seen["auth"].startswith("Basic ")
    assert "From=whatsapp%3A%2B15550001111" in seen["body"]
    assert "To=whatsapp%3A%2B15559998888" in seen["body"]
    assert "Body=Hi+there" in seen["body"]


@pytest.mark.asyncio
async def test_rejected_message_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

    with pytest.raises(TransportError) as exc_info:
        await make_service(handler).send("+15550001111", "+1", "Hi")

    assert exc_info.value.status_code == 400
    assert "21211" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="request failed") as exc_info:
        await make_service(handler).send("+15550001111", "+15559998888", "Hi")

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_missing_credentials_raise_without_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(201, json={})

    service = TwilioService(
        account_sid="",
        auth_token="",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(TransportError, match="not configured"):
        await service.send("+15550001111", "+15559998888", "Hi")
    assert calls == []
