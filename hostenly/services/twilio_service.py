"""Twilio Messages API transport for WhatsApp replies.

Uses httpx for async HTTP requests against the Twilio REST API. Failures are
raised as TransportError; retry policy belongs to the caller.
"""

from __future__ import annotations

import httpx

from hostenly.core.config import get_settings
from hostenly.core.errors import TransportError
from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import DeliveryReceipt

logger = get_logger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def strip_channel_prefix(address: str) -> str:
    """`whatsapp:+15551234567` -> `+15551234567`."""
    address = address.strip()
    if address.startswith(WHATSAPP_PREFIX):
        return address[len(WHATSAPP_PREFIX):]
    return address


def to_whatsapp_address(address: str) -> str:
    """`+15551234567` -> `whatsapp:+15551234567` (idempotent)."""
    address = address.strip()
    return address if address.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{address}"


class TwilioService:
    """Delivers text replies to guests over WhatsApp."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls) -> TwilioService:
        settings = get_settings()
        return cls(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            api_base=settings.TWILIO_API_BASE,
            timeout=settings.TWILIO_TIMEOUT_SECONDS,
        )

    @property
    def messages_url(self) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"

    async def send(self, from_address: str, to_address: str, body: str) -> DeliveryReceipt:
        """
        Send a WhatsApp message.

        Args:
            from_address: Property channel address (with or without `whatsapp:`)
            to_address: Guest address (with or without `whatsapp:`)
            body: Message text

        Returns:
            DeliveryReceipt with the Twilio message SID

        Raises:
            TransportError: If Twilio rejects the message or is unreachable
        """
        if not self.account_sid or not self.auth_token:
            raise TransportError("Twilio credentials are not configured")

        form = {
            "From": to_whatsapp_address(from_address),
            "To": to_whatsapp_address(to_address),
            "Body": body,
        }

        try:
            if self._http_client is not None:
                resp = await self._post(self._http_client, form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await self._post(client, form)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error(f"Twilio rejected message to {form['To']}: {detail}")
            raise TransportError(
                f"Twilio rejected message: {detail}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed for {form['To']}: {e}")
            raise TransportError(f"Twilio request failed: {e}") from e

        payload = resp.json()
        receipt = DeliveryReceipt(
            sid=payload.get("sid", ""),
            status=payload.get("status", "queued"),
            to_address=payload.get("to", form["To"]),
            from_address=payload.get("from", form["From"]),
        )
        logger.info(f"Message sent via Twilio: {receipt.sid}")
        return receipt

    async def _post(self, client: httpx.AsyncClient, form: dict[str, str]) -> httpx.Response:
        return await client.post(
            self.messages_url,
            data=form,
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    message = payload.get("message") or "unknown error"
    code = payload.get("code")
    return f"{message} (code {code})" if code else message
