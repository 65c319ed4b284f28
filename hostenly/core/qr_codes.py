"""WhatsApp click-to-chat links and QR image URLs for property channel addresses."""

from urllib.parse import quote

WHATSAPP_LINK_BASE = "https://wa.me/"
QR_IMAGE_BASE = "https://api.qrserver.com/v1/create-qr-code/"


def build_whatsapp_link(channel_address: str) -> str:
    """
    `whatsapp:+1 (555) 010-2030` -> `https://wa.me/15550102030`.

    Raises:
        ValueError: If the address contains no digits
    """
    address = channel_address.strip()
    if address.startswith("whatsapp:"):
        address = address[len("whatsapp:"):]
    digits = "".join(ch for ch in address if ch.isdigit())
    if not digits:
        raise ValueError(f"Channel address has no phone number: {channel_address!r}")
    return f"{WHATSAPP_LINK_BASE}{digits}"


def build_qr_code_url(channel_address: str, size: int = 300) -> str:
    """QR image URL that encodes the WhatsApp link for a channel address."""
    link = build_whatsapp_link(channel_address)
    return f"{QR_IMAGE_BASE}?size={size}x{size}&data={quote(link, safe='')}"
