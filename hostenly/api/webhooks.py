"""Inbound channel webhooks.

Registered WITHOUT bearer auth: Twilio posts form-encoded message events here.
The response is always an empty TwiML document; the pipeline outcome is only
logged, because replies are sent through the REST API, not through TwiML.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, Form, Response

from hostenly.api.dependencies import get_inbound_pipeline
from hostenly.core.logging import get_logger, log_with_context
from hostenly.core.pipeline import MessagePipeline
from hostenly.core.schemas_messaging import InboundMessageEvent

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks")

EMPTY_TWIML = "<Response></Response>"


def _twiml_ack() -> Response:
    return Response(content=EMPTY_TWIML, media_type="text/xml")


@router.post("/twilio")
async def twilio_inbound(
    from_: str = Form("", alias="From"),
    to: str = Form("", alias="To"),
    body: str = Form("", alias="Body"),
    profile_name: str | None = Form(None, alias="ProfileName"),
    message_sid: str | None = Form(None, alias="MessageSid"),
    pipeline: MessagePipeline | None = Depends(get_inbound_pipeline),
) -> Response:
    """
    Receive an inbound WhatsApp message from Twilio.

    Flow:
    1. Normalize the form fields into an InboundMessageEvent
    2. Run the message pipeline
    3. Acknowledge with empty TwiML, whatever the outcome
    """
    event_id = message_sid or str(uuid4())

    if not from_ or not to:
        logger.warning(f"Twilio inbound without From/To, ignoring (event {event_id})")
        return _twiml_ack()

    if pipeline is None:
        logger.error(f"Twilio inbound {event_id} dropped: message pipeline unavailable")
        return _twiml_ack()

    event = InboundMessageEvent(
        sender_address=from_,
        recipient_address=to,
        body=body,
        display_name=profile_name or None,
    )

    try:
        result = await pipeline.handle_inbound(event, event_id=event_id)
        log_with_context(
            logger,
            logging.INFO,
            f"Twilio inbound {event_id} finished",
            event_id=event_id,
            property_id=result.property_id,
            conversation_id=result.conversation_id,
            state=result.state.value,
        )
    except Exception:
        logger.exception(f"Twilio inbound {event_id} failed")

    return _twiml_ack()
