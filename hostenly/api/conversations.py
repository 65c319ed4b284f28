"""API endpoints for guest conversations and manual host replies."""

import asyncio
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response

from hostenly.api.dependencies import (
    AuthContext,
    get_conversation_store,
    get_message_pipeline,
    get_property_store,
    load_owned_property,
    require_account,
)
from hostenly.core.errors import (
    ConversationNotFoundError,
    PersistenceError,
    PropertyNotFoundError,
)
from hostenly.core.logging import get_logger
from hostenly.core.pipeline import MessagePipeline
from hostenly.core.schemas_admin import (
    ConversationDetailResponse,
    ManualMessageRequest,
    ManualMessageResponse,
)
from hostenly.core.schemas_messaging import Conversation, PipelineState
from hostenly.db.conversations import ConversationStore
from hostenly.db.properties import PropertyStore

logger = get_logger(__name__)

router = APIRouter()


def _load_owned_conversation(
    conversation_id: UUID,
    auth: AuthContext,
    conversations: ConversationStore,
    properties: PropertyStore,
) -> Conversation:
    try:
        conversation = conversations.get_conversation(conversation_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    except PersistenceError as e:
        logger.exception(f"Failed to fetch conversation {conversation_id}")
        raise HTTPException(status_code=500, detail="Server error while fetching conversation") from e

    load_owned_property(conversation.property_id, auth, properties)
    return conversation


@router.get("/property/{property_id}")
def list_property_conversations(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> list[dict]:
    """Conversations of a property, most recently active first, each with its last message."""
    load_owned_property(property_id, auth, properties)
    try:
        return conversations.list_conversations(property_id)
    except Exception as e:
        logger.exception(f"Failed to list conversations for property {property_id}")
        raise HTTPException(
            status_code=500, detail="Server error while fetching conversations"
        ) from e


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(
    conversation_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetailResponse:
    conversation = _load_owned_conversation(conversation_id, auth, conversations, properties)
    try:
        messages = conversations.list_messages(conversation_id)
    except Exception as e:
        logger.exception(f"Failed to fetch messages for conversation {conversation_id}")
        raise HTTPException(status_code=500, detail="Server error while fetching messages") from e

    return ConversationDetailResponse(conversation=conversation, messages=messages)


@router.delete("/{conversation_id}", status_code=204)
def delete_conversation(
    conversation_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> Response:
    _load_owned_conversation(conversation_id, auth, conversations, properties)
    try:
        conversations.delete_conversation(conversation_id)
    except Exception as e:
        logger.exception(f"Failed to delete conversation {conversation_id}")
        raise HTTPException(
            status_code=500, detail="Server error during conversation deletion"
        ) from e
    return Response(status_code=204)


@router.post("/{conversation_id}/messages", response_model=ManualMessageResponse, status_code=201)
async def send_host_message(
    conversation_id: UUID,
    request: ManualMessageRequest,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
    pipeline: MessagePipeline = Depends(get_message_pipeline),
) -> ManualMessageResponse:
    """
    Send a host-written message to the guest.

    The message is stored and counted even if WhatsApp delivery fails; the
    response reports `delivered=false` with the transport error in that case.
    """
    await asyncio.to_thread(
        _load_owned_conversation, conversation_id, auth, conversations, properties
    )

    try:
        result = await pipeline.send_manual_message(conversation_id, request.content)
    except (ConversationNotFoundError, PropertyNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    if result.state == PipelineState.DISPATCH_FAILED:
        logger.warning(f"Manual message {result.reply_message_id} stored but not delivered")

    return ManualMessageResponse(
        conversation_id=conversation_id,
        message_id=result.reply_message_id,
        delivered=result.delivered,
        message_sid=result.receipt.sid if result.receipt else None,
        error=result.error,
    )
