"""Guest message pipeline.

Flow per inbound event:
1. RECEIVED -> RESOLVED: recipient address -> active property (else PROPERTY_NOT_FOUND)
2. RESOLVED -> ADMITTED: quota check on the owning account; a denied event gets
   the fixed limit notice and ends QUOTA_EXCEEDED without touching conversations
3. ADMITTED -> CONTEXT_LOADED: lookup-or-create conversation, persist the guest
   message, consume one unit, load recent history
4. CONTEXT_LOADED -> GROUNDED: property-scoped retrieval (best-effort)
5. GROUNDED -> GENERATED: prompt + completion; a failed completion is replaced
   by the fallback apology
6. GENERATED -> PERSISTED: persist the reply, consume one unit
7. PERSISTED -> DISPATCHED -> DONE: send the reply; a transport failure ends
   DISPATCH_FAILED with the reply still stored

Stores and the OpenAI client are synchronous and run in worker threads; the
Twilio transport is native async. Persistence errors propagate to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from hostenly.core.config import get_settings
from hostenly.core.errors import TransportError
from hostenly.core.logging import get_logger, log_with_context
from hostenly.core.prompts import DEFAULT_HISTORY_TURNS, build_system_prompt, build_user_turn
from hostenly.core.quota import LIMIT_REACHED_NOTICE
from hostenly.core.retrieval import DEFAULT_MIN_SCORE, DEFAULT_TOP_K, format_context
from hostenly.core.schemas_messaging import (
    InboundMessageEvent,
    Message,
    PipelineResult,
    PipelineState,
    Property,
)
from hostenly.services.twilio_service import strip_channel_prefix

if TYPE_CHECKING:
    from hostenly.core.completion import CompletionProvider
    from hostenly.core.quota import QuotaGate
    from hostenly.core.retrieval import RetrievalAssembler
    from hostenly.db.conversations import ConversationStore
    from hostenly.db.properties import PropertyStore
    from hostenly.services.twilio_service import TwilioService

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "I apologize, but I encountered an issue processing your request. "
    "Please try again later or contact the host directly."
)


class MessagePipeline:
    """Orchestrates resolution, quota, grounding, generation, persistence and dispatch."""

    def __init__(
        self,
        properties: PropertyStore,
        conversations: ConversationStore,
        quota: QuotaGate,
        retriever: RetrievalAssembler,
        completion: CompletionProvider,
        dispatcher: TwilioService,
        top_k: int = DEFAULT_TOP_K,
        min_score: float = DEFAULT_MIN_SCORE,
        history_turns: int = DEFAULT_HISTORY_TURNS,
    ):
        self.properties = properties
        self.conversations = conversations
        self.quota = quota
        self.retriever = retriever
        self.completion = completion
        self.dispatcher = dispatcher
        self.top_k = top_k
        self.min_score = min_score
        self.history_turns = history_turns

    @classmethod
    def with_settings(cls, **components: Any) -> MessagePipeline:
        """Build a pipeline with retrieval and history limits taken from settings."""
        settings = get_settings()
        return cls(
            top_k=settings.RETRIEVAL_TOP_K,
            min_score=settings.RETRIEVAL_MIN_SIMILARITY,
            history_turns=settings.HISTORY_MAX_TURNS,
            **components,
        )

    # =========================================================================
    # Inbound guest messages
    # =========================================================================

    async def handle_inbound(
        self,
        event: InboundMessageEvent,
        event_id: str | None = None,
    ) -> PipelineResult:
        """
        Process one inbound guest message end to end.

        Returns:
            PipelineResult whose state is DONE, PROPERTY_NOT_FOUND,
            QUOTA_EXCEEDED or DISPATCH_FAILED

        Raises:
            PersistenceError: If a store read or write fails
        """
        event_id = event_id or str(uuid4())
        guest_address = strip_channel_prefix(event.sender_address)
        property_address = strip_channel_prefix(event.recipient_address)
        self._trace(event_id, PipelineState.RECEIVED, recipient=property_address)

        # 1. Resolve
        prop = await asyncio.to_thread(self.properties.get_by_channel_address, property_address)
        if prop is None or not prop.is_active:
            log_with_context(
                logger,
                logging.WARNING,
                f"No active property for channel address {property_address}",
                event_id=event_id,
                state=PipelineState.PROPERTY_NOT_FOUND.value,
            )
            return PipelineResult(state=PipelineState.PROPERTY_NOT_FOUND)
        self._trace(event_id, PipelineState.RESOLVED, property_id=str(prop.id))

        # 2. Admit
        if not await self.quota.check_async(prop.account_id):
            result = PipelineResult(
                state=PipelineState.QUOTA_EXCEEDED,
                property_id=prop.id,
                reply_text=LIMIT_REACHED_NOTICE,
            )
            try:
                result.receipt = await self.dispatcher.send(
                    prop.channel_address, guest_address, LIMIT_REACHED_NOTICE
                )
            except TransportError as e:
                log_with_context(
                    logger,
                    logging.ERROR,
                    f"Failed to deliver limit notice: {e}",
                    event_id=event_id,
                    property_id=str(prop.id),
                )
                result.error = str(e)
            self._trace(event_id, PipelineState.QUOTA_EXCEEDED, property_id=str(prop.id))
            return result
        self._trace(event_id, PipelineState.ADMITTED, property_id=str(prop.id))

        # 3. Conversation, guest turn, history
        conversation = await asyncio.to_thread(
            self.conversations.get_or_create_conversation,
            prop.id,
            guest_address,
            event.display_name,
        )
        inbound = await asyncio.to_thread(
            self.conversations.append_message, conversation.id, event.body, True
        )
        await self.quota.consume_async(prop.account_id, 1)
        history = await self._load_history(conversation.id, exclude=inbound.id)

        result = PipelineResult(
            state=PipelineState.CONTEXT_LOADED,
            property_id=prop.id,
            conversation_id=conversation.id,
            inbound_message_id=inbound.id,
        )
        self._trace(
            event_id,
            PipelineState.CONTEXT_LOADED,
            conversation_id=str(conversation.id),
            history=len(history),
        )

        # 4. Ground
        snippets = await self.retriever.retrieve_async(
            prop.id, event.body, self.top_k, self.min_score
        )
        result.grounded = bool(snippets)
        self._trace(event_id, PipelineState.GROUNDED, snippets=len(snippets))

        # 5. Generate
        reply_text, used_fallback = await self._generate(
            prop, format_context(snippets), history, event.body, event_id
        )
        result.reply_text = reply_text
        result.used_fallback = used_fallback
        self._trace(event_id, PipelineState.GENERATED, fallback=used_fallback)

        # 6. Persist reply
        reply = await asyncio.to_thread(
            self.conversations.append_message, conversation.id, reply_text, False
        )
        await self.quota.consume_async(prop.account_id, 1)
        result.reply_message_id = reply.id
        self._trace(event_id, PipelineState.PERSISTED, reply_message_id=str(reply.id))

        # 7. Dispatch
        return await self._dispatch(
            result, prop.channel_address, guest_address, reply_text, event_id
        )

    # =========================================================================
    # Manual host messages
    # =========================================================================

    async def send_manual_message(self, conversation_id: UUID, content: str) -> PipelineResult:
        """
        Persist and deliver a host-authored message, bypassing grounding and generation.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            PropertyNotFoundError: If its property no longer exists
            PersistenceError: If a store read or write fails
        """
        event_id = str(uuid4())
        conversation = await asyncio.to_thread(
            self.conversations.get_conversation, conversation_id
        )
        prop = await asyncio.to_thread(self.properties.get_property, conversation.property_id)

        message = await asyncio.to_thread(
            self.conversations.append_message, conversation.id, content, False
        )
        await self.quota.consume_async(prop.account_id, 1)

        result = PipelineResult(
            state=PipelineState.PERSISTED,
            property_id=prop.id,
            conversation_id=conversation.id,
            reply_message_id=message.id,
            reply_text=content,
        )
        self._trace(event_id, PipelineState.PERSISTED, manual=True)
        return await self._dispatch(
            result, prop.channel_address, conversation.guest_address, content, event_id
        )

    # =========================================================================
    # Steps
    # =========================================================================

    async def _load_history(self, conversation_id: UUID, exclude: UUID) -> list[Message]:
        """Recent messages oldest to newest, without the message being answered."""
        newest_first = await asyncio.to_thread(
            self.conversations.recent_messages, conversation_id, self.history_turns + 1
        )
        chronological = [m for m in reversed(newest_first) if m.id != exclude]
        return chronological[-self.history_turns:] if self.history_turns > 0 else []

    async def _generate(
        self,
        prop: Property,
        context: str,
        history: list[Message],
        latest_message: str,
        event_id: str,
    ) -> tuple[str, bool]:
        """Return (reply text, used_fallback)."""
        system_prompt = build_system_prompt(prop, context)
        user_turn = build_user_turn(history, latest_message, self.history_turns)
        try:
            reply = await asyncio.to_thread(self.completion.complete, system_prompt, user_turn)
            return reply, False
        except Exception as e:
            log_with_context(
                logger,
                logging.ERROR,
                f"Reply generation failed, sending fallback: {e}",
                event_id=event_id,
                property_id=str(prop.id),
            )
            return FALLBACK_REPLY, True

    async def _dispatch(
        self,
        result: PipelineResult,
        from_address: str,
        to_address: str,
        body: str,
        event_id: str,
    ) -> PipelineResult:
        try:
            result.receipt = await self.dispatcher.send(from_address, to_address, body)
        except TransportError as e:
            log_with_context(
                logger,
                logging.ERROR,
                f"Reply stored but not delivered: {e}",
                event_id=event_id,
                conversation_id=str(result.conversation_id),
            )
            result.state = PipelineState.DISPATCH_FAILED
            result.error = str(e)
            return result

        self._trace(event_id, PipelineState.DISPATCHED, sid=result.receipt.sid)
        result.state = PipelineState.DONE
        self._trace(event_id, PipelineState.DONE)
        return result

    @staticmethod
    def _trace(event_id: str, state: PipelineState, **fields: Any) -> None:
        log_with_context(logger, logging.DEBUG, f"pipeline {state.value}", event_id=event_id, **fields)
