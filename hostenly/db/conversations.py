"""Conversation and message persistence.

The `conversations` table carries a unique index on (property_id, guest_address);
lookup-or-create relies on it instead of a check-then-insert in Python.
Messages are ordered by (created_at, seq) where `seq` is a bigserial.
"""

from typing import Any
from uuid import UUID

from supabase import Client

from hostenly.core.errors import (
    ConversationConflictError,
    ConversationNotFoundError,
    PersistenceError,
)
from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import Conversation, Message
from hostenly.db.supabase_client import is_unique_violation

logger = get_logger(__name__)

CONVERSATIONS = "conversations"
MESSAGES = "messages"


class ConversationStore:
    """Durable record of guest conversations and their ordered messages."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_open_conversation(self, property_id: UUID, guest_address: str) -> Conversation | None:
        """Return the conversation for (property, guest address), if any."""
        try:
            response = (
                self.supabase.table(CONVERSATIONS)
                .select("*")
                .eq("property_id", str(property_id))
                .eq("guest_address", guest_address)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to look up conversation for property {property_id}: {e}")
            raise PersistenceError(f"Conversation lookup failed: {e}") from e

        if not response.data:
            return None
        return Conversation.model_validate(response.data[0])

    def create_conversation(
        self,
        property_id: UUID,
        guest_address: str,
        display_name: str | None = None,
    ) -> Conversation:
        """
        Insert a new conversation.

        Raises:
            ConversationConflictError: If one already exists for the pair
            PersistenceError: On any other store failure
        """
        row = {
            "property_id": str(property_id),
            "guest_address": guest_address,
            "guest_name": display_name or "Guest",
        }
        try:
            response = self.supabase.table(CONVERSATIONS).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConversationConflictError(
                    f"Conversation already exists for {property_id}/{guest_address}"
                ) from e
            logger.error(f"Failed to create conversation for property {property_id}: {e}")
            raise PersistenceError(f"Conversation insert failed: {e}") from e

        if not response.data:
            raise PersistenceError("No data returned from create_conversation")

        conversation = Conversation.model_validate(response.data[0])
        logger.info(
            f"Created conversation {conversation.id} for property {property_id}",
            extra={"extra_data": {"conversation_id": str(conversation.id)}},
        )
        return conversation

    def get_or_create_conversation(
        self,
        property_id: UUID,
        guest_address: str,
        display_name: str | None = None,
    ) -> Conversation:
        """
        Atomic lookup-or-create keyed on (property_id, guest_address).

        A concurrent creator that loses the unique-index race re-reads the
        winner's row.
        """
        existing = self.find_open_conversation(property_id, guest_address)
        if existing:
            return existing

        try:
            return self.create_conversation(property_id, guest_address, display_name)
        except ConversationConflictError:
            logger.info(f"Lost conversation create race for property {property_id}, re-reading")
            winner = self.find_open_conversation(property_id, guest_address)
            if winner is None:
                raise PersistenceError(
                    f"Conversation for {property_id}/{guest_address} conflicted but is missing"
                ) from None
            return winner

    def get_conversation(self, conversation_id: UUID) -> Conversation:
        """Fetch a conversation by id."""
        try:
            response = (
                self.supabase.table(CONVERSATIONS)
                .select("*")
                .eq("id", str(conversation_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch conversation {conversation_id}: {e}")
            raise PersistenceError(f"Conversation fetch failed: {e}") from e

        if not response.data:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return Conversation.model_validate(response.data[0])

    def list_conversations(self, property_id: UUID) -> list[dict[str, Any]]:
        """
        List conversations for a property, most recent activity first.

        Each row carries its newest message under `last_message` (or None).
        """
        try:
            response = (
                self.supabase.table(CONVERSATIONS)
                .select("*")
                .eq("property_id", str(property_id))
                .order("last_message_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list conversations for property {property_id}: {e}")
            raise PersistenceError(f"Conversation list failed: {e}") from e

        conversations = response.data or []
        for conversation in conversations:
            latest = self.recent_messages(UUID(conversation["id"]), limit=1)
            conversation["last_message"] = latest[0].model_dump(mode="json") if latest else None

        logger.info(f"Listed {len(conversations)} conversations for property {property_id}")
        return conversations

    def delete_conversation(self, conversation_id: UUID) -> None:
        """Delete a conversation; messages cascade."""
        try:
            self.supabase.table(CONVERSATIONS).delete().eq("id", str(conversation_id)).execute()
        except Exception as e:
            logger.error(f"Failed to delete conversation {conversation_id}: {e}")
            raise PersistenceError(f"Conversation delete failed: {e}") from e

        logger.info(f"Deleted conversation {conversation_id}")

    def append_message(self, conversation_id: UUID, content: str, from_guest: bool) -> Message:
        """Persist one message and bump the conversation's activity timestamp."""
        try:
            response = (
                self.supabase.table(MESSAGES)
                .insert(
                    {
                        "conversation_id": str(conversation_id),
                        "content": content,
                        "is_from_guest": from_guest,
                    }
                )
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to append message to conversation {conversation_id}: {e}")
            raise PersistenceError(f"Message insert failed: {e}") from e

        if not response.data:
            raise PersistenceError("No data returned from append_message")

        message = Message.model_validate(response.data[0])

        try:
            (
                self.supabase.table(CONVERSATIONS)
                .update({"last_message_at": message.created_at.isoformat()})
                .eq("id", str(conversation_id))
                .execute()
            )
        except Exception as e:
            # Message is stored; a stale activity timestamp only affects listing order
            logger.warning(f"Failed to touch conversation {conversation_id}: {e}")

        return message

    def recent_messages(self, conversation_id: UUID, limit: int = 10) -> list[Message]:
        """Return up to `limit` messages, newest first."""
        try:
            response = (
                self.supabase.table(MESSAGES)
                .select("*")
                .eq("conversation_id", str(conversation_id))
                .order("created_at", desc=True)
                .order("seq", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to load messages for conversation {conversation_id}: {e}")
            raise PersistenceError(f"Message history fetch failed: {e}") from e

        return [Message.model_validate(row) for row in response.data or []]

    def list_messages(self, conversation_id: UUID) -> list[Message]:
        """Return every message of a conversation in chronological order."""
        try:
            response = (
                self.supabase.table(MESSAGES)
                .select("*")
                .eq("conversation_id", str(conversation_id))
                .order("created_at", desc=False)
                .order("seq", desc=False)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list messages for conversation {conversation_id}: {e}")
            raise PersistenceError(f"Message list failed: {e}") from e

        return [Message.model_validate(row) for row in response.data or []]
