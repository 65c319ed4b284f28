"""FastAPI dependency providers.

Stores are built per request around the shared Supabase client; provider
clients (OpenAI, Twilio) are process-wide and cached.
"""

from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException
from supabase import Client

from hostenly.core.auth import AuthContext, get_supabase_client, require_account
from hostenly.core.completion import CompletionProvider
from hostenly.core.config import get_settings
from hostenly.core.embeddings import EmbeddingProvider
from hostenly.core.errors import PersistenceError, PropertyNotFoundError
from hostenly.core.knowledge import KnowledgeIndexer
from hostenly.core.logging import get_logger
from hostenly.core.pipeline import MessagePipeline
from hostenly.core.quota import QuotaGate
from hostenly.core.retrieval import RetrievalAssembler
from hostenly.core.schemas_messaging import Property
from hostenly.db.accounts import AccountStore
from hostenly.db.conversations import ConversationStore
from hostenly.db.documents import DocumentStore
from hostenly.db.knowledge_chunks import KnowledgeStore
from hostenly.db.properties import PropertyStore
from hostenly.services.twilio_service import TwilioService

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_embedding_provider() -> EmbeddingProvider:
    return EmbeddingProvider.from_settings()


@lru_cache(maxsize=1)
def get_completion_provider() -> CompletionProvider:
    return CompletionProvider.from_settings()


@lru_cache(maxsize=1)
def get_twilio_service() -> TwilioService:
    return TwilioService.from_settings()


def get_property_store(supabase: Client = Depends(get_supabase_client)) -> PropertyStore:
    return PropertyStore(supabase)


def get_conversation_store(supabase: Client = Depends(get_supabase_client)) -> ConversationStore:
    return ConversationStore(supabase)


def get_document_store(supabase: Client = Depends(get_supabase_client)) -> DocumentStore:
    return DocumentStore(supabase)


def get_knowledge_store(supabase: Client = Depends(get_supabase_client)) -> KnowledgeStore:
    return KnowledgeStore(supabase)


def get_account_store(supabase: Client = Depends(get_supabase_client)) -> AccountStore:
    return AccountStore(supabase)


def get_knowledge_indexer(
    knowledge_store: KnowledgeStore = Depends(get_knowledge_store),
) -> KnowledgeIndexer:
    return KnowledgeIndexer(
        embedder=get_embedding_provider(),
        knowledge_store=knowledge_store,
        document_chunk_chars=get_settings().DOCUMENT_CHUNK_CHARS,
    )


def build_message_pipeline(supabase: Client) -> MessagePipeline:
    return MessagePipeline.with_settings(
        properties=PropertyStore(supabase),
        conversations=ConversationStore(supabase),
        quota=QuotaGate(AccountStore(supabase)),
        retriever=RetrievalAssembler(get_embedding_provider(), KnowledgeStore(supabase)),
        completion=get_completion_provider(),
        dispatcher=get_twilio_service(),
    )


def get_message_pipeline(supabase: Client = Depends(get_supabase_client)) -> MessagePipeline:
    return build_message_pipeline(supabase)


def get_inbound_pipeline() -> MessagePipeline | None:
    """
    Pipeline for the channel webhook, or None when it cannot be built.

    Client construction failures are logged here; the webhook still
    acknowledges the delivery.
    """
    try:
        return build_message_pipeline(get_supabase_client())
    except Exception:
        logger.exception("Failed to build message pipeline for inbound webhook")
        return None


def load_owned_property(
    property_id: UUID,
    auth: AuthContext,
    properties: PropertyStore,
) -> Property:
    """
    Fetch a property and check the caller owns it.

    Raises:
        HTTPException: 404 if missing, 403 if owned by another account
    """
    try:
        prop = properties.get_property(property_id)
    except PropertyNotFoundError as e:
        raise HTTPException(status_code=404, detail="Property not found") from e
    except PersistenceError as e:
        logger.exception(f"Failed to fetch property {property_id}")
        raise HTTPException(status_code=500, detail="Server error while fetching property") from e

    if not auth.owns(prop.account_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return prop


__all__ = [
    "AuthContext",
    "require_account",
    "get_supabase_client",
    "get_property_store",
    "get_conversation_store",
    "get_document_store",
    "get_knowledge_store",
    "get_account_store",
    "get_knowledge_indexer",
    "get_message_pipeline",
    "get_inbound_pipeline",
    "get_twilio_service",
    "load_owned_property",
]
