"""Indexing of property details and documents into the knowledge store.

Ingestion is synchronous for the authoring caller: embedding or store failures
propagate so the host sees that the knowledge base was not updated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from hostenly.core.chunking import chunk_text
from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import PropertyDetails

if TYPE_CHECKING:
    from hostenly.core.embeddings import EmbeddingProvider
    from hostenly.db.knowledge_chunks import KnowledgeStore

logger = get_logger(__name__)

SOURCE_PROPERTY_DETAILS = "property_details"
SOURCE_DOCUMENT = "document"

# (field, chunk prefix)
DETAIL_CHUNK_PREFIXES: tuple[tuple[str, str], ...] = (
    ("check_in_time", "Check-in time"),
    ("check_out_time", "Check-out time"),
    ("wifi_password", "WiFi password"),
    ("access_code", "Access code"),
    ("house_rules", "House rules"),
    ("location", "Location information"),
    ("nearby_attractions", "Nearby attractions"),
    ("emergency_contacts", "Emergency contacts"),
    ("custom_notes", "Additional information"),
)


def build_detail_chunks(details: PropertyDetails) -> list[str]:
    """One chunk per present detail field, then one per FAQ entry."""
    chunks = []
    for field_name, prefix in DETAIL_CHUNK_PREFIXES:
        value = getattr(details, field_name, None)
        if value and str(value).strip():
            chunks.append(f"{prefix}: {str(value).strip()}")

    for question, answer in (details.faqs or {}).items():
        if question.strip() and answer.strip():
            chunks.append(f"FAQ - {question.strip()}: {answer.strip()}")

    return chunks


class KnowledgeIndexer:
    """Keeps a property's knowledge partition in sync with its details and documents."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        knowledge_store: KnowledgeStore,
        document_chunk_chars: int = 1000,
    ):
        self.embedder = embedder
        self.knowledge_store = knowledge_store
        self.document_chunk_chars = document_chunk_chars

    def reindex_property_details(self, property_id: UUID, details: PropertyDetails) -> int:
        """Replace the property's detail chunks; returns the number indexed."""
        chunks = build_detail_chunks(details)
        # Embed before deleting so a provider failure leaves the old chunks in place
        embeddings = self.embedder.embed_texts(chunks)
        self.knowledge_store.replace_property_chunks(
            property_id, chunks, embeddings, {"source": SOURCE_PROPERTY_DETAILS}
        )
        logger.info(f"Generated {len(chunks)} detail embeddings for property {property_id}")
        return len(chunks)

    def _document_chunks(self, document: dict[str, Any]) -> list[str]:
        pieces = chunk_text(
            document.get("content") or "",
            max_chars=self.document_chunk_chars,
            overlap=self.document_chunk_chars // 10,
        )
        return [piece["content"] for piece in pieces]

    @staticmethod
    def _document_metadata(document: dict[str, Any]) -> dict[str, Any]:
        return {
            "source": SOURCE_DOCUMENT,
            "document_id": str(document["id"]),
            "title": document.get("title"),
        }

    def index_document(self, property_id: UUID, document: dict[str, Any]) -> int:
        """Replace the chunks of one document; returns the number indexed."""
        document_id = document["id"]
        chunks = self._document_chunks(document)
        embeddings = self.embedder.embed_texts(chunks)

        self.knowledge_store.delete_document_chunks(property_id, UUID(str(document_id)))
        self.knowledge_store.insert_chunks(
            property_id, chunks, embeddings, self._document_metadata(document)
        )
        logger.info(f"Indexed {len(chunks)} chunks for document {document_id}")
        return len(chunks)

    def regenerate_property(
        self,
        property_id: UUID,
        details: PropertyDetails,
        documents: list[dict[str, Any]],
    ) -> int:
        """
        Rebuild the whole partition from details and documents.

        Every embedding is computed before anything is deleted, so a provider
        failure leaves the existing partition untouched.
        """
        batches: list[tuple[list[str], list[list[float]], dict[str, Any]]] = []

        detail_chunks = build_detail_chunks(details)
        batches.append(
            (
                detail_chunks,
                self.embedder.embed_texts(detail_chunks),
                {"source": SOURCE_PROPERTY_DETAILS},
            )
        )
        for document in documents:
            chunks = self._document_chunks(document)
            batches.append(
                (chunks, self.embedder.embed_texts(chunks), self._document_metadata(document))
            )

        self.knowledge_store.delete_property_chunks(property_id)
        total = 0
        for chunks, embeddings, metadata in batches:
            if chunks:
                self.knowledge_store.insert_chunks(property_id, chunks, embeddings, metadata)
                total += len(chunks)

        logger.info(f"Regenerated {total} knowledge chunks for property {property_id}")
        return total
