"""Knowledge chunk storage and vector search (pgvector via Supabase)."""

from typing import Any
from uuid import UUID

from supabase import Client

from hostenly.core.errors import PersistenceError
from hostenly.core.logging import get_logger

logger = get_logger(__name__)

TABLE = "knowledge_chunks"


class KnowledgeStore:
    """Per-property partition of embedded content chunks."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def insert_chunks(
        self,
        property_id: UUID,
        chunks: list[str],
        embeddings: list[list[float]],
        metadata: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """
        Insert content chunks with their embeddings.

        Args:
            property_id: Owning property
            chunks: Chunk texts
            embeddings: One vector per chunk
            metadata: Provenance tags stored on every chunk (source, document_id)

        Raises:
            ValueError: If chunks and embeddings length mismatch
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Chunks count ({len(chunks)}) must match embeddings count ({len(embeddings)})"
            )
        if not chunks:
            return []

        records = [
            {
                "property_id": str(property_id),
                "content": content,
                "embedding": embedding,
                "metadata": metadata,
                "source": metadata.get("source"),
                "document_id": metadata.get("document_id"),
            }
            for content, embedding in zip(chunks, embeddings, strict=True)
        ]

        try:
            response = self.supabase.table(TABLE).insert(records).execute()
        except Exception as e:
            logger.error(f"Failed to insert knowledge chunks for property {property_id}: {e}")
            raise PersistenceError(f"Knowledge chunk insert failed: {e}") from e

        inserted = response.data or []
        logger.info(
            f"Inserted {len(inserted)} knowledge chunks for property {property_id}",
            extra={"extra_data": {"property_id": str(property_id), "source": metadata.get("source")}},
        )
        return inserted

    def delete_property_chunks(self, property_id: UUID, source: str | None = None) -> None:
        """Delete all chunks of a property, optionally only those of one source."""
        try:
            query = self.supabase.table(TABLE).delete().eq("property_id", str(property_id))
            if source:
                query = query.eq("source", source)
            query.execute()
        except Exception as e:
            logger.error(f"Failed to delete knowledge chunks for property {property_id}: {e}")
            raise PersistenceError(f"Knowledge chunk delete failed: {e}") from e

        logger.info(f"Deleted knowledge chunks for property {property_id} (source={source or 'all'})")

    def delete_document_chunks(self, property_id: UUID, document_id: UUID) -> None:
        """Delete the chunks cut from one document."""
        try:
            (
                self.supabase.table(TABLE)
                .delete()
                .eq("property_id", str(property_id))
                .eq("document_id", str(document_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to delete chunks of document {document_id}: {e}")
            raise PersistenceError(f"Document chunk delete failed: {e}") from e

        logger.info(f"Deleted knowledge chunks for document {document_id}")

    def replace_property_chunks(
        self,
        property_id: UUID,
        chunks: list[str],
        embeddings: list[list[float]],
        metadata: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Delete the property's chunks for `metadata['source']`, then insert the new set."""
        self.delete_property_chunks(property_id, source=metadata.get("source"))
        return self.insert_chunks(property_id, chunks, embeddings, metadata)

    def search(
        self,
        property_id: UUID,
        query_embedding: list[float],
        match_count: int,
        match_threshold: float,
    ) -> list[dict[str, Any]]:
        """
        Similarity search within one property's chunks.

        Returns:
            Rows with id, property_id, content, metadata, similarity; best first
        """
        try:
            response = self.supabase.rpc(
                "match_knowledge_chunks",
                {
                    "query_embedding": query_embedding,
                    "match_threshold": match_threshold,
                    "match_count": match_count,
                    "p_property_id": str(property_id),
                },
            ).execute()
        except Exception as e:
            logger.error(f"Failed to search knowledge chunks for property {property_id}: {e}")
            raise

        return response.data or []
