"""Property document persistence."""

from typing import Any
from uuid import UUID

from supabase import Client

from hostenly.core.errors import PersistenceError
from hostenly.core.logging import get_logger

logger = get_logger(__name__)

TABLE = "property_documents"


class DocumentStore:
    """Access to host-uploaded documents attached to a property."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_documents(self, property_id: UUID) -> list[dict[str, Any]]:
        try:
            response = (
                self.supabase.table(TABLE)
                .select("*")
                .eq("property_id", str(property_id))
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list documents for property {property_id}: {e}")
            raise PersistenceError(f"Document list failed: {e}") from e

        return response.data or []

    def get_document(self, property_id: UUID, document_id: UUID) -> dict[str, Any] | None:
        try:
            response = (
                self.supabase.table(TABLE)
                .select("*")
                .eq("property_id", str(property_id))
                .eq("id", str(document_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch document {document_id}: {e}")
            raise PersistenceError(f"Document fetch failed: {e}") from e

        return response.data[0] if response.data else None

    def create_document(self, property_id: UUID, title: str, content: str) -> dict[str, Any]:
        try:
            response = (
                self.supabase.table(TABLE)
                .insert({"property_id": str(property_id), "title": title, "content": content})
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to create document for property {property_id}: {e}")
            raise PersistenceError(f"Document insert failed: {e}") from e

        if not response.data:
            raise PersistenceError("No data returned from create_document")

        document = response.data[0]
        logger.info(f"Created document {document['id']} for property {property_id}")
        return document

    def update_document(
        self,
        property_id: UUID,
        document_id: UUID,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply a partial update; returns None if the document does not exist."""
        try:
            response = (
                self.supabase.table(TABLE)
                .update(updates)
                .eq("property_id", str(property_id))
                .eq("id", str(document_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update document {document_id}: {e}")
            raise PersistenceError(f"Document update failed: {e}") from e

        return response.data[0] if response.data else None

    def delete_document(self, property_id: UUID, document_id: UUID) -> None:
        try:
            (
                self.supabase.table(TABLE)
                .delete()
                .eq("property_id", str(property_id))
                .eq("id", str(document_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to delete document {document_id}: {e}")
            raise PersistenceError(f"Document delete failed: {e}") from e

        logger.info(f"Deleted document {document_id}")
