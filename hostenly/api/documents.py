"""API endpoints for property documents and knowledge regeneration."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response

from hostenly.api.dependencies import (
    AuthContext,
    get_document_store,
    get_knowledge_indexer,
    get_knowledge_store,
    get_property_store,
    load_owned_property,
    require_account,
)
from hostenly.core.knowledge import KnowledgeIndexer
from hostenly.core.logging import get_logger
from hostenly.core.schemas_admin import (
    CreateDocumentRequest,
    ReindexResponse,
    UpdateDocumentRequest,
)
from hostenly.db.documents import DocumentStore
from hostenly.db.knowledge_chunks import KnowledgeStore
from hostenly.db.properties import PropertyStore

logger = get_logger(__name__)

router = APIRouter(prefix="/properties/{property_id}")


def _require_document(documents: DocumentStore, property_id: UUID, document_id: UUID) -> dict:
    try:
        document = documents.get_document(property_id, document_id)
    except Exception as e:
        logger.exception(f"Failed to fetch document {document_id}")
        raise HTTPException(status_code=500, detail="Server error while fetching document") from e
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("/documents")
def list_documents(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
) -> list[dict]:
    load_owned_property(property_id, auth, properties)
    try:
        return documents.list_documents(property_id)
    except Exception as e:
        logger.exception(f"Failed to list documents for property {property_id}")
        raise HTTPException(status_code=500, detail="Server error while fetching documents") from e


@router.post("/documents", status_code=201)
def create_document(
    property_id: UUID,
    request: CreateDocumentRequest,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
    indexer: KnowledgeIndexer = Depends(get_knowledge_indexer),
) -> dict:
    """Store a document and index its text into the property's knowledge base."""
    load_owned_property(property_id, auth, properties)
    try:
        document = documents.create_document(property_id, request.title, request.content)
    except Exception as e:
        logger.exception(f"Failed to create document for property {property_id}")
        raise HTTPException(status_code=500, detail="Server error during document creation") from e

    try:
        indexer.index_document(property_id, document)
    except Exception as e:
        logger.exception(f"Failed to index document {document['id']}")
        raise HTTPException(
            status_code=502, detail=f"Document saved but knowledge indexing failed: {e}"
        ) from e

    return document


@router.get("/documents/{document_id}")
def get_document(
    property_id: UUID,
    document_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
) -> dict:
    load_owned_property(property_id, auth, properties)
    return _require_document(documents, property_id, document_id)


@router.put("/documents/{document_id}")
def update_document(
    property_id: UUID,
    document_id: UUID,
    request: UpdateDocumentRequest,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
    indexer: KnowledgeIndexer = Depends(get_knowledge_indexer),
) -> dict:
    """Update a document; a content change re-indexes it."""
    load_owned_property(property_id, auth, properties)
    updates = request.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="Nothing to update")

    try:
        document = documents.update_document(property_id, document_id, updates)
    except Exception as e:
        logger.exception(f"Failed to update document {document_id}")
        raise HTTPException(status_code=500, detail="Server error during document update") from e
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    if "content" in updates:
        try:
            indexer.index_document(property_id, document)
        except Exception as e:
            logger.exception(f"Failed to re-index document {document_id}")
            raise HTTPException(
                status_code=502, detail=f"Document saved but knowledge indexing failed: {e}"
            ) from e

    return document


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(
    property_id: UUID,
    document_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
    knowledge_store: KnowledgeStore = Depends(get_knowledge_store),
) -> Response:
    load_owned_property(property_id, auth, properties)
    _require_document(documents, property_id, document_id)

    try:
        knowledge_store.delete_document_chunks(property_id, document_id)
        documents.delete_document(property_id, document_id)
    except Exception as e:
        logger.exception(f"Failed to delete document {document_id}")
        raise HTTPException(status_code=500, detail="Server error during document deletion") from e
    return Response(status_code=204)


@router.post("/regenerate-embeddings", response_model=ReindexResponse)
def regenerate_embeddings(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    documents: DocumentStore = Depends(get_document_store),
    indexer: KnowledgeIndexer = Depends(get_knowledge_indexer),
) -> ReindexResponse:
    """Rebuild the property's knowledge base from its details and every document."""
    prop = load_owned_property(property_id, auth, properties)

    try:
        total = indexer.regenerate_property(
            property_id, prop.details, documents.list_documents(property_id)
        )
    except Exception as e:
        logger.exception(f"Failed to regenerate knowledge for property {property_id}")
        raise HTTPException(status_code=502, detail=f"Knowledge regeneration failed: {e}") from e

    return ReindexResponse(property_id=property_id, chunks_indexed=total)
