"""API endpoints for property management.

Routes are sync handlers; FastAPI runs them in its worker thread pool so the
blocking Supabase and OpenAI clients never hold the event loop.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response

from hostenly.api.dependencies import (
    AuthContext,
    get_knowledge_indexer,
    get_knowledge_store,
    get_property_store,
    load_owned_property,
    require_account,
)
from hostenly.core.config import get_settings
from hostenly.core.knowledge import KnowledgeIndexer
from hostenly.core.logging import get_logger
from hostenly.core.qr_codes import build_qr_code_url, build_whatsapp_link
from hostenly.core.schemas_admin import CreatePropertyRequest, QRCodeResponse
from hostenly.core.schemas_messaging import Property, PropertyDetails
from hostenly.db.knowledge_chunks import KnowledgeStore
from hostenly.db.properties import PropertyStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=list[Property])
def list_properties(
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
) -> list[Property]:
    """List the caller's properties with their details."""
    try:
        return properties.list_properties(auth.account_id)
    except Exception as e:
        logger.exception("Failed to list properties")
        raise HTTPException(status_code=500, detail="Server error while fetching properties") from e


@router.post("/", response_model=Property, status_code=201)
def create_property(
    request: CreatePropertyRequest,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
) -> Property:
    """Register a property on a WhatsApp number."""
    try:
        return properties.create_property(auth.account_id, request.name, request.channel_address)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except Exception as e:
        logger.exception("Failed to create property")
        raise HTTPException(status_code=500, detail="Server error during property creation") from e


@router.get("/{property_id}", response_model=Property)
def get_property(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
) -> Property:
    return load_owned_property(property_id, auth, properties)


@router.put("/{property_id}/details", response_model=PropertyDetails)
def update_property_details(
    property_id: UUID,
    details: PropertyDetails,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    indexer: KnowledgeIndexer = Depends(get_knowledge_indexer),
) -> PropertyDetails:
    """
    Save property details and rebuild their knowledge chunks.

    The details are stored first; if re-indexing fails the caller gets a 502
    and can retry, the stored details are kept.
    """
    load_owned_property(property_id, auth, properties)

    try:
        saved = properties.upsert_details(property_id, details)
    except Exception as e:
        logger.exception(f"Failed to save details for property {property_id}")
        raise HTTPException(
            status_code=500, detail="Server error during property details update"
        ) from e

    try:
        indexer.reindex_property_details(property_id, saved)
    except Exception as e:
        logger.exception(f"Failed to re-index details for property {property_id}")
        raise HTTPException(
            status_code=502, detail=f"Details saved but knowledge indexing failed: {e}"
        ) from e

    return saved


@router.patch("/{property_id}/toggle-status", response_model=Property)
def toggle_property_status(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
) -> Property:
    """Flip whether the assistant answers guests for this property."""
    prop = load_owned_property(property_id, auth, properties)
    try:
        return properties.set_active(property_id, not prop.is_active)
    except Exception as e:
        logger.exception(f"Failed to toggle property {property_id}")
        raise HTTPException(
            status_code=500, detail="Server error during property status update"
        ) from e


@router.delete("/{property_id}", status_code=204)
def delete_property(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
    knowledge_store: KnowledgeStore = Depends(get_knowledge_store),
) -> Response:
    load_owned_property(property_id, auth, properties)
    try:
        knowledge_store.delete_property_chunks(property_id)
        properties.delete_property(property_id)
    except Exception as e:
        logger.exception(f"Failed to delete property {property_id}")
        raise HTTPException(status_code=500, detail="Server error during property deletion") from e
    return Response(status_code=204)


@router.get("/{property_id}/qr-code", response_model=QRCodeResponse)
def get_property_qr_code(
    property_id: UUID,
    auth: AuthContext = Depends(require_account),
    properties: PropertyStore = Depends(get_property_store),
) -> QRCodeResponse:
    """QR code guests scan to open a WhatsApp chat with the property."""
    prop = load_owned_property(property_id, auth, properties)
    try:
        link = build_whatsapp_link(prop.channel_address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return QRCodeResponse(
        property_id=prop.id,
        whatsapp_link=link,
        qr_code_url=build_qr_code_url(prop.channel_address, get_settings().QR_CODE_SIZE),
    )
