"""Pydantic schemas for host-facing administration endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from hostenly.core.schemas_messaging import Conversation, Message


class CreatePropertyRequest(BaseModel):
    """Request body for registering a property."""

    name: str = Field(..., min_length=2, max_length=200, description="Property display name")
    channel_address: str = Field(
        ..., min_length=10, max_length=40, description="WhatsApp number guests message"
    )

    @field_validator("channel_address")
    @classmethod
    def strip_prefix(cls, value: str) -> str:
        value = value.strip()
        return value[len("whatsapp:"):] if value.startswith("whatsapp:") else value


class ReindexResponse(BaseModel):
    """Result of rebuilding knowledge chunks."""

    property_id: UUID
    chunks_indexed: int


class CreateDocumentRequest(BaseModel):
    """Request body for attaching a document to a property."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, description="Plain text document body")


class UpdateDocumentRequest(BaseModel):
    """Partial document update; at least one field must be set."""

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)


class ConversationDetailResponse(BaseModel):
    """A conversation with all of its messages, oldest first."""

    conversation: Conversation
    messages: list[Message]


class ManualMessageRequest(BaseModel):
    """Host-authored message to a guest."""

    content: str = Field(..., min_length=1, max_length=1600)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message content is required")
        return value


class ManualMessageResponse(BaseModel):
    """Outcome of a manual send: always stored, delivered unless the transport failed."""

    conversation_id: UUID
    message_id: UUID
    delivered: bool
    message_sid: str | None = None
    error: str | None = None


class QRCodeResponse(BaseModel):
    """Click-to-chat link and QR image URL for a property."""

    property_id: UUID
    whatsapp_link: str
    qr_code_url: str
