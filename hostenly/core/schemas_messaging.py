"""Pydantic schemas for accounts, properties, conversations and guest messages."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Host account with its message quota."""

    id: UUID = Field(..., description="Account UUID (Supabase auth user id)")
    email: str | None = Field(None, description="Account email")
    message_count: int = Field(0, ge=0, description="Messages counted in the current period")
    message_limit: int = Field(0, ge=0, description="Messages allowed in the current period")


class PropertyDetails(BaseModel):
    """Free-text facts a host records about a property."""

    check_in_time: str | None = None
    check_out_time: str | None = None
    wifi_password: str | None = None
    access_code: str | None = None
    house_rules: str | None = None
    location: str | None = None
    nearby_attractions: str | None = None
    emergency_contacts: str | None = None
    custom_notes: str | None = None
    faqs: dict[str, str] = Field(default_factory=dict, description="Question -> answer")


class Property(BaseModel):
    """A monitored listing reachable on one channel address."""

    id: UUID
    account_id: UUID
    name: str
    channel_address: str = Field(..., description="Number or handle guests message")
    is_active: bool = True
    details: PropertyDetails = Field(default_factory=PropertyDetails)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Conversation(BaseModel):
    """Thread between one property and one guest address."""

    id: UUID
    property_id: UUID
    guest_address: str
    guest_name: str = "Guest"
    last_message_at: datetime | None = None
    created_at: datetime | None = None


class Message(BaseModel):
    """One immutable turn in a conversation."""

    id: UUID
    conversation_id: UUID
    content: str
    is_from_guest: bool
    created_at: datetime


class InboundMessageEvent(BaseModel):
    """Normalized inbound channel event."""

    sender_address: str = Field(..., description="Guest address the message came from")
    recipient_address: str = Field(..., description="Property channel address it was sent to")
    body: str = Field("", description="Message text")
    display_name: str | None = Field(None, description="Guest profile name, if provided")


class DeliveryReceipt(BaseModel):
    """Transport acknowledgement for an outbound message."""

    sid: str
    status: str
    to_address: str
    from_address: str


class PipelineState(str, Enum):
    """States an inbound event moves through."""

    RECEIVED = "received"
    RESOLVED = "resolved"
    ADMITTED = "admitted"
    CONTEXT_LOADED = "context_loaded"
    GROUNDED = "grounded"
    GENERATED = "generated"
    PERSISTED = "persisted"
    DISPATCHED = "dispatched"
    DONE = "done"
    PROPERTY_NOT_FOUND = "property_not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    DISPATCH_FAILED = "dispatch_failed"


class PipelineResult(BaseModel):
    """Outcome of processing one inbound event or manual send."""

    state: PipelineState
    property_id: UUID | None = None
    conversation_id: UUID | None = None
    inbound_message_id: UUID | None = None
    reply_message_id: UUID | None = None
    reply_text: str | None = None
    grounded: bool = False
    used_fallback: bool = False
    receipt: DeliveryReceipt | None = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.receipt is not None
