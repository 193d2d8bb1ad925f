"""Message-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kraken_chat.core.identity import normalize_address

MessageStatus = Literal["sending", "sent", "delivered", "pending_decryption", "failed"]


class MessageCreate(BaseModel):
    """Schema for storing a new direct message."""

    id: str | None = Field(
        None,
        max_length=36,
        description="Client-generated id; reuse the peer-channel id for the same message",
    )
    conversation_id: str | None = Field(
        None,
        description="Existing conversation; resolved from sender/receiver when omitted",
    )
    sender: str | None = Field(None, description="Declared sender; defaults to the caller")
    receiver: str = Field(..., min_length=1, description="Recipient identity")
    content: str = Field(..., min_length=1, description="Message body")
    created_at: datetime | None = Field(None, description="Client timestamp; defaults to now")
    status: MessageStatus = "sent"
    encrypted: bool = False

    @field_validator("receiver", "sender")
    @classmethod
    def normalize_identity(cls, value: str | None) -> str | None:
        """Store identities in canonical form."""
        if value is None:
            return None
        normalized = normalize_address(value)
        if not normalized:
            raise ValueError("Identity must not be blank")
        return normalized


class MessageUpdate(BaseModel):
    """Delivery bookkeeping a sender may change after the fact."""

    status: MessageStatus | None = None
    error: str | None = None
    retries: int | None = Field(None, ge=0)


class MessageResponse(BaseModel):
    """Schema for message information returned by the API."""

    id: str
    conversation_id: str | None
    sender: str
    receiver: str
    content: str
    created_at: datetime
    status: MessageStatus
    error: str
    retries: int
    encrypted: bool

    model_config = ConfigDict(from_attributes=True)
