"""Conversation-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kraken_chat.core.identity import normalize_address


class ConversationCreate(BaseModel):
    """Schema for explicitly opening a conversation."""

    participants: list[str] = Field(..., min_length=2, description="Participant identities")
    is_group: bool = False
    group_name: str = ""
    group_avatar: str = ""

    @field_validator("participants")
    @classmethod
    def normalize_participants(cls, value: list[str]) -> list[str]:
        """Normalize identities and drop repeats while keeping their order."""
        seen: list[str] = []
        for participant in value:
            normalized = normalize_address(participant)
            if normalized and normalized not in seen:
                seen.append(normalized)
        if len(seen) < 2:
            raise ValueError("A conversation needs at least two distinct participants")
        return seen


class ConversationUpdate(BaseModel):
    """Group presentation fields that members may edit."""

    group_name: str | None = None
    group_avatar: str | None = None


class ConversationResponse(BaseModel):
    """Conversation summary returned by the API."""

    id: str
    participants: list[str]
    last_message: str
    last_message_time: datetime | None
    is_group: bool
    group_name: str
    group_avatar: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
