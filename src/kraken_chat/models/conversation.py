# src/kraken_chat/models/conversation.py
"""Models describing conversations and their ordered participant lists."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kraken_chat.db.session import Base
from kraken_chat.db.time import utcnow

if TYPE_CHECKING:
    from .message import Message


def new_conversation_id() -> str:
    """Return a fresh conversation identifier."""
    return str(uuid.uuid4())


def pair_key_for(a: str, b: str) -> str:
    """Return the order-independent key of a two-party conversation."""
    low, high = sorted((a, b))
    return f"{low}:{high}"


class Conversation(Base):
    """Two-party or group messaging thread with a rolled-up summary."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_conversation_id)

    # Normalized sender/receiver pair; NULL for groups. Unique so a pair maps to one row.
    pair_key: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)

    last_message: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    last_message_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_group: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    group_name: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    group_avatar: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    members: Mapped[list[ConversationMember]] = relationship(
        "ConversationMember",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMember.position",
    )
    messages: Mapped[list[Message]] = relationship("Message", back_populates="conversation")

    @property
    def participants(self) -> list[str]:
        """Return participant identities in their stored order."""
        return [member.address for member in self.members]

    def has_participant(self, identity: str) -> bool:
        """Return True if ``identity`` is a member of this conversation."""
        return any(member.address == identity for member in self.members)


class ConversationMember(Base):
    """One participant slot of a conversation's ordered participant list."""

    __tablename__ = "conversation_members"

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    address: Mapped[str] = mapped_column(Text, primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="members")
