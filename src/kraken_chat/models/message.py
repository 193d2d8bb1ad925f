# src/kraken_chat/models/message.py
"""Models describing direct messages and their attachments."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kraken_chat.db.session import Base
from kraken_chat.db.time import utcnow

if TYPE_CHECKING:
    from .conversation import Conversation

MESSAGE_STATUS_SENT = "sent"


def new_message_id() -> str:
    """Return a fresh globally unique message identifier."""
    return str(uuid.uuid4())


class Message(Base):
    """Direct message between two identities.

    The id is the deduplication key shared by every transport, so clients may
    supply it when the same message has already travelled over the peer channel.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_message_id)
    # Bound by the conversation materializer before the row is stored.
    conversation_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("conversations.id"),
        nullable=True,
        index=True,
    )

    sender: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    receiver: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=MESSAGE_STATUS_SENT,
        server_default=MESSAGE_STATUS_SENT,
    )
    error: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    retries: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    # Label only; content is stored as submitted.
    encrypted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    conversation: Mapped[Conversation | None] = relationship(
        "Conversation",
        back_populates="messages",
    )
    attachments: Mapped[list[Attachment]] = relationship(
        "Attachment",
        back_populates="message",
        cascade="all, delete-orphan",
    )


class Attachment(Base):
    """Metadata for a file stored in the shared attachments bucket."""

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bucket: Mapped[str] = mapped_column(Text, nullable=False)
    object_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="application/octet-stream",
    )
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    message: Mapped[Message] = relationship("Message", back_populates="attachments")
