"""Data access helpers scoped to what an identity may read."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload

from kraken_chat.models import Conversation, ConversationMember, Message, Profile

__all__ = ["MessageRepository"]


class MessageRepository:
    """Row-filtered reads for messages, conversations and profiles.

    Queries only ever return rows the given identity is allowed to read, so
    rows outside the caller's scope look absent rather than forbidden.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_message(self, identity: str, message_id: str) -> Message | None:
        """Return a message if the identity is its sender or receiver."""
        stmt = select(Message).where(
            Message.id == message_id,
            or_(Message.sender == identity, Message.receiver == identity),
        )
        return self.session.execute(stmt).scalars().first()

    def list_messages(
        self,
        identity: str,
        *,
        peer: str | None = None,
        conversation_id: str | None = None,
        before: datetime | None = None,
        before_id: str | None = None,
        limit: int | None = 50,
    ) -> list[Message]:
        """Return readable messages, newest first.

        ``before`` and ``before_id`` form a keyset cursor matching the sort
        order: with both set, rows sharing the ``before`` timestamp are kept
        when their id sorts below ``before_id``.
        """
        stmt = select(Message).where(
            or_(Message.sender == identity, Message.receiver == identity)
        )
        if peer is not None:
            stmt = stmt.where(or_(Message.sender == peer, Message.receiver == peer))
        if conversation_id is not None:
            stmt = stmt.where(Message.conversation_id == conversation_id)
        if before is not None and before_id is not None:
            stmt = stmt.where(
                or_(
                    Message.created_at < before,
                    and_(Message.created_at == before, Message.id < before_id),
                )
            )
        elif before is not None:
            stmt = stmt.where(Message.created_at < before)
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def get_conversation(self, identity: str, conversation_id: str) -> Conversation | None:
        """Return a conversation if the identity is a participant."""
        stmt = (
            select(Conversation)
            .join(ConversationMember)
            .where(
                Conversation.id == conversation_id,
                ConversationMember.address == identity,
            )
            .options(selectinload(Conversation.members))
        )
        return self.session.execute(stmt).scalars().first()

    def list_conversations(self, identity: str) -> list[Conversation]:
        """Return the identity's conversations, most recent activity first."""
        stmt = (
            select(Conversation)
            .join(ConversationMember)
            .where(ConversationMember.address == identity)
            .options(selectinload(Conversation.members))
            .order_by(Conversation.updated_at.desc(), Conversation.id)
        )
        return list(self.session.execute(stmt).scalars().unique())

    def get_profile(self, address: str) -> Profile | None:
        return self.session.get(Profile, address)

    def list_profiles(self, skip: int = 0, limit: int = 100) -> list[Profile]:
        stmt = select(Profile).order_by(Profile.address).offset(skip).limit(limit)
        return list(self.session.execute(stmt).scalars())
