"""Conversation materialization for stored messages.

Storing a message is one unit of work with two steps:

1. Resolve-or-create. A message without a ``conversation_id`` is bound to the
   two-party conversation of its sender/receiver pair, which is created on the
   first message between them. Creation is an insert that ignores conflicts on
   the unique ``pair_key`` followed by a re-select, so concurrent first
   messages for one pair converge on a single row.
2. Insert and roll up. The message row is stored and the conversation's
   ``last_message``/``last_message_time``/``updated_at`` are set from it.

Both steps commit together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from kraken_chat.core.settings import settings
from kraken_chat.db.time import as_utc, utcnow
from kraken_chat.errors import ConversationConflict, ResourceNotFound
from kraken_chat.models import Conversation, ConversationMember, Message
from kraken_chat.models.conversation import new_conversation_id, pair_key_for
from kraken_chat.models.message import new_message_id
from kraken_chat.repositories.message_repo import MessageRepository
from kraken_chat.schemas.conversation import ConversationCreate, ConversationUpdate
from kraken_chat.schemas.message import MessageCreate, MessageUpdate
from kraken_chat.services import policy

logger = logging.getLogger(__name__)


def _insert_pair_ignoring_conflict(db: Session, values: dict[str, Any]) -> Any:
    """Build an INSERT that silently skips rows whose pair_key already exists."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql_insert(Conversation).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(Conversation).values(**values)
    else:  # pragma: no cover - deployments use sqlite or postgresql
        raise RuntimeError(f"Unsupported database dialect for conversations: {dialect}")
    return stmt.on_conflict_do_nothing(index_elements=["pair_key"])


class ConversationMaterializer:
    """Finds or creates conversations and keeps their rollup current."""

    def __init__(self, db: Session, *, compare_timestamps: bool | None = None) -> None:
        self.db = db
        self.repo = MessageRepository(db)
        self.compare_timestamps = (
            settings.rollup_compare_timestamps if compare_timestamps is None else compare_timestamps
        )

    # --- Resolve-or-create ----------------------------------------------------

    def find_pair(self, a: str, b: str) -> Conversation | None:
        """Return the non-group conversation between ``a`` and ``b`` if it exists."""
        key = pair_key_for(a, b)
        candidates = (
            self.db.execute(
                select(Conversation).where(
                    Conversation.pair_key == key,
                    Conversation.is_group.is_(False),
                )
            )
            .scalars()
            .all()
        )
        if len(candidates) > 1:
            raise ConversationConflict(key, len(candidates))
        return candidates[0] if candidates else None

    def resolve_pair(
        self,
        sender: str,
        receiver: str,
        *,
        seed_content: str = "",
        seed_time: datetime | None = None,
    ) -> Conversation:
        """Return the pair's conversation, creating it when none exists yet.

        Does not commit; callers decide the transaction boundary.
        """
        if sender == receiver:
            raise ValueError("A two-party conversation needs two distinct identities")

        existing = self.find_pair(sender, receiver)
        if existing is not None:
            return existing

        key = pair_key_for(sender, receiver)
        candidate_id = new_conversation_id()
        now = utcnow()
        self.db.execute(
            _insert_pair_ignoring_conflict(
                self.db,
                {
                    "id": candidate_id,
                    "pair_key": key,
                    "last_message": seed_content,
                    "last_message_time": seed_time,
                    "is_group": False,
                    "created_at": now,
                    "updated_at": seed_time or now,
                },
            )
        )

        winners = (
            self.db.execute(select(Conversation.id).where(Conversation.pair_key == key))
            .scalars()
            .all()
        )
        if len(winners) != 1:
            raise ConversationConflict(key, len(winners))

        conversation_id = winners[0]
        if conversation_id == candidate_id:
            self.db.execute(
                insert(ConversationMember),
                [
                    {"conversation_id": candidate_id, "address": sender, "position": 0},
                    {"conversation_id": candidate_id, "address": receiver, "position": 1},
                ],
            )
            logger.info("Created conversation %s for pair %s", candidate_id, key)
        else:
            logger.debug("Pair %s was created concurrently as %s", key, conversation_id)

        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:  # pragma: no cover - row selected above
            raise ConversationConflict(key, 0)
        return conversation

    # --- Insert and roll up -----------------------------------------------------

    def rollup(self, conversation: Conversation, message: Message) -> bool:
        """Copy the message into the conversation summary.

        Returns False when timestamp comparison is enabled and the message is
        older than the current summary.
        """
        created_at = as_utc(message.created_at)
        if self.compare_timestamps and conversation.last_message_time is not None:
            if created_at < as_utc(conversation.last_message_time):
                return False

        conversation.last_message = message.content
        conversation.last_message_time = created_at
        conversation.updated_at = created_at
        return True

    def insert_message(self, identity: str, data: MessageCreate) -> Message:
        """Store a message from ``identity`` and materialize its conversation.

        Re-submitting an id that is already stored returns the stored row
        unchanged, so at-least-once delivery stays idempotent.
        """
        sender = data.sender or identity
        policy.require(policy.can_insert_message(identity, sender), "insert", "message")
        if data.receiver == sender:
            raise ValueError("Sender and receiver must differ")

        try:
            if data.id is not None:
                existing = self.db.get(Message, data.id)
                if existing is not None:
                    policy.require(existing.sender == sender, "insert", "message")
                    logger.debug("Message %s already stored; skipping insert", data.id)
                    return existing

            created_at = as_utc(data.created_at) if data.created_at else utcnow()

            if data.conversation_id is None:
                conversation = self.resolve_pair(
                    sender,
                    data.receiver,
                    seed_content=data.content,
                    seed_time=created_at,
                )
            else:
                conversation = self.db.get(Conversation, data.conversation_id)
                if conversation is None:
                    raise ResourceNotFound(f"Conversation {data.conversation_id} not found")
                policy.require(
                    policy.can_access_conversation(identity, conversation),
                    "insert",
                    "message",
                )
                if not conversation.has_participant(data.receiver):
                    raise ValueError("Receiver is not a participant of the conversation")

            message = Message(
                id=data.id or new_message_id(),
                conversation_id=conversation.id,
                sender=sender,
                receiver=data.receiver,
                content=data.content,
                created_at=created_at,
                status=data.status,
                encrypted=data.encrypted,
            )
            self.db.add(message)
            self.db.flush()
            self.rollup(conversation, message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(message)
        return message

    # --- Explicit conversation management ---------------------------------------------

    def create_conversation(self, identity: str, data: ConversationCreate) -> Conversation:
        """Open a conversation the caller takes part in.

        Two-party requests go through the same find-or-create path as messages,
        so they never duplicate an existing pair.
        """
        policy.require(
            policy.can_insert_conversation(identity, data.participants),
            "insert",
            "conversation",
        )
        try:
            if not data.is_group:
                if len(data.participants) != 2:
                    raise ValueError("Two-party conversations need exactly two participants")
                first, second = data.participants
                conversation = self.resolve_pair(first, second)
            else:
                conversation = Conversation(
                    pair_key=None,
                    is_group=True,
                    group_name=data.group_name,
                    group_avatar=data.group_avatar,
                )
                conversation.members = [
                    ConversationMember(address=address, position=position)
                    for position, address in enumerate(data.participants)
                ]
                self.db.add(conversation)
                self.db.flush()
                logger.info("Created group conversation %s", conversation.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(conversation)
        return conversation

    def update_conversation(
        self,
        identity: str,
        conversation_id: str,
        changes: ConversationUpdate,
    ) -> Conversation:
        conversation = self.repo.get_conversation(identity, conversation_id)
        if conversation is None:
            raise ResourceNotFound(f"Conversation {conversation_id} not found")
        policy.require(
            policy.can_access_conversation(identity, conversation),
            "update",
            "conversation",
        )

        for key, value in changes.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(conversation, key, value)
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def update_message(self, identity: str, message_id: str, changes: MessageUpdate) -> Message:
        """Apply delivery bookkeeping changes; only the sender may do so."""
        message = self.repo.get_message(identity, message_id)
        if message is None:
            raise ResourceNotFound(f"Message {message_id} not found")
        policy.require(policy.can_update_message(identity, message), "update", "message")

        for key, value in changes.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(message, key, value)
        self.db.commit()
        self.db.refresh(message)
        return message
