"""Access predicates for profiles, conversations, messages and attachments.

Every predicate takes the identity resolved for the current request and the
row being touched. Nothing here reads ambient state or re-derives identity,
so a predicate evaluates the same way however many times it is called within
a request. ``require`` turns a failed predicate into ``AuthorizationDenied``.
"""

from __future__ import annotations

from typing import Literal

from kraken_chat.core.settings import settings
from kraken_chat.errors import AuthorizationDenied
from kraken_chat.models import Attachment, Conversation, Message, Profile

StorageAction = Literal["select", "insert", "update", "delete"]


def require(allowed: bool, action: str, resource: str) -> None:
    """Raise ``AuthorizationDenied`` unless ``allowed`` is true."""
    if not allowed:
        raise AuthorizationDenied(action, resource)


# --- Profiles ---------------------------------------------------------------

def can_read_profile(identity: str, profile: Profile) -> bool:
    """Any authenticated identity may read every profile."""
    return bool(identity)


def can_write_profile(identity: str, address: str) -> bool:
    """Profiles may only be inserted or updated by their owner."""
    return address == identity


# --- Conversations ------------------------------------------------------------

def can_access_conversation(identity: str, conversation: Conversation) -> bool:
    """Read and update require membership."""
    return conversation.has_participant(identity)


def can_insert_conversation(identity: str, participants: list[str]) -> bool:
    """A caller may only create conversations they take part in."""
    return identity in participants


# --- Messages -------------------------------------------------------------------

def can_read_message(identity: str, message: Message) -> bool:
    return identity in (message.sender, message.receiver)


def can_insert_message(identity: str, sender: str) -> bool:
    return sender == identity


def can_update_message(identity: str, message: Message) -> bool:
    return message.sender == identity


# --- Attachments ----------------------------------------------------------------

def can_access_message_attachments(identity: str, message: Message) -> bool:
    """Attachments follow the conversation that owns their message."""
    conversation = message.conversation
    return conversation is not None and conversation.has_participant(identity)


def can_access_attachment(identity: str, attachment: Attachment) -> bool:
    return can_access_message_attachments(identity, attachment.message)


def can_access_storage_object(
    identity: str | None,
    bucket: str,
    action: StorageAction,
    message: Message | None = None,
) -> bool:
    """Object storage rules for the shared attachments bucket.

    The bucket is publicly readable. Writes need an authenticated identity that
    participates in the conversation owning the object's message. Any other
    bucket is denied.
    """
    if bucket != settings.attachments_bucket:
        return False
    if action == "select":
        return True
    if not identity or message is None:
        return False
    return can_access_message_attachments(identity, message)
