# src/kraken_chat/models/__init__.py
"""SQLAlchemy models for the Kraken Chat application."""

from .conversation import Conversation, ConversationMember
from .message import Attachment, Message
from .profile import Profile

__all__ = [
    "Conversation", "ConversationMember",
    "Attachment", "Message",
    "Profile",
]
