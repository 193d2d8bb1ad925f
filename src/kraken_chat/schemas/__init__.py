# src/kraken_chat/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .attachment import AttachmentCreate, AttachmentResponse
from .conversation import ConversationCreate, ConversationResponse, ConversationUpdate
from .message import MessageCreate, MessageResponse, MessageUpdate
from .profile import ProfileResponse, ProfileUpsert

__all__ = [
    "AttachmentCreate", "AttachmentResponse",
    "ConversationCreate", "ConversationResponse", "ConversationUpdate",
    "MessageCreate", "MessageResponse", "MessageUpdate",
    "ProfileResponse", "ProfileUpsert",
]
