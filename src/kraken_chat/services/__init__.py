# src/kraken_chat/services/__init__.py
"""Business logic services for the Kraken Chat application."""

from .attachments import AttachmentService
from .materializer import ConversationMaterializer

__all__ = [
    "AttachmentService",
    "ConversationMaterializer",
]
