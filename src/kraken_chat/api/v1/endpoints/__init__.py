# src/kraken_chat/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .attachments import router as attachments_router
from .conversations import router as conversations_router
from .messages import router as messages_router
from .profiles import router as profiles_router

__all__ = [
    "attachments_router",
    "conversations_router",
    "messages_router",
    "profiles_router",
]
