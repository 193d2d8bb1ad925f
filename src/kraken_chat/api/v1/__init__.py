# src/kraken_chat/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    attachments_router,
    conversations_router,
    messages_router,
    profiles_router,
)

__all__ = [
    "attachments_router",
    "conversations_router",
    "messages_router",
    "profiles_router",
]
