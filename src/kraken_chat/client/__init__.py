# src/kraken_chat/client/__init__.py
"""Client-side chat engine, message stores and transports."""

from .conversations import derive_conversations, merge_message
from .engine import ReconciliationEngine
from .models import (
    Acknowledgement,
    ChatSession,
    ConnectionStatus,
    ConversationSummary,
    Message,
)
from .socketio_transport import SocketIOTransport
from .store import ApiMessageStore, LocalMessageStore, SqlMessageStore
from .transport import LoopbackHub, LoopbackTransport, TransportAdapter

__all__ = [
    "Acknowledgement",
    "ApiMessageStore",
    "ChatSession",
    "ConnectionStatus",
    "ConversationSummary",
    "LocalMessageStore",
    "LoopbackHub",
    "LoopbackTransport",
    "Message",
    "ReconciliationEngine",
    "SocketIOTransport",
    "SqlMessageStore",
    "TransportAdapter",
    "derive_conversations",
    "merge_message",
]
