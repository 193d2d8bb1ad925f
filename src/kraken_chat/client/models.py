"""Value types shared by the client engine, its stores and transports."""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from jose import jwt

from kraken_chat.core.identity import (
    Credential,
    Identity,
    Principal,
    SyntheticWallet,
    credential_from_principal,
    normalize_address,
    resolve,
)

MessageStatus = Literal["sending", "sent", "delivered", "pending_decryption", "failed"]

# Origin channel tags
TRANSPORT_P2P = "p2p"
TRANSPORT_STORE = "store"


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_message_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Message:
    """A message as held in the client's merged view.

    ``id`` is the deduplication key across transports; ``timestamp`` is in
    epoch milliseconds.
    """

    id: str
    sender: Identity
    receiver: Identity
    content: str
    timestamp: int
    status: MessageStatus = "sent"
    transport: str = TRANSPORT_P2P
    encrypted: bool = False
    conversation_id: str | None = None
    retries: int = 0
    error: str = ""

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        transport: str = TRANSPORT_P2P,
        default_status: MessageStatus = "delivered",
    ) -> Message:
        """Build a message from a wire payload.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a field has the wrong shape.
        """
        message_id = str(payload["id"]).strip()
        if not message_id:
            raise ValueError("Message id must not be empty")
        return cls(
            id=message_id,
            sender=normalize_address(str(payload["sender"])),
            receiver=normalize_address(str(payload["receiver"])),
            content=str(payload["content"]),
            timestamp=int(payload["timestamp"]),
            status=payload.get("status") or default_status,
            transport=transport,
            encrypted=bool(payload.get("encrypted", False)),
            conversation_id=payload.get("conversation_id"),
            retries=int(payload.get("retries", 0)),
            error=str(payload.get("error") or ""),
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize into the wire payload shared by every transport."""
        return {
            "id": self.id,
            "sender": self.sender,
            "receiver": self.receiver,
            "content": self.content,
            "timestamp": self.timestamp,
            "encrypted": self.encrypted,
        }

    def with_status(self, status: MessageStatus, **changes: Any) -> Message:
        return replace(self, status=status, **changes)

    def is_between(self, a: Identity, b: Identity) -> bool:
        """Return True if the message was exchanged between ``a`` and ``b``."""
        return {self.sender, self.receiver} == {a, b}


@dataclass(frozen=True)
class ConversationSummary:
    """Conversation row derived from the message list, never stored."""

    id: str
    participants: tuple[Identity, ...]
    last_message: str
    last_message_time: int
    last_message_id: str
    is_group: bool = False

    def peer_of(self, identity: Identity) -> Identity | None:
        """Return the other participant of a two-party conversation."""
        for participant in self.participants:
            if participant != identity:
                return participant
        return None


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool


@dataclass(frozen=True)
class Acknowledgement:
    """Transport confirmation that a message left this peer."""

    message_id: str
    received_at: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class ChatSession:
    """Explicit per-identity session context handed to the client components.

    The credential is classified and resolved once when the session is built;
    downstream code only reads ``identity``.
    """

    credential: Credential
    identity: Identity
    access_token: str | None = None

    @classmethod
    def from_credential(cls, credential: Credential, access_token: str | None = None) -> ChatSession:
        return cls(credential=credential, identity=resolve(credential), access_token=access_token)

    @classmethod
    def for_wallet(cls, address: str, access_token: str | None = None) -> ChatSession:
        return cls.from_credential(
            SyntheticWallet(address=address.strip().lower()),
            access_token=access_token,
        )

    @classmethod
    def from_access_token(cls, access_token: str) -> ChatSession:
        """Build a session from a token issued to this client.

        Claims are read without signature verification; the server verifies
        the token on every request.
        """
        claims = jwt.get_unverified_claims(access_token)
        principal = Principal(subject=claims.get("sub"), email=claims.get("email"))
        return cls.from_credential(credential_from_principal(principal), access_token=access_token)
