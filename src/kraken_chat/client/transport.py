"""Contract for the real-time peer channel, plus an in-process implementation.

Callbacks registered with ``on_message``/``on_presence`` are invoked on the
event loop thread and must return quickly; the reconciliation engine only
enqueues from them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from kraken_chat.client.models import (
    TRANSPORT_P2P,
    Acknowledgement,
    ConnectionStatus,
    Message,
    new_message_id,
    now_ms,
)
from kraken_chat.core.identity import Identity, normalize_address
from kraken_chat.errors import TransportUnavailable

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Message], None]
PresenceCallback = Callable[[frozenset[Identity]], None]
Unsubscribe = Callable[[], None]


class TransportAdapter(ABC):
    """Best-effort, low-latency message channel between peers."""

    @abstractmethod
    async def initialize(self, identity: Identity) -> None:
        """Open the channel for ``identity``.

        Raises:
            TransportUnavailable: If the channel cannot be reached.
        """

    @abstractmethod
    def get_connection_status(self) -> ConnectionStatus:
        """Return the current connection state; polled by callers."""

    @abstractmethod
    def on_message(self, callback: MessageCallback) -> Unsubscribe:
        """Register a callback for inbound messages from any peer."""

    @abstractmethod
    def on_presence(self, callback: PresenceCallback) -> Unsubscribe:
        """Register a callback receiving the full set of online peers."""

    @abstractmethod
    async def send_message(
        self,
        content: str,
        recipient: Identity,
        encrypted: bool,
        *,
        message_id: str | None = None,
        timestamp: int | None = None,
    ) -> Acknowledgement:
        """Send a message to ``recipient``.

        Raises:
            TransportUnavailable: If the message could not be handed to the channel.
        """

    @abstractmethod
    async def destroy(self) -> None:
        """Release the channel; safe to call before or without ``initialize``."""


class CallbackTransport(TransportAdapter, ABC):
    """Handler bookkeeping shared by concrete transports."""

    def __init__(self) -> None:
        self._message_handlers: list[MessageCallback] = []
        self._presence_handlers: list[PresenceCallback] = []

    def on_message(self, callback: MessageCallback) -> Unsubscribe:
        self._message_handlers.append(callback)

        def remove() -> None:
            try:
                self._message_handlers.remove(callback)
            except ValueError:
                pass

        return remove

    def on_presence(self, callback: PresenceCallback) -> Unsubscribe:
        self._presence_handlers.append(callback)

        def remove() -> None:
            try:
                self._presence_handlers.remove(callback)
            except ValueError:
                pass

        return remove

    def _emit_message(self, message: Message) -> None:
        for handler in list(self._message_handlers):
            handler(message)

    def _emit_presence(self, peers: Iterable[Identity]) -> None:
        snapshot = frozenset(normalize_address(peer) for peer in peers)
        for handler in list(self._presence_handlers):
            handler(snapshot)

    def _clear_handlers(self) -> None:
        self._message_handlers.clear()
        self._presence_handlers.clear()


class LoopbackHub:
    """In-process relay connecting several ``LoopbackTransport`` peers.

    Messages to peers that are not connected are dropped, like any
    best-effort channel.
    """

    def __init__(self) -> None:
        self.reachable = True
        self._peers: dict[Identity, LoopbackTransport] = {}

    @property
    def online(self) -> frozenset[Identity]:
        return frozenset(self._peers)

    def attach(self, identity: Identity, transport: LoopbackTransport) -> None:
        if not self.reachable:
            raise TransportUnavailable("Loopback hub is unreachable")
        self._peers[identity] = transport
        self._broadcast_presence()

    def detach(self, identity: Identity, transport: LoopbackTransport) -> None:
        if self._peers.get(identity) is transport:
            del self._peers[identity]
            self._broadcast_presence()

    def route(self, message: Message) -> bool:
        """Deliver to the receiver if online; return whether it was delivered."""
        if not self.reachable:
            raise TransportUnavailable("Loopback hub is unreachable")
        target = self._peers.get(message.receiver)
        if target is None:
            logger.debug("Peer %s offline; dropping message %s", message.receiver, message.id)
            return False
        target._emit_message(message.with_status("delivered", transport=TRANSPORT_P2P))
        return True

    def _broadcast_presence(self) -> None:
        online = self.online
        for transport in list(self._peers.values()):
            transport._emit_presence(online)


class LoopbackTransport(CallbackTransport):
    """Transport bound to a ``LoopbackHub``; used in tests and local development."""

    def __init__(self, hub: LoopbackHub) -> None:
        super().__init__()
        self.hub = hub
        self._identity: Identity | None = None

    async def initialize(self, identity: Identity) -> None:
        identity = normalize_address(identity)
        self.hub.attach(identity, self)
        self._identity = identity

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            connected=self._identity is not None and self.hub.reachable
        )

    def on_presence(self, callback: PresenceCallback) -> Unsubscribe:
        remove = super().on_presence(callback)
        # Late subscribers get the current roster straight away.
        if self._identity is not None:
            callback(self.hub.online)
        return remove

    async def send_message(
        self,
        content: str,
        recipient: Identity,
        encrypted: bool,
        *,
        message_id: str | None = None,
        timestamp: int | None = None,
    ) -> Acknowledgement:
        if self._identity is None:
            raise TransportUnavailable("Transport is not initialized")
        message = Message(
            id=message_id or new_message_id(),
            sender=self._identity,
            receiver=normalize_address(recipient),
            content=content,
            timestamp=timestamp if timestamp is not None else now_ms(),
            status="sent",
            transport=TRANSPORT_P2P,
            encrypted=encrypted,
        )
        self.hub.route(message)
        return Acknowledgement(message_id=message.id)

    async def destroy(self) -> None:
        self._clear_handlers()
        if self._identity is not None:
            self.hub.detach(self._identity, self)
            self._identity = None
