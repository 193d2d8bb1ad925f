"""Client-side reconciliation of stored and real-time messages.

The engine keeps one merged, timestamp-ordered message list per session and
recomputes conversation summaries from it after every change. Transport
callbacks never touch that state directly: they enqueue events which a single
consumer task applies under the engine lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from kraken_chat.client.conversations import (
    conversation_messages,
    derive_conversations,
    merge_message,
    merge_messages,
    replace_message,
)
from kraken_chat.client.models import (
    TRANSPORT_P2P,
    ChatSession,
    ConnectionStatus,
    ConversationSummary,
    Message,
    MessageStatus,
    new_message_id,
    now_ms,
)
from kraken_chat.client.store import LocalMessageStore
from kraken_chat.client.transport import TransportAdapter, Unsubscribe
from kraken_chat.core.identity import Identity, normalize_address
from kraken_chat.core.settings import settings
from kraken_chat.errors import ResourceNotFound, TransportUnavailable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]

_MESSAGE_EVENT = "message"
_PRESENCE_EVENT = "presence"


class ReconciliationEngine:
    """Single source of truth for what a chat client renders."""

    def __init__(
        self,
        session: ChatSession,
        transport: TransportAdapter,
        store: LocalMessageStore,
        *,
        queue_size: int | None = None,
    ) -> None:
        self.session = session
        self.transport = transport
        self.store = store

        self._messages: list[Message] = []
        self._conversations: list[ConversationSummary] = []
        self._online: frozenset[Identity] = frozenset()
        self._listeners: list[Listener] = []
        self._unsubscribers: list[Unsubscribe] = []

        self._lock = asyncio.Lock()
        self._events: asyncio.Queue[tuple[str, Any]] = asyncio.Queue(
            maxsize=queue_size or settings.client_event_queue_size
        )
        self._consumer: asyncio.Task[None] | None = None
        self._alive = False
        self._started = False
        self._degraded = False

    @property
    def identity(self) -> Identity:
        return self.session.identity

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def conversations(self) -> list[ConversationSummary]:
        return list(self._conversations)

    @property
    def online_peers(self) -> frozenset[Identity]:
        return self._online

    @property
    def degraded(self) -> bool:
        """True when the transport could not be reached and only stored history is shown."""
        return self._degraded

    @property
    def connection_status(self) -> ConnectionStatus:
        if self._degraded or not self._alive:
            return ConnectionStatus(connected=False)
        return self.transport.get_connection_status()

    def conversation_messages(self, peer: Identity) -> list[Message]:
        return conversation_messages(self._messages, self.identity, normalize_address(peer))

    def add_listener(self, callback: Listener) -> Unsubscribe:
        """Register a callback invoked after every applied change."""
        self._listeners.append(callback)

        def remove() -> None:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

        return remove

    async def start(self) -> None:
        """Connect the transport, load stored history and begin applying events.

        A transport that cannot be reached puts the engine in degraded mode:
        stored history is still loaded and sends fail into ``failed`` status.
        Store failures release the transport and propagate to the caller; the
        engine is left unstarted so ``start`` may be called again.
        """
        if self._started:
            return
        self._started = True
        self._alive = True

        try:
            await self.transport.initialize(self.identity)
        except TransportUnavailable as exc:
            self._degraded = True
            logger.warning("Transport unavailable for %s, running local-only: %s", self.identity, exc)

        try:
            stored = await self.store.load()
        except Exception:
            logger.warning("Stored history unavailable for %s; engine not started", self.identity)
            self._started = self._alive = self._degraded = False
            await self.transport.destroy()
            raise

        async with self._lock:
            self._messages, inserted = merge_messages(self._messages, stored)
            self._rederive()
        logger.info("Engine started for %s with %d stored messages", self.identity, inserted)

        if not self._degraded:
            self._unsubscribers.append(self.transport.on_message(self._on_transport_message))
            self._unsubscribers.append(self.transport.on_presence(self._on_transport_presence))
        self._consumer = asyncio.create_task(self._consume())

    async def settle(self) -> None:
        """Wait until every event queued so far has been applied."""
        await self._events.join()

    async def send(self, content: str, recipient: Identity, encrypted: bool = True) -> Message:
        """Send a message, returning its final local state.

        The message is shown as ``sending`` immediately and then flips to
        ``sent`` or ``failed`` in place. Transport failures never raise.
        """
        self._ensure_alive()
        recipient = normalize_address(recipient)
        if not content:
            raise ValueError("Message content must not be empty")
        if not recipient or recipient == self.identity:
            raise ValueError("Recipient must be another identity")

        message = Message(
            id=new_message_id(),
            sender=self.identity,
            receiver=recipient,
            content=content,
            timestamp=now_ms(),
            status="sending",
            transport=TRANSPORT_P2P,
            encrypted=encrypted,
        )
        async with self._lock:
            self._messages, _ = merge_message(self._messages, message)
            self._rederive()
        return await self._deliver(message)

    async def retry(self, message_id: str) -> Message:
        """Resend a ``failed`` message under the same id."""
        self._ensure_alive()
        async with self._lock:
            current = next((m for m in self._messages if m.id == message_id), None)
            if current is None:
                raise ResourceNotFound(f"Message {message_id} not found")
            if current.status != "failed":
                raise ValueError(f"Only failed messages can be retried, {message_id} is {current.status}")
            message = current.with_status("sending", retries=current.retries + 1, error="")
            self._messages, _ = replace_message(self._messages, message)
            self._rederive()
        return await self._deliver(message)

    async def destroy(self) -> None:
        """Stop applying events and release the transport."""
        was_alive, self._alive = self._alive, False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        await self.transport.destroy()
        self._listeners.clear()
        if was_alive:
            logger.info("Engine stopped for %s", self.identity)

    async def _deliver(self, message: Message) -> Message:
        try:
            await self.transport.send_message(
                message.content,
                message.receiver,
                message.encrypted,
                message_id=message.id,
                timestamp=message.timestamp,
            )
        except (TransportUnavailable, OSError) as exc:
            logger.warning("Send of %s to %s failed: %s", message.id, message.receiver, exc)
            return await self._set_status(message, "failed", error=str(exc))
        return await self._set_status(message, "sent")

    async def _set_status(self, message: Message, status: MessageStatus, error: str = "") -> Message:
        updated = message.with_status(status, error=error)
        if not self._alive:
            return updated
        async with self._lock:
            self._messages, _ = replace_message(self._messages, updated)
            self._rederive()
        return updated

    def _on_transport_message(self, message: Message) -> None:
        self._enqueue((_MESSAGE_EVENT, message))

    def _on_transport_presence(self, peers: frozenset[Identity]) -> None:
        self._enqueue((_PRESENCE_EVENT, peers))

    def _enqueue(self, event: tuple[str, Any]) -> None:
        if not self._alive:
            return
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Event queue full for %s; dropping %s event", self.identity, event[0])

    async def _consume(self) -> None:
        while True:
            kind, payload = await self._events.get()
            try:
                if self._alive:
                    await self._apply(kind, payload)
            finally:
                self._events.task_done()

    async def _apply(self, kind: str, payload: Any) -> None:
        async with self._lock:
            if not self._alive:
                return
            if kind == _PRESENCE_EVENT:
                self._online = frozenset(payload) - {self.identity}
                self._notify()
                return

            message: Message = payload
            if self.identity not in (message.sender, message.receiver):
                logger.debug("Ignoring message %s not addressed to %s", message.id, self.identity)
                return
            self._messages, inserted = merge_message(self._messages, message)
            if inserted:
                logger.debug("Merged message %s from %s", message.id, message.transport)
                self._rederive()
            else:
                logger.debug("Duplicate message %s ignored", message.id)

    def _rederive(self) -> None:
        self._conversations = derive_conversations(self._messages, self.identity)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Engine listener %r failed", listener)

    def _ensure_alive(self) -> None:
        if not self._alive:
            raise RuntimeError("Engine is not running; call start() first")
