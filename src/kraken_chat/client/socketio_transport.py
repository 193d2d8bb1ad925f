"""
Socket.IO relay transport for the peer channel.

Connects to a relay at ``P2P_RELAY_URL`` with ``auth={identity, token}``.
Inbound ``message`` events carry a message payload, ``presence`` events carry
``{"online": [identity, ...]}``. Sends are acknowledged by the relay through
Socket.IO callbacks: ``{"ok": true}`` or ``{"ok": false, "error": "..."}``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import socketio

from kraken_chat.client.models import (
    TRANSPORT_P2P,
    Acknowledgement,
    ConnectionStatus,
    Message,
    new_message_id,
    now_ms,
)
from kraken_chat.client.transport import CallbackTransport
from kraken_chat.core.identity import Identity, normalize_address
from kraken_chat.core.settings import settings
from kraken_chat.errors import TransportUnavailable

logger = logging.getLogger(__name__)


class SocketIOTransport(CallbackTransport):
    def __init__(
        self,
        url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        socketio_path: Optional[str] = None,
        transports: Optional[list[str]] = None,
        connect_timeout: Optional[float] = None,
        send_timeout: Optional[float] = None,
    ):
        super().__init__()
        self._url = url or settings.p2p_relay_url
        self._token = token
        self._socketio_path = socketio_path or settings.p2p_socketio_path
        self._transports = transports or ["websocket"]
        self._connect_timeout = connect_timeout or settings.p2p_connect_timeout_seconds
        self._send_timeout = send_timeout or settings.p2p_send_timeout_seconds
        self._sio: Optional[socketio.AsyncClient] = None
        self._identity: Optional[Identity] = None

    async def initialize(self, identity: Identity) -> None:
        """Connect to the relay as ``identity``."""
        if self._sio is not None and self._sio.connected:
            return

        self._identity = normalize_address(identity)
        self._sio = socketio.AsyncClient(reconnection=True)

        @self._sio.on("message")
        async def on_message(data: Any) -> None:
            self._handle_message(data)

        @self._sio.on("presence")
        async def on_presence(data: Any) -> None:
            self._handle_presence(data)

        @self._sio.event
        async def disconnect(*_args: Any) -> None:
            logger.info("Relay connection for %s closed", self._identity)

        try:
            await asyncio.wait_for(
                self._sio.connect(
                    self._url,
                    auth={"identity": self._identity, "token": self._token},
                    transports=self._transports,
                    socketio_path=self._socketio_path,
                ),
                timeout=self._connect_timeout,
            )
        except (socketio.exceptions.SocketIOError, asyncio.TimeoutError, OSError) as exc:
            await self._close()
            raise TransportUnavailable(f"Could not reach relay at {self._url}: {exc}") from exc

        logger.info("Connected to relay %s as %s", self._url, self._identity)

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(connected=self._sio is not None and self._sio.connected)

    async def send_message(
        self,
        content: str,
        recipient: Identity,
        encrypted: bool,
        *,
        message_id: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Acknowledgement:
        if self._sio is None or not self._sio.connected or self._identity is None:
            raise TransportUnavailable("Relay is not connected")

        message = Message(
            id=message_id or new_message_id(),
            sender=self._identity,
            receiver=normalize_address(recipient),
            content=content,
            timestamp=timestamp if timestamp is not None else now_ms(),
            transport=TRANSPORT_P2P,
            encrypted=encrypted,
        )
        try:
            reply = await self._sio.call("message", message.to_payload(), timeout=self._send_timeout)
        except (socketio.exceptions.SocketIOError, OSError) as exc:
            raise TransportUnavailable(f"Relay did not accept message {message.id}: {exc}") from exc

        if isinstance(reply, dict) and not reply.get("ok", False):
            raise TransportUnavailable(
                f"Relay rejected message {message.id}: {reply.get('error', 'unknown error')}"
            )
        return Acknowledgement(message_id=message.id)

    async def destroy(self) -> None:
        self._clear_handlers()
        await self._close()
        self._identity = None

    async def _close(self) -> None:
        sio, self._sio = self._sio, None
        if sio is None:
            return
        try:
            await sio.disconnect()
        except (socketio.exceptions.SocketIOError, OSError) as exc:
            logger.warning("Error while disconnecting from relay: %s", exc)

    def _handle_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            logger.warning("Ignoring relay message with unexpected payload type %s", type(data))
            return
        try:
            message = Message.from_payload(data, transport=TRANSPORT_P2P)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed relay message: %s", exc)
            return
        if self._identity not in (message.sender, message.receiver):
            logger.debug("Ignoring relay message %s addressed elsewhere", message.id)
            return
        self._emit_message(message)

    def _handle_presence(self, data: Any) -> None:
        peers = data.get("online", []) if isinstance(data, dict) else data
        if not isinstance(peers, list):
            logger.warning("Ignoring presence update with unexpected payload %r", data)
            return
        self._emit_presence(str(peer) for peer in peers)
