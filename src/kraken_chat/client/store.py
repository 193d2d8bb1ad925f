"""Durable message history for the client engine.

A store is read once at startup and yields every message the session
identity may read, tagged with the ``store`` transport.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy.orm import Session

from kraken_chat.client.models import TRANSPORT_STORE, ChatSession, Message
from kraken_chat.core.settings import settings
from kraken_chat.db.time import to_epoch_ms
from kraken_chat.errors import StoreUnavailable
from kraken_chat.models import Message as MessageRow
from kraken_chat.repositories.message_repo import MessageRepository

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/api/v1/messages/"


def message_from_row(row: MessageRow) -> Message:
    """Convert an ORM message row into a client message."""
    return Message(
        id=row.id,
        sender=row.sender,
        receiver=row.receiver,
        content=row.content,
        timestamp=to_epoch_ms(row.created_at),
        status=row.status,  # type: ignore[arg-type]
        transport=TRANSPORT_STORE,
        encrypted=row.encrypted,
        conversation_id=row.conversation_id,
        retries=row.retries,
        error=row.error or "",
    )


def message_from_record(record: Mapping[str, Any]) -> Message:
    """Convert a message returned by the HTTP API into a client message.

    Raises:
        KeyError: If a required field is missing.
        ValueError: If ``created_at`` is not an ISO 8601 timestamp.
    """
    created_at = datetime.fromisoformat(str(record["created_at"]))
    return Message(
        id=str(record["id"]),
        sender=str(record["sender"]),
        receiver=str(record["receiver"]),
        content=str(record["content"]),
        timestamp=to_epoch_ms(created_at),
        status=record.get("status") or "sent",
        transport=TRANSPORT_STORE,
        encrypted=bool(record.get("encrypted", False)),
        conversation_id=record.get("conversation_id"),
        retries=int(record.get("retries") or 0),
        error=str(record.get("error") or ""),
    )


class LocalMessageStore(ABC):
    @abstractmethod
    async def load(self) -> list[Message]:
        """Return every message the session identity may read.

        Raises:
            StoreUnavailable: If the store cannot be read.
        """


class ApiMessageStore(LocalMessageStore):
    """Reads history from the Kraken Chat HTTP API with the session's bearer token."""

    def __init__(
        self,
        session: ChatSession,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        page_size: int | None = None,
    ) -> None:
        if not session.access_token:
            raise ValueError("ApiMessageStore requires a session with an access token")
        self.session = session
        self.page_size = page_size or settings.api_page_size
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=httpx.Timeout(settings.api_http_timeout_seconds),
        )

    async def __aenter__(self) -> ApiMessageStore:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def load(self) -> list[Message]:
        headers = {"Authorization": f"Bearer {self.session.access_token}"}
        messages: list[Message] = []
        cursor: tuple[str, str] | None = None

        while True:
            params: dict[str, Any] = {"limit": self.page_size}
            if cursor is not None:
                params["before"], params["before_id"] = cursor
            try:
                response = await self._client.get(MESSAGES_PATH, params=params, headers=headers)
                response.raise_for_status()
                page = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise StoreUnavailable(f"Could not load message history: {exc}") from exc

            for record in page:
                try:
                    messages.append(message_from_record(record))
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed stored message: %s", exc)

            if len(page) < self.page_size:
                break
            cursor = (page[-1]["created_at"], page[-1]["id"])

        logger.info("Loaded %d stored messages for %s", len(messages), self.session.identity)
        return messages


class SqlMessageStore(LocalMessageStore):
    """Reads history straight from the database; for same-process clients and tests."""

    def __init__(self, session_factory: Callable[[], Session], identity: str) -> None:
        self.session_factory = session_factory
        self.identity = identity

    async def load(self) -> list[Message]:
        return await asyncio.to_thread(self._load)

    def _load(self) -> list[Message]:
        db = self.session_factory()
        try:
            rows = MessageRepository(db).list_messages(self.identity, limit=None)
            return [message_from_row(row) for row in rows]
        finally:
            db.close()
