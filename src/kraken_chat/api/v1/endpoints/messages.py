# src/kraken_chat/api/v1/endpoints/messages.py
"""Direct message endpoints for the Kraken Chat API."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from kraken_chat.core.identity import normalize_address
from kraken_chat.models import Message
from kraken_chat.repositories.message_repo import MessageRepository
from kraken_chat.schemas.message import MessageCreate, MessageResponse, MessageUpdate
from kraken_chat.services.materializer import ConversationMaterializer

from ..dependencies import IdentityDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    identity: IdentityDep,
    db: SessionDep,
) -> Message:
    """Store a message and bind it to its conversation."""
    try:
        return ConversationMaterializer(db).insert_message(identity, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/", response_model=list[MessageResponse])
async def list_messages(
    identity: IdentityDep,
    db: SessionDep,
    peer: str | None = Query(None),
    conversation_id: str | None = Query(None),
    before: datetime | None = Query(None),
    before_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
) -> list[Message]:
    """List messages the caller sent or received, newest first.

    Pass the ``created_at`` and ``id`` of the last row of a page as
    ``before`` and ``before_id`` to fetch the next one.
    """
    return MessageRepository(db).list_messages(
        identity,
        peer=normalize_address(peer) if peer else None,
        conversation_id=conversation_id,
        before=before,
        before_id=before_id,
        limit=limit,
    )


@router.get("/{message_id}", response_model=MessageResponse)
async def get_message(message_id: str, identity: IdentityDep, db: SessionDep) -> Message:
    message = MessageRepository(db).get_message(identity, message_id)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    return message


@router.patch("/{message_id}", response_model=MessageResponse)
async def update_message(
    message_id: str,
    payload: MessageUpdate,
    identity: IdentityDep,
    db: SessionDep,
) -> Message:
    """Update delivery status, error or retry count of a message the caller sent."""
    return ConversationMaterializer(db).update_message(identity, message_id, payload)
