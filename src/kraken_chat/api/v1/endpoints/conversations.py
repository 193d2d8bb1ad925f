# src/kraken_chat/api/v1/endpoints/conversations.py
"""Conversation endpoints for the Kraken Chat API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from kraken_chat.models import Conversation
from kraken_chat.repositories.message_repo import MessageRepository
from kraken_chat.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationUpdate,
)
from kraken_chat.services.materializer import ConversationMaterializer

from ..dependencies import IdentityDep, SessionDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/", response_model=list[ConversationResponse])
async def list_conversations(identity: IdentityDep, db: SessionDep) -> list[Conversation]:
    """List the caller's conversations, most recent first."""
    return MessageRepository(db).list_conversations(identity)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    identity: IdentityDep,
    db: SessionDep,
) -> Conversation:
    conversation = MessageRepository(db).get_conversation(identity, conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation


@router.post("/", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    identity: IdentityDep,
    db: SessionDep,
) -> Conversation:
    """Open a conversation; an existing two-party conversation is returned as-is."""
    try:
        return ConversationMaterializer(db).create_conversation(identity, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    identity: IdentityDep,
    db: SessionDep,
) -> Conversation:
    """Rename or re-skin a conversation the caller belongs to."""
    return ConversationMaterializer(db).update_conversation(identity, conversation_id, payload)
