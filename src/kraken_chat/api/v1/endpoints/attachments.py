# src/kraken_chat/api/v1/endpoints/attachments.py
"""Attachment metadata endpoints for the Kraken Chat API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from kraken_chat.models import Attachment
from kraken_chat.schemas.attachment import AttachmentCreate, AttachmentResponse
from kraken_chat.services.attachments import AttachmentService, public_url

from ..dependencies import IdentityDep, SessionDep

router = APIRouter(prefix="/messages/{message_id}/attachments", tags=["attachments"])


def _serialize_attachment(attachment: Attachment) -> dict[str, Any]:
    """Serialize an Attachment instance into API payload form."""
    return {
        "id": attachment.id,
        "message_id": attachment.message_id,
        "bucket": attachment.bucket,
        "object_path": attachment.object_path,
        "file_name": attachment.file_name,
        "content_type": attachment.content_type,
        "size": attachment.size,
        "created_at": attachment.created_at,
        "public_url": public_url(attachment.bucket, attachment.object_path),
    }


@router.post("/", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    message_id: str,
    payload: AttachmentCreate,
    identity: IdentityDep,
    db: SessionDep,
) -> dict[str, Any]:
    """Record an uploaded file against a message in one of the caller's conversations."""
    try:
        attachment = AttachmentService(db).add(identity, message_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _serialize_attachment(attachment)


@router.get("/", response_model=list[AttachmentResponse])
async def list_attachments(
    message_id: str,
    identity: IdentityDep,
    db: SessionDep,
) -> list[dict[str, Any]]:
    attachments = AttachmentService(db).list_for_message(identity, message_id)
    return [_serialize_attachment(attachment) for attachment in attachments]
