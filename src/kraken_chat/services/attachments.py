"""Attachment metadata for files kept in the shared storage bucket."""

from __future__ import annotations

from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.orm import Session

from kraken_chat.core.settings import settings
from kraken_chat.errors import ResourceNotFound
from kraken_chat.models import Attachment, Message
from kraken_chat.schemas.attachment import AttachmentCreate
from kraken_chat.services import policy


def public_url(bucket: str, object_path: str) -> str:
    """Return the public download URL of an object in a public bucket."""
    base = settings.storage_public_base_url.rstrip("/")
    return f"{base}/{quote(bucket)}/{quote(object_path)}"


class AttachmentService:
    """Records and lists attachments, gated by conversation membership."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _load_message(self, identity: str, message_id: str) -> Message:
        """Return the message if its conversation includes ``identity``.

        Messages outside the caller's conversations look absent.
        """
        message = self.db.get(Message, message_id)
        if message is None or not policy.can_access_message_attachments(identity, message):
            raise ResourceNotFound(f"Message {message_id} not found")
        return message

    def add(self, identity: str, message_id: str, data: AttachmentCreate) -> Attachment:
        """Attach an uploaded object to a message in one of the caller's conversations."""
        message = self._load_message(identity, message_id)
        bucket = settings.attachments_bucket
        policy.require(
            policy.can_access_storage_object(identity, bucket, "insert", message),
            "insert",
            f"object in bucket {bucket}",
        )

        object_path = data.object_path or f"{message.id}/{data.file_name}"
        if not object_path.startswith(f"{message.id}/"):
            raise ValueError("Object path must live under the message's folder")

        attachment = Attachment(
            message_id=message.id,
            bucket=bucket,
            object_path=object_path,
            file_name=data.file_name,
            content_type=data.content_type,
            size=data.size,
        )
        self.db.add(attachment)
        self.db.commit()
        self.db.refresh(attachment)
        return attachment

    def list_for_message(self, identity: str, message_id: str) -> list[Attachment]:
        message = self._load_message(identity, message_id)
        stmt = (
            select(Attachment)
            .where(Attachment.message_id == message.id)
            .order_by(Attachment.id)
        )
        return list(self.db.execute(stmt).scalars())
