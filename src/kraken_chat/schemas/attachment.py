"""Attachment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class AttachmentCreate(BaseModel):
    """Metadata for a file already uploaded to the attachments bucket."""

    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = "application/octet-stream"
    size: int = Field(0, ge=0)
    object_path: str | None = Field(
        None,
        description="Object key inside the bucket; defaults to '<message_id>/<file_name>'",
    )


class AttachmentResponse(BaseModel):
    """Attachment metadata with its public download URL."""

    id: int
    message_id: str
    bucket: str
    object_path: str
    file_name: str
    content_type: str
    size: int
    created_at: datetime
    public_url: str
