"""Profile-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class ProfileUpsert(BaseModel):
    """Schema for creating or updating the caller's own profile."""

    username: str = Field(..., min_length=1, max_length=64)
    bio: str = Field("", max_length=500)
    avatar_url: str = ""


class ProfileResponse(BaseModel):
    """Public profile information."""

    address: str
    username: str
    bio: str
    avatar_url: str

    model_config = ConfigDict(from_attributes=True)
