# src/kraken_chat/api/v1/endpoints/profiles.py
"""Profile endpoints for the Kraken Chat API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from kraken_chat.core.identity import normalize_address
from kraken_chat.models import Profile
from kraken_chat.repositories.message_repo import MessageRepository
from kraken_chat.schemas.profile import ProfileResponse, ProfileUpsert
from kraken_chat.services import policy

from ..dependencies import IdentityDep, SessionDep

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/", response_model=list[ProfileResponse])
async def list_profiles(
    identity: IdentityDep,
    db: SessionDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, le=500),
) -> list[Profile]:
    """List public profiles."""
    profiles = MessageRepository(db).list_profiles(skip=skip, limit=limit)
    return [profile for profile in profiles if policy.can_read_profile(identity, profile)]


@router.get("/{address}", response_model=ProfileResponse)
async def get_profile(address: str, identity: IdentityDep, db: SessionDep) -> Profile:
    """Return one profile by address."""
    profile = MessageRepository(db).get_profile(normalize_address(address))
    if profile is None or not policy.can_read_profile(identity, profile):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.put("/{address}", response_model=ProfileResponse)
async def upsert_profile(
    address: str,
    payload: ProfileUpsert,
    identity: IdentityDep,
    db: SessionDep,
) -> Profile:
    """Create or update the caller's own profile."""
    address = normalize_address(address)
    policy.require(policy.can_write_profile(identity, address), "write", "profile")

    profile = db.get(Profile, address)
    if profile is None:
        profile = Profile(address=address)
        db.add(profile)

    for key, value in payload.model_dump().items():
        setattr(profile, key, value)

    db.commit()
    db.refresh(profile)
    return profile
