# routers/profiles.py — Public profile lookup and self-service updates
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import iso
from models import Profile
from policy import Action, authorize_profile, NOT_FOUND

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


class ProfileOut(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    avatar_url: Optional[str] = Field(None, max_length=2000)


def _profile_to_out(p: Profile) -> ProfileOut:
    return ProfileOut(
        id=p.id,
        email=p.email,
        full_name=p.full_name,
        avatar_url=p.avatar_url,
        created_at=iso(p.created_at),
        updated_at=iso(p.updated_at),
    )


async def _load_profile(db: AsyncSession, profile_id: str, user: CurrentUser, action: Action) -> Profile:
    if not authorize_profile(user.id, profile_id, action):
        raise HTTPException(status_code=403, detail="Profiles can only be edited by their owner")
    profile = await db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return profile


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _profile_to_out(await _load_profile(db, user.id, user, Action.READ))


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(
    update: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update the caller's own profile; blank names are cleared"""
    profile = await _load_profile(db, user.id, user, Action.UPDATE)

    if update.full_name is not None:
        profile.full_name = update.full_name.strip() or None
    if update.avatar_url is not None:
        profile.avatar_url = update.avatar_url.strip() or None

    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return _profile_to_out(profile)


@router.get("/{profile_id}", response_model=ProfileOut)
async def get_profile(
    profile_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Any authenticated identity may read any profile"""
    return _profile_to_out(await _load_profile(db, profile_id, user, Action.READ))
