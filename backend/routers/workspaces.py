# routers/workspaces.py — Workspace lifecycle and membership management
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso
from models import Workspace, Member, Profile, User, WorkspaceRole
from policy import (
    Resource, Action, WorkspaceAccess, NOT_FOUND,
    require_workspace_access, member_workspace_ids,
)
from tenancy import TenancyService, MAX_WORKSPACE_NAME

router = APIRouter(prefix="/api/v1/workspaces", tags=["Workspaces"])

ASSIGNABLE_ROLES = {WorkspaceRole.ADMIN, WorkspaceRole.MEMBER, WorkspaceRole.VIEWER}


# --- Schemas ---

class WorkspaceOut(BaseModel):
    id: str
    name: str
    plan: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_WORKSPACE_NAME)


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=MAX_WORKSPACE_NAME)
    plan: Optional[str] = Field(None, min_length=1, max_length=50)


class MemberOut(BaseModel):
    user_id: str
    role: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    created_at: Optional[str] = None


class MemberAdd(BaseModel):
    email: Optional[EmailStr] = None
    user_id: Optional[str] = None
    role: str = "member"


class MemberRoleUpdate(BaseModel):
    role: str


# --- Helpers ---

def _workspace_to_out(ws: Workspace, role=None) -> WorkspaceOut:
    return WorkspaceOut(
        id=ws.id,
        name=ws.name,
        plan=ws.plan,
        role=enum_value(role),
        created_at=iso(ws.created_at),
        updated_at=iso(ws.updated_at),
    )


def _member_to_out(m: Member, profile: Optional[Profile]) -> MemberOut:
    return MemberOut(
        user_id=m.user_id,
        role=enum_value(m.role),
        email=profile.email if profile else None,
        full_name=profile.full_name if profile else None,
        created_at=iso(m.created_at),
    )


def _assignable_role(value: str) -> WorkspaceRole:
    try:
        role = WorkspaceRole(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid role: {value}")
    if role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=400, detail="The owner role cannot be assigned")
    return role


async def _get_member(db: AsyncSession, workspace_id: str, user_id: str) -> Member:
    stmt = select(Member).where(Member.workspace_id == workspace_id, Member.user_id == user_id)
    member = (await db.execute(stmt)).scalar_one_or_none()
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


# --- Workspaces ---

@router.post("", response_model=WorkspaceOut, status_code=201)
async def create_workspace(
    data: WorkspaceCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a workspace; the caller becomes its owner in the same transaction"""
    workspace = await TenancyService.create_workspace_with_owner(db, data.name, user.id)
    return _workspace_to_out(workspace, WorkspaceRole.OWNER)


@router.get("", response_model=List[WorkspaceOut])
async def list_workspaces(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List the workspaces the caller belongs to"""
    stmt = (
        select(Workspace, Member.role)
        .join(Member, Member.workspace_id == Workspace.id)
        .where(Member.user_id == user.id)
        .order_by(Workspace.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_workspace_to_out(ws, role) for ws, role in result.all()]


@router.get("/{workspace_id}", response_model=WorkspaceOut)
async def get_workspace(
    workspace_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = (
        select(Workspace, Member.role)
        .join(Member, Member.workspace_id == Workspace.id)
        .where(Workspace.id == workspace_id, Member.user_id == user.id)
    )
    row = (await db.execute(stmt)).first()
    if not row:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return _workspace_to_out(row[0], row[1])


@router.patch("/{workspace_id}", response_model=WorkspaceOut)
async def update_workspace(
    update: WorkspaceUpdate,
    access: WorkspaceAccess = Depends(require_workspace_access(Resource.WORKSPACE, Action.UPDATE)),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename a workspace or change its plan (owner/admin)"""
    workspace = await db.get(Workspace, access.workspace_id)
    if not workspace:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    if update.name is not None:
        name = update.name.strip()
        if not name:
            raise HTTPException(status_code=422, detail="Workspace name must not be empty")
        workspace.name = name
    if update.plan is not None:
        workspace.plan = update.plan

    db.add(workspace)
    await db.commit()
    await db.refresh(workspace)
    return _workspace_to_out(workspace, access.role)


@router.delete("/{workspace_id}", status_code=204)
async def delete_workspace(
    access: WorkspaceAccess = Depends(require_workspace_access(Resource.WORKSPACE, Action.DELETE)),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a workspace and everything it owns (owner/admin)"""
    await TenancyService.delete_workspace(db, access.workspace_id)


# --- Members ---

@router.get("/{workspace_id}/members", response_model=List[MemberOut])
async def list_members(
    workspace_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List members of a workspace; empty for callers outside it"""
    stmt = (
        select(Member, Profile)
        .outerjoin(Profile, Profile.id == Member.user_id)
        .where(
            Member.workspace_id == workspace_id,
            Member.workspace_id.in_(member_workspace_ids(user.id)),
        )
        .order_by(Member.created_at.asc())
    )
    result = await db.execute(stmt)
    return [_member_to_out(m, p) for m, p in result.all()]


@router.post("/{workspace_id}/members", response_model=MemberOut, status_code=201)
async def add_member(
    data: MemberAdd,
    access: WorkspaceAccess = Depends(require_workspace_access(Resource.MEMBER, Action.CREATE)),
    db: AsyncSession = Depends(get_db_session),
):
    """Add an existing identity to the workspace (owner/admin)"""
    role = _assignable_role(data.role)

    if data.user_id:
        stmt = select(User).where(User.id == data.user_id)
    elif data.email:
        stmt = select(User).where(User.email == data.email)
    else:
        raise HTTPException(status_code=400, detail="Either email or user_id is required")
    target = (await db.execute(stmt)).scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    existing = await db.execute(
        select(Member).where(Member.workspace_id == access.workspace_id, Member.user_id == target.id)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="User is already a member of this workspace")

    member = Member(workspace_id=access.workspace_id, user_id=target.id, role=role)
    db.add(member)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="User is already a member of this workspace")
    await db.refresh(member)

    profile = await db.get(Profile, target.id)
    return _member_to_out(member, profile)


@router.patch("/{workspace_id}/members/{user_id}", response_model=MemberOut)
async def update_member_role(
    user_id: str,
    data: MemberRoleUpdate,
    access: WorkspaceAccess = Depends(require_workspace_access(Resource.MEMBER, Action.UPDATE)),
    db: AsyncSession = Depends(get_db_session),
):
    """Change a member's role (owner/admin). The owner row is fixed."""
    role = _assignable_role(data.role)
    member = await _get_member(db, access.workspace_id, user_id)
    if member.role == WorkspaceRole.OWNER:
        raise HTTPException(status_code=400, detail="The workspace owner's role cannot be changed")

    member.role = role
    db.add(member)
    await db.commit()
    await db.refresh(member)

    profile = await db.get(Profile, user_id)
    return _member_to_out(member, profile)


@router.delete("/{workspace_id}/members/{user_id}", status_code=204)
async def remove_member(
    user_id: str,
    access: WorkspaceAccess = Depends(require_workspace_access(Resource.MEMBER, Action.DELETE)),
    db: AsyncSession = Depends(get_db_session),
):
    """Revoke a membership (owner/admin). Takes effect on the next request."""
    member = await _get_member(db, access.workspace_id, user_id)
    if member.role == WorkspaceRole.OWNER:
        raise HTTPException(status_code=400, detail="The workspace owner cannot be removed")
    await db.delete(member)
    await db.commit()
