# policy.py — Workspace authorization model
# Every read and write in the API goes through this module:
# - is_member / role_of answer "what is this identity in this workspace"
# - evaluate() is the pure (role, resource, action) -> allow/deny table
# - authorize() / require_access() combine the two for mutation paths
# - visible() folds the membership predicate into SELECTs so rows from
#   foreign workspaces are never loaded, counted or returned
#
# The calling identity is always passed in explicitly.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Member, WorkspaceRole

logger = logging.getLogger("foresight.policy")


class Resource(str, Enum):
    WORKSPACE = "workspace"
    MEMBER = "member"
    PROFILE = "profile"
    SOURCE = "source"
    SIGNAL = "signal"
    TREND = "trend"
    MEGATREND = "megatrend"
    SIGNAL_TREND = "signal_trend"
    TREND_MEGATREND = "trend_megatrend"
    JOB = "job"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


ANY_ROLE = frozenset(WorkspaceRole)
MANAGERS = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN})
CONTRIBUTORS = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN, WorkspaceRole.MEMBER})

# resource -> (roles allowed to read, roles allowed to write)
# Join tables are checked against the role held on the parent's workspace.
WORKSPACE_POLICY = {
    Resource.WORKSPACE: (ANY_ROLE, MANAGERS),
    Resource.MEMBER: (ANY_ROLE, MANAGERS),
    Resource.SOURCE: (ANY_ROLE, CONTRIBUTORS),
    Resource.SIGNAL: (ANY_ROLE, CONTRIBUTORS),
    Resource.TREND: (ANY_ROLE, CONTRIBUTORS),
    Resource.MEGATREND: (ANY_ROLE, CONTRIBUTORS),
    Resource.SIGNAL_TREND: (ANY_ROLE, CONTRIBUTORS),
    Resource.TREND_MEGATREND: (ANY_ROLE, CONTRIBUTORS),
    Resource.JOB: (ANY_ROLE, CONTRIBUTORS),
}

NOT_FOUND = "Not found"


def evaluate(role: Optional[WorkspaceRole], resource: Resource, action: Action) -> bool:
    """Pure policy decision for a workspace-scoped resource.

    ``role`` is the caller's role in the row's workspace, or None when the
    caller holds no membership there. Non-members are denied everything.
    """
    if role is None:
        return False
    if resource not in WORKSPACE_POLICY:
        raise ValueError(f"{resource.value} is not a workspace-scoped resource")
    read_roles, write_roles = WORKSPACE_POLICY[resource]
    allowed = read_roles if action == Action.READ else write_roles
    return WorkspaceRole(role) in allowed


def authorize_profile(identity_id: Optional[str], profile_id: str, action: Action) -> bool:
    """Profiles are globally readable; only their owner may write them."""
    if not identity_id:
        return False
    if action == Action.READ:
        return True
    return identity_id == profile_id


# ============================================================
# MEMBERSHIP PREDICATES
# ============================================================

async def role_of(db: AsyncSession, identity_id: str, workspace_id: str) -> Optional[WorkspaceRole]:
    stmt = select(Member.role).where(
        Member.workspace_id == workspace_id,
        Member.user_id == identity_id,
    )
    result = await db.execute(stmt)
    role = result.scalar_one_or_none()
    return WorkspaceRole(role) if role is not None else None


async def is_member(db: AsyncSession, identity_id: str, workspace_id: str) -> bool:
    return await role_of(db, identity_id, workspace_id) is not None


async def authorize(
    db: AsyncSession,
    identity_id: str,
    workspace_id: str,
    resource: Resource,
    action: Action,
) -> bool:
    role = await role_of(db, identity_id, workspace_id)
    return evaluate(role, resource, action)


async def require_access(
    db: AsyncSession,
    identity_id: str,
    workspace_id: str,
    resource: Resource,
    action: Action,
) -> WorkspaceRole:
    """Raise unless the identity may perform ``action`` in the workspace.

    Non-members get the same 404 as a missing row so that the existence of
    the workspace is not disclosed. Members whose role is too low get 403.
    """
    role = await role_of(db, identity_id, workspace_id)
    if role is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    if not evaluate(role, resource, action):
        logger.info(
            f"Denied {action.value} on {resource.value} for {identity_id} "
            f"(role={role.value}) in workspace {workspace_id}"
        )
        raise HTTPException(status_code=403, detail="Insufficient workspace role")
    return role


# ============================================================
# QUERY COMPOSITION
# ============================================================

def member_workspace_ids(identity_id: str):
    """Subquery of the workspace ids the identity belongs to."""
    return select(Member.workspace_id).where(Member.user_id == identity_id)


def visible(stmt, model: Type, identity_id: str):
    """Restrict a SELECT over a workspace-scoped model to the caller's workspaces."""
    return stmt.where(model.workspace_id.in_(member_workspace_ids(identity_id)))


async def load_visible(db: AsyncSession, model: Type, row_id: str, identity_id: str):
    """Fetch one workspace-scoped row by id or 404 if the caller cannot see it."""
    stmt = visible(select(model).where(model.id == row_id), model, identity_id)
    result = await db.execute(stmt)
    row = result.scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return row


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

@dataclass
class WorkspaceAccess:
    user: CurrentUser
    workspace_id: str
    role: WorkspaceRole


def require_workspace_access(resource: Resource, action: Action):
    """Dependency factory for routes carrying ``{workspace_id}`` in the path"""
    async def _check(
        workspace_id: str,
        user: CurrentUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_session),
    ) -> WorkspaceAccess:
        role = await require_access(db, user.id, workspace_id, resource, action)
        return WorkspaceAccess(user=user, workspace_id=workspace_id, role=role)
    return _check
