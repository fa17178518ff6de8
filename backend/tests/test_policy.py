# tests/test_policy.py — Workspace authorization model tests
import pytest
from fastapi import HTTPException
from sqlalchemy import select

from models import Signal, WorkspaceRole
from policy import (
    Resource, Action, evaluate, authorize_profile, role_of, is_member,
    authorize, require_access, visible, load_visible, WORKSPACE_POLICY,
)

WRITES = (Action.CREATE, Action.UPDATE, Action.DELETE)
CONTENT = (
    Resource.SOURCE, Resource.SIGNAL, Resource.TREND, Resource.MEGATREND,
    Resource.SIGNAL_TREND, Resource.TREND_MEGATREND, Resource.JOB,
)
MANAGEMENT = (Resource.WORKSPACE, Resource.MEMBER)


class TestEvaluate:
    @pytest.mark.parametrize("resource", list(WORKSPACE_POLICY))
    @pytest.mark.parametrize("action", list(Action))
    def test_non_member_denied_everything(self, resource, action):
        assert evaluate(None, resource, action) is False

    @pytest.mark.parametrize("resource", list(WORKSPACE_POLICY))
    @pytest.mark.parametrize("role", list(WorkspaceRole))
    def test_every_role_reads(self, resource, role):
        assert evaluate(role, resource, Action.READ) is True

    @pytest.mark.parametrize("resource", CONTENT)
    @pytest.mark.parametrize("action", WRITES)
    def test_content_writes(self, resource, action):
        assert evaluate(WorkspaceRole.OWNER, resource, action)
        assert evaluate(WorkspaceRole.ADMIN, resource, action)
        assert evaluate(WorkspaceRole.MEMBER, resource, action)
        assert not evaluate(WorkspaceRole.VIEWER, resource, action)

    @pytest.mark.parametrize("resource", MANAGEMENT)
    @pytest.mark.parametrize("action", WRITES)
    def test_management_writes(self, resource, action):
        assert evaluate(WorkspaceRole.OWNER, resource, action)
        assert evaluate(WorkspaceRole.ADMIN, resource, action)
        assert not evaluate(WorkspaceRole.MEMBER, resource, action)
        assert not evaluate(WorkspaceRole.VIEWER, resource, action)

    def test_accepts_raw_role_strings(self):
        assert evaluate("member", Resource.SIGNAL, Action.CREATE)
        assert not evaluate("viewer", Resource.SIGNAL, Action.CREATE)

    def test_profile_is_not_workspace_scoped(self):
        with pytest.raises(ValueError):
            evaluate(WorkspaceRole.OWNER, Resource.PROFILE, Action.READ)


class TestProfilePolicy:
    def test_any_identity_reads(self):
        assert authorize_profile("a", "b", Action.READ)

    def test_only_self_writes(self):
        assert authorize_profile("a", "a", Action.UPDATE)
        assert not authorize_profile("a", "b", Action.UPDATE)

    def test_anonymous_denied(self):
        assert not authorize_profile(None, "b", Action.READ)


@pytest.mark.asyncio
class TestMembershipPredicates:
    async def test_role_of(self, db_session, team, owner_user, viewer_user, outsider_user):
        assert await role_of(db_session, owner_user.id, team.id) == WorkspaceRole.OWNER
        assert await role_of(db_session, viewer_user.id, team.id) == WorkspaceRole.VIEWER
        assert await role_of(db_session, outsider_user.id, team.id) is None

    async def test_is_member(self, db_session, team, member_user, outsider_user):
        assert await is_member(db_session, member_user.id, team.id)
        assert not await is_member(db_session, outsider_user.id, team.id)

    async def test_authorize(self, db_session, team, member_user, viewer_user):
        assert await authorize(db_session, member_user.id, team.id, Resource.SIGNAL, Action.CREATE)
        assert not await authorize(db_session, viewer_user.id, team.id, Resource.SIGNAL, Action.CREATE)

    async def test_require_access_hides_workspace_from_outsiders(self, db_session, team, outsider_user):
        with pytest.raises(HTTPException) as exc:
            await require_access(db_session, outsider_user.id, team.id, Resource.SIGNAL, Action.READ)
        assert exc.value.status_code == 404

    async def test_require_access_forbids_low_role(self, db_session, team, viewer_user):
        with pytest.raises(HTTPException) as exc:
            await require_access(db_session, viewer_user.id, team.id, Resource.TREND, Action.UPDATE)
        assert exc.value.status_code == 403

    async def test_visible_filters_foreign_rows(self, db_session, workspace, owner_user, outsider_user):
        signal = Signal(workspace_id=workspace.id, title="Scoped")
        db_session.add(signal)
        await db_session.commit()

        stmt = select(Signal).where(Signal.workspace_id == workspace.id)
        mine = (await db_session.execute(visible(stmt, Signal, owner_user.id))).scalars().all()
        theirs = (await db_session.execute(visible(stmt, Signal, outsider_user.id))).scalars().all()
        assert [s.id for s in mine] == [signal.id]
        assert theirs == []

        with pytest.raises(HTTPException) as exc:
            await load_visible(db_session, Signal, signal.id, outsider_user.id)
        assert exc.value.status_code == 404
