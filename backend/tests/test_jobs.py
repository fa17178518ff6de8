# tests/test_jobs.py — Job status machine tests
import pytest
from httpx import AsyncClient

from models import JobStatus
from routers.jobs import can_transition
from tests.conftest import get_auth_headers


@pytest.mark.parametrize("current,target,allowed", [
    (JobStatus.PENDING, JobStatus.RUNNING, True),
    (JobStatus.PENDING, JobStatus.ERROR, True),
    (JobStatus.PENDING, JobStatus.DONE, False),
    (JobStatus.RUNNING, JobStatus.DONE, True),
    (JobStatus.RUNNING, JobStatus.ERROR, True),
    (JobStatus.RUNNING, JobStatus.PENDING, False),
    (JobStatus.DONE, JobStatus.RUNNING, False),
    (JobStatus.ERROR, JobStatus.PENDING, False),
])
def test_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


async def _job(client, user, workspace_id, job_type="scan"):
    return await client.post(
        "/api/v1/jobs", headers=get_auth_headers(user),
        json={"workspace_id": workspace_id, "type": job_type},
    )


@pytest.mark.asyncio
class TestJobs:
    async def test_create_pending(self, client: AsyncClient, workspace, owner_user):
        res = await _job(client, owner_user, workspace.id)
        assert res.status_code == 201
        data = res.json()
        assert data["status"] == "pending"
        assert data["started_at"] is None
        assert data["finished_at"] is None

    async def test_lifecycle_stamps_times(self, client: AsyncClient, workspace, owner_user):
        headers = get_auth_headers(owner_user)
        job_id = (await _job(client, owner_user, workspace.id, "reindex")).json()["id"]

        res = await client.patch(f"/api/v1/jobs/{job_id}", headers=headers, json={"status": "running"})
        assert res.status_code == 200
        assert res.json()["started_at"] is not None

        res = await client.patch(
            f"/api/v1/jobs/{job_id}", headers=headers, json={"status": "done", "log": "indexed 12 signals"},
        )
        assert res.json()["status"] == "done"
        assert res.json()["finished_at"] is not None
        assert res.json()["log"] == "indexed 12 signals"

    async def test_invalid_transition(self, client: AsyncClient, workspace, owner_user):
        job_id = (await _job(client, owner_user, workspace.id)).json()["id"]
        res = await client.patch(
            f"/api/v1/jobs/{job_id}", headers=get_auth_headers(owner_user), json={"status": "done"},
        )
        assert res.status_code == 409

    async def test_list_filters(self, client: AsyncClient, workspace, owner_user):
        await _job(client, owner_user, workspace.id, "scan")
        await _job(client, owner_user, workspace.id, "reindex")
        res = await client.get(
            f"/api/v1/jobs?workspace_id={workspace.id}&type=reindex", headers=get_auth_headers(owner_user),
        )
        assert res.json()["total"] == 1
        assert res.json()["items"][0]["type"] == "reindex"

    async def test_viewer_cannot_create(self, client: AsyncClient, team, viewer_user):
        assert (await _job(client, viewer_user, team.id)).status_code == 403

    async def test_viewer_reads_but_cannot_change(self, client: AsyncClient, team, owner_user, viewer_user):
        job_id = (await _job(client, owner_user, team.id)).json()["id"]
        headers = get_auth_headers(viewer_user)

        res = await client.get(f"/api/v1/jobs?workspace_id={team.id}", headers=headers)
        assert res.status_code == 200
        assert [j["id"] for j in res.json()["items"]] == [job_id]
        res = await client.get(f"/api/v1/jobs/{job_id}", headers=headers)
        assert res.status_code == 200
        assert res.json()["status"] == "pending"

        res = await client.patch(f"/api/v1/jobs/{job_id}", headers=headers, json={"status": "running"})
        assert res.status_code == 403
        assert (await client.delete(f"/api/v1/jobs/{job_id}", headers=headers)).status_code == 403

    async def test_invalid_type(self, client: AsyncClient, workspace, owner_user):
        assert (await _job(client, owner_user, workspace.id, "crawl")).status_code == 422
