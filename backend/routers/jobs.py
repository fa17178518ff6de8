# routers/jobs.py — Scan/reindex job records
# No executor runs these; clients (or an external worker) move a job through
# its status machine by PATCHing it.
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso, paginate
from models import Job, JobType, JobStatus, utcnow
from policy import Resource, Action, require_access, visible, load_visible

router = APIRouter(prefix="/api/v1/jobs", tags=["Jobs"])

PAGE_SIZE = 50

TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.ERROR},
    JobStatus.RUNNING: {JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: set(),
    JobStatus.ERROR: set(),
}


class JobCreate(BaseModel):
    workspace_id: str
    type: JobType


class JobUpdate(BaseModel):
    status: Optional[JobStatus] = None
    log: Optional[str] = Field(None, max_length=20000)


def _job_to_out(j: Job) -> dict:
    return {
        "id": j.id,
        "workspace_id": j.workspace_id,
        "type": enum_value(j.type),
        "status": enum_value(j.status),
        "started_at": iso(j.started_at),
        "finished_at": iso(j.finished_at),
        "log": j.log,
        "created_at": iso(j.created_at),
    }


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in TRANSITIONS[JobStatus(current)]


@router.get("")
async def list_jobs(
    workspace_id: str = Query(...),
    page: int = Query(1, ge=1),
    type: Optional[JobType] = None,
    status: Optional[JobStatus] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = select(Job).where(Job.workspace_id == workspace_id)
    if type:
        stmt = stmt.where(Job.type == type)
    if status:
        stmt = stmt.where(Job.status == status)
    stmt = visible(stmt, Job, user.id).order_by(Job.created_at.desc(), Job.id)
    return await paginate(db, stmt, page, PAGE_SIZE, _job_to_out)


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _job_to_out(await load_visible(db, Job, job_id, user.id))


@router.post("", status_code=201)
async def create_job(
    data: JobCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Record a pending job"""
    await require_access(db, user.id, data.workspace_id, Resource.JOB, Action.CREATE)
    job = Job(workspace_id=data.workspace_id, type=data.type, status=JobStatus.PENDING)
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return _job_to_out(job)


@router.patch("/{job_id}")
async def update_job(
    job_id: str,
    update: JobUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Advance a job's status and/or replace its log"""
    job = await load_visible(db, Job, job_id, user.id)
    await require_access(db, user.id, job.workspace_id, Resource.JOB, Action.UPDATE)

    if update.status is not None and update.status != job.status:
        if not can_transition(job.status, update.status):
            raise HTTPException(
                status_code=409,
                detail=f"Cannot move job from {enum_value(job.status)} to {update.status.value}",
            )
        job.status = update.status
        if update.status == JobStatus.RUNNING:
            job.started_at = utcnow()
        else:
            job.finished_at = utcnow()
    if update.log is not None:
        job.log = update.log

    db.add(job)
    await db.commit()
    await db.refresh(job)
    return _job_to_out(job)


@router.delete("/{job_id}", status_code=204)
async def delete_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    job = await load_visible(db, Job, job_id, user.id)
    await require_access(db, user.id, job.workspace_id, Resource.JOB, Action.DELETE)
    await db.delete(job)
    await db.commit()
