# routers/sources.py — Monitored sources (domains, feeds, alert terms)
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso, paginate
from models import Source, SourceType
from policy import Resource, Action, require_access, visible, load_visible
from tenancy import TenancyService

router = APIRouter(prefix="/api/v1/sources", tags=["Sources"])

PAGE_SIZE = 50


class SourceCreate(BaseModel):
    workspace_id: str
    type: SourceType = SourceType.MANUAL
    url_or_term: str = Field(..., min_length=1, max_length=2000)
    name: Optional[str] = Field(None, max_length=200)
    active: bool = True
    crawl_interval_minutes: int = Field(180, ge=1)


class SourceUpdate(BaseModel):
    type: Optional[SourceType] = None
    url_or_term: Optional[str] = Field(None, min_length=1, max_length=2000)
    name: Optional[str] = Field(None, max_length=200)
    active: Optional[bool] = None
    crawl_interval_minutes: Optional[int] = Field(None, ge=1)


def _source_to_out(s: Source) -> dict:
    return {
        "id": s.id,
        "workspace_id": s.workspace_id,
        "type": enum_value(s.type),
        "url_or_term": s.url_or_term,
        "name": s.name,
        "active": s.active,
        "crawl_interval_minutes": s.crawl_interval_minutes,
        "last_crawled_at": iso(s.last_crawled_at),
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }


@router.get("")
async def list_sources(
    workspace_id: str = Query(...),
    page: int = Query(1, ge=1),
    type: Optional[SourceType] = None,
    active: Optional[bool] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = select(Source).where(Source.workspace_id == workspace_id)
    if type:
        stmt = stmt.where(Source.type == type)
    if active is not None:
        stmt = stmt.where(Source.active == active)
    stmt = visible(stmt, Source, user.id).order_by(Source.created_at.desc(), Source.id)
    return await paginate(db, stmt, page, PAGE_SIZE, _source_to_out)


@router.get("/{source_id}")
async def get_source(
    source_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _source_to_out(await load_visible(db, Source, source_id, user.id))


@router.post("", status_code=201)
async def create_source(
    data: SourceCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await require_access(db, user.id, data.workspace_id, Resource.SOURCE, Action.CREATE)
    source = Source(
        workspace_id=data.workspace_id,
        type=data.type,
        url_or_term=data.url_or_term.strip(),
        name=data.name,
        active=data.active,
        crawl_interval_minutes=data.crawl_interval_minutes,
    )
    db.add(source)
    await db.commit()
    await db.refresh(source)
    return _source_to_out(source)


@router.patch("/{source_id}")
async def update_source(
    source_id: str,
    update: SourceUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    source = await load_visible(db, Source, source_id, user.id)
    await require_access(db, user.id, source.workspace_id, Resource.SOURCE, Action.UPDATE)

    changes = update.model_dump(exclude_unset=True)
    for field in ("type", "url_or_term", "active", "crawl_interval_minutes"):
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")
    for field, value in changes.items():
        setattr(source, field, value)

    db.add(source)
    await db.commit()
    await db.refresh(source)
    return _source_to_out(source)


@router.delete("/{source_id}", status_code=204)
async def delete_source(
    source_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a source; signals captured from it keep their data"""
    source = await load_visible(db, Source, source_id, user.id)
    await require_access(db, user.id, source.workspace_id, Resource.SOURCE, Action.DELETE)
    await TenancyService.delete_source(db, source)
