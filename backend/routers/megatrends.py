# routers/megatrends.py — Megatrends grouping trends
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso, paginate
from models import Megatrend, Trend, TrendMegatrend
from policy import Resource, Action, require_access, visible, load_visible, NOT_FOUND
from tenancy import TenancyService

router = APIRouter(prefix="/api/v1/megatrends", tags=["Megatrends"])

PAGE_SIZE = 12


class MegatrendCreate(BaseModel):
    workspace_id: str
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=1200)
    trend_ids: List[str] = Field(default_factory=list)


class MegatrendUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=1200)


class TrendLinks(BaseModel):
    trend_ids: List[str]


def _megatrend_to_out(m: Megatrend) -> dict:
    return {
        "id": m.id,
        "workspace_id": m.workspace_id,
        "title": m.title,
        "description": m.description,
        "created_at": iso(m.created_at),
        "updated_at": iso(m.updated_at),
    }


async def _megatrend_detail(db: AsyncSession, megatrend: Megatrend) -> dict:
    result = await db.execute(
        select(Trend)
        .join(TrendMegatrend, TrendMegatrend.trend_id == Trend.id)
        .where(TrendMegatrend.megatrend_id == megatrend.id)
        .order_by(Trend.created_at.desc())
    )
    out = _megatrend_to_out(megatrend)
    out["trends"] = [
        {
            "id": t.id,
            "title": t.title,
            "impact": enum_value(t.impact),
            "certainty": enum_value(t.certainty),
        }
        for t in result.scalars().all()
    ]
    return out


async def _writable_megatrend(db: AsyncSession, megatrend_id: str, user: CurrentUser, resource: Resource, action: Action) -> Megatrend:
    megatrend = await load_visible(db, Megatrend, megatrend_id, user.id)
    await require_access(db, user.id, megatrend.workspace_id, resource, action)
    return megatrend


@router.get("")
async def list_megatrends(
    workspace_id: str = Query(...),
    page: int = Query(1, ge=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = select(Megatrend).where(Megatrend.workspace_id == workspace_id)
    stmt = visible(stmt, Megatrend, user.id).order_by(Megatrend.created_at.desc(), Megatrend.id)
    return await paginate(db, stmt, page, PAGE_SIZE, _megatrend_to_out)


@router.get("/{megatrend_id}")
async def get_megatrend(
    megatrend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await load_visible(db, Megatrend, megatrend_id, user.id)
    return await _megatrend_detail(db, megatrend)


@router.post("", status_code=201)
async def create_megatrend(
    data: MegatrendCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await require_access(db, user.id, data.workspace_id, Resource.MEGATREND, Action.CREATE)

    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title must not be empty")
    trend_ids = await TenancyService.same_workspace_ids(db, Trend, data.trend_ids, data.workspace_id)

    megatrend = Megatrend(workspace_id=data.workspace_id, title=title, description=data.description)
    db.add(megatrend)
    await db.flush()
    for trend_id in trend_ids:
        db.add(TrendMegatrend(trend_id=trend_id, megatrend_id=megatrend.id))
    await db.commit()
    await db.refresh(megatrend)
    return await _megatrend_detail(db, megatrend)


@router.patch("/{megatrend_id}")
async def update_megatrend(
    megatrend_id: str,
    update: MegatrendUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await _writable_megatrend(db, megatrend_id, user, Resource.MEGATREND, Action.UPDATE)

    changes = update.model_dump(exclude_unset=True)
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=422, detail="Title must not be empty")
        changes["title"] = title

    for field, value in changes.items():
        setattr(megatrend, field, value)

    db.add(megatrend)
    await db.commit()
    await db.refresh(megatrend)
    return _megatrend_to_out(megatrend)


@router.delete("/{megatrend_id}", status_code=204)
async def delete_megatrend(
    megatrend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await _writable_megatrend(db, megatrend_id, user, Resource.MEGATREND, Action.DELETE)
    await TenancyService.delete_megatrend(db, megatrend)


# --- Trend links ---

@router.put("/{megatrend_id}/trends")
async def replace_trends(
    megatrend_id: str,
    data: TrendLinks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await _writable_megatrend(db, megatrend_id, user, Resource.TREND_MEGATREND, Action.UPDATE)
    trend_ids = await TenancyService.replace_megatrend_trends(db, megatrend, data.trend_ids)
    return {"megatrend_id": megatrend.id, "trend_ids": trend_ids}


@router.post("/{megatrend_id}/trends/{trend_id}", status_code=201)
async def link_trend(
    megatrend_id: str,
    trend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await _writable_megatrend(db, megatrend_id, user, Resource.TREND_MEGATREND, Action.CREATE)

    stmt = select(Trend.id).where(Trend.id == trend_id, Trend.workspace_id == megatrend.workspace_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    if not await db.get(TrendMegatrend, (trend_id, megatrend.id)):
        db.add(TrendMegatrend(trend_id=trend_id, megatrend_id=megatrend.id))
        try:
            await db.commit()
        except IntegrityError:
            # Linked concurrently; the pair already exists
            await db.rollback()
    return {"trend_id": trend_id, "megatrend_id": megatrend_id}


@router.delete("/{megatrend_id}/trends/{trend_id}", status_code=204)
async def unlink_trend(
    megatrend_id: str,
    trend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    megatrend = await _writable_megatrend(db, megatrend_id, user, Resource.TREND_MEGATREND, Action.DELETE)
    result = await db.execute(
        delete(TrendMegatrend).where(
            TrendMegatrend.megatrend_id == megatrend.id,
            TrendMegatrend.trend_id == trend_id,
        )
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Link not found")
    await db.commit()
