# routers/trends.py — Trends and their signal links
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso, paginate
from models import Trend, Signal, Megatrend, SignalTrend, TrendMegatrend, Impact, Certainty
from policy import Resource, Action, require_access, visible, load_visible, is_member, NOT_FOUND
from tenancy import TenancyService

router = APIRouter(prefix="/api/v1/trends", tags=["Trends"])

PAGE_SIZE = 12


# --- Schemas ---

class TrendCreate(BaseModel):
    workspace_id: str
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=1800)
    impact: Impact = Impact.MEDIUM
    certainty: Certainty = Certainty.UNCERTAIN
    owner_id: Optional[str] = None
    signal_ids: List[str] = Field(default_factory=list)


class TrendUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=1800)
    impact: Optional[Impact] = None
    certainty: Optional[Certainty] = None
    owner_id: Optional[str] = None


class SignalLinks(BaseModel):
    signal_ids: List[str]


REQUIRED_FIELDS = ("title", "impact", "certainty")


# --- Helpers ---

def _trend_to_out(t: Trend) -> dict:
    return {
        "id": t.id,
        "workspace_id": t.workspace_id,
        "title": t.title,
        "description": t.description,
        "impact": enum_value(t.impact),
        "certainty": enum_value(t.certainty),
        "owner_id": t.owner_id,
        "created_at": iso(t.created_at),
        "updated_at": iso(t.updated_at),
    }


async def _signal_counts(db: AsyncSession, trend_ids: List[str]) -> dict:
    if not trend_ids:
        return {}
    stmt = (
        select(SignalTrend.trend_id, func.count())
        .where(SignalTrend.trend_id.in_(trend_ids))
        .group_by(SignalTrend.trend_id)
    )
    return {trend_id: count for trend_id, count in (await db.execute(stmt)).all()}


async def _trend_detail(db: AsyncSession, trend: Trend) -> dict:
    signals = await db.execute(
        select(Signal)
        .join(SignalTrend, SignalTrend.signal_id == Signal.id)
        .where(SignalTrend.trend_id == trend.id)
        .order_by(Signal.created_at.desc())
    )
    megatrends = await db.execute(
        select(Megatrend)
        .join(TrendMegatrend, TrendMegatrend.megatrend_id == Megatrend.id)
        .where(TrendMegatrend.trend_id == trend.id)
        .order_by(Megatrend.title)
    )
    out = _trend_to_out(trend)
    out["signals"] = [
        {
            "id": s.id,
            "title": s.title,
            "summary": s.summary,
            "url": s.url,
            "relevance": s.relevance,
            "horizon": enum_value(s.horizon),
            "certainty": enum_value(s.certainty),
        }
        for s in signals.scalars().all()
    ]
    out["megatrends"] = [{"id": m.id, "title": m.title} for m in megatrends.scalars().all()]
    out["signal_count"] = len(out["signals"])
    return out


async def _check_owner(db: AsyncSession, workspace_id: str, owner_id: Optional[str]) -> None:
    if owner_id is not None and not await is_member(db, owner_id, workspace_id):
        raise HTTPException(status_code=422, detail="owner_id must reference a member of the workspace")


async def _writable_trend(db: AsyncSession, trend_id: str, user: CurrentUser, resource: Resource, action: Action) -> Trend:
    trend = await load_visible(db, Trend, trend_id, user.id)
    await require_access(db, user.id, trend.workspace_id, resource, action)
    return trend


# --- Endpoints ---

@router.get("")
async def list_trends(
    workspace_id: str = Query(...),
    page: int = Query(1, ge=1),
    impact: Optional[Impact] = None,
    certainty: Optional[Certainty] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List a workspace's trends, newest first, with linked-signal counts"""
    stmt = select(Trend).where(Trend.workspace_id == workspace_id)
    if impact:
        stmt = stmt.where(Trend.impact == impact)
    if certainty:
        stmt = stmt.where(Trend.certainty == certainty)
    stmt = visible(stmt, Trend, user.id).order_by(Trend.created_at.desc(), Trend.id)

    result = await paginate(db, stmt, page, PAGE_SIZE, _trend_to_out)
    counts = await _signal_counts(db, [t["id"] for t in result["items"]])
    for item in result["items"]:
        item["signal_count"] = counts.get(item["id"], 0)
    return result


@router.get("/{trend_id}")
async def get_trend(
    trend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    trend = await load_visible(db, Trend, trend_id, user.id)
    return await _trend_detail(db, trend)


@router.post("", status_code=201)
async def create_trend(
    data: TrendCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a trend, optionally linking an initial set of signals"""
    await require_access(db, user.id, data.workspace_id, Resource.TREND, Action.CREATE)

    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title must not be empty")

    await _check_owner(db, data.workspace_id, data.owner_id)
    signal_ids = await TenancyService.same_workspace_ids(db, Signal, data.signal_ids, data.workspace_id)

    trend = Trend(
        workspace_id=data.workspace_id,
        title=title,
        description=data.description,
        impact=data.impact,
        certainty=data.certainty,
        owner_id=data.owner_id or user.id,
    )
    db.add(trend)
    await db.flush()
    for signal_id in signal_ids:
        db.add(SignalTrend(signal_id=signal_id, trend_id=trend.id))
    await db.commit()
    await db.refresh(trend)
    return await _trend_detail(db, trend)


@router.patch("/{trend_id}")
async def update_trend(
    trend_id: str,
    update: TrendUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    trend = await _writable_trend(db, trend_id, user, Resource.TREND, Action.UPDATE)

    changes = update.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")
    if "title" in changes:
        changes["title"] = changes["title"].strip()
        if not changes["title"]:
            raise HTTPException(status_code=422, detail="Title must not be empty")
    if "owner_id" in changes:
        await _check_owner(db, trend.workspace_id, changes["owner_id"])

    for field, value in changes.items():
        setattr(trend, field, value)

    db.add(trend)
    await db.commit()
    await db.refresh(trend)
    return _trend_to_out(trend)


@router.delete("/{trend_id}", status_code=204)
async def delete_trend(
    trend_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a trend along with its signal and megatrend links"""
    trend = await _writable_trend(db, trend_id, user, Resource.TREND, Action.DELETE)
    await TenancyService.delete_trend(db, trend)


# --- Signal links ---

@router.put("/{trend_id}/signals")
async def replace_signals(
    trend_id: str,
    data: SignalLinks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Replace the trend's linked signal set"""
    trend = await _writable_trend(db, trend_id, user, Resource.SIGNAL_TREND, Action.UPDATE)
    signal_ids = await TenancyService.replace_trend_signals(db, trend, data.signal_ids)
    return {"trend_id": trend.id, "signal_ids": signal_ids}


@router.post("/{trend_id}/signals/{signal_id}", status_code=201)
async def link_signal(
    trend_id: str,
    signal_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    trend = await _writable_trend(db, trend_id, user, Resource.SIGNAL_TREND, Action.CREATE)

    stmt = select(Signal.id).where(Signal.id == signal_id, Signal.workspace_id == trend.workspace_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    if not await db.get(SignalTrend, (signal_id, trend.id)):
        db.add(SignalTrend(signal_id=signal_id, trend_id=trend.id))
        try:
            await db.commit()
        except IntegrityError:
            # Linked concurrently; the pair already exists
            await db.rollback()
    return {"signal_id": signal_id, "trend_id": trend_id}


@router.delete("/{trend_id}/signals/{signal_id}", status_code=204)
async def unlink_signal(
    trend_id: str,
    signal_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    trend = await _writable_trend(db, trend_id, user, Resource.SIGNAL_TREND, Action.DELETE)
    result = await db.execute(
        delete(SignalTrend).where(SignalTrend.trend_id == trend.id, SignalTrend.signal_id == signal_id)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Link not found")
    await db.commit()
