# routers/signals.py — Captured signals (workspace-scoped, paginated)
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso, paginate, unique_strings
from models import Signal, Source, SignalTrend, Horizon, Certainty
from policy import Resource, Action, require_access, visible, load_visible, NOT_FOUND
from tenancy import TenancyService

router = APIRouter(prefix="/api/v1/signals", tags=["Signals"])

PAGE_SIZE = 20


# --- Schemas ---

class SignalCreate(BaseModel):
    workspace_id: str
    title: str = Field(..., min_length=1, max_length=180)
    url: Optional[str] = Field(None, max_length=2000)
    content: Optional[str] = None
    summary: Optional[str] = Field(None, max_length=1200)
    lang: str = Field("en", min_length=2, max_length=10)
    ai_tags: List[str] = Field(default_factory=list)
    relevance: int = Field(50, ge=0, le=100)
    horizon: Horizon = Horizon.MID
    certainty: Certainty = Certainty.UNCERTAIN
    source_id: Optional[str] = None
    fetched_at: Optional[datetime] = None


class SignalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=180)
    url: Optional[str] = Field(None, max_length=2000)
    content: Optional[str] = None
    summary: Optional[str] = Field(None, max_length=1200)
    lang: Optional[str] = Field(None, min_length=2, max_length=10)
    ai_tags: Optional[List[str]] = None
    relevance: Optional[int] = Field(None, ge=0, le=100)
    horizon: Optional[Horizon] = None
    certainty: Optional[Certainty] = None
    source_id: Optional[str] = None


# Columns that are NOT NULL in the schema; PATCH may omit them but not null them
REQUIRED_FIELDS = ("title", "lang", "ai_tags", "relevance", "horizon", "certainty")


# --- Helpers ---

def _signal_to_out(s: Signal, trend_ids: Optional[List[str]] = None) -> dict:
    out = {
        "id": s.id,
        "workspace_id": s.workspace_id,
        "source_id": s.source_id,
        "title": s.title,
        "url": s.url,
        "content": s.content,
        "summary": s.summary,
        "lang": s.lang,
        "ai_tags": s.ai_tags or [],
        "relevance": s.relevance,
        "horizon": enum_value(s.horizon),
        "certainty": enum_value(s.certainty),
        "created_by": s.created_by,
        "fetched_at": iso(s.fetched_at),
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }
    if trend_ids is not None:
        out["trend_ids"] = trend_ids
    return out


async def _check_source(db: AsyncSession, source_id: Optional[str], workspace_id: str) -> None:
    if not source_id:
        return
    stmt = select(Source.id).where(Source.id == source_id, Source.workspace_id == workspace_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)


# --- Endpoints ---

@router.get("")
async def list_signals(
    workspace_id: str = Query(...),
    page: int = Query(1, ge=1),
    horizon: Optional[Horizon] = None,
    certainty: Optional[Certainty] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List a workspace's signals, newest first. Non-members get an empty page."""
    stmt = select(Signal).where(Signal.workspace_id == workspace_id)
    if horizon:
        stmt = stmt.where(Signal.horizon == horizon)
    if certainty:
        stmt = stmt.where(Signal.certainty == certainty)
    stmt = visible(stmt, Signal, user.id).order_by(Signal.created_at.desc(), Signal.id)
    return await paginate(db, stmt, page, PAGE_SIZE, _signal_to_out)


@router.get("/{signal_id}")
async def get_signal(
    signal_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    signal = await load_visible(db, Signal, signal_id, user.id)
    result = await db.execute(select(SignalTrend.trend_id).where(SignalTrend.signal_id == signal.id))
    return _signal_to_out(signal, list(result.scalars().all()))


@router.post("", status_code=201)
async def create_signal(
    data: SignalCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await require_access(db, user.id, data.workspace_id, Resource.SIGNAL, Action.CREATE)
    await _check_source(db, data.source_id, data.workspace_id)

    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title must not be empty")

    signal = Signal(
        workspace_id=data.workspace_id,
        source_id=data.source_id,
        title=title,
        url=data.url,
        content=data.content,
        summary=data.summary,
        lang=data.lang,
        ai_tags=unique_strings(data.ai_tags),
        relevance=data.relevance,
        horizon=data.horizon,
        certainty=data.certainty,
        created_by=user.id,
        fetched_at=data.fetched_at,
    )
    db.add(signal)
    await db.commit()
    await db.refresh(signal)
    return _signal_to_out(signal, [])


@router.patch("/{signal_id}")
async def update_signal(
    signal_id: str,
    update: SignalUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    signal = await load_visible(db, Signal, signal_id, user.id)
    await require_access(db, user.id, signal.workspace_id, Resource.SIGNAL, Action.UPDATE)

    changes = update.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")
    if "title" in changes:
        changes["title"] = changes["title"].strip()
        if not changes["title"]:
            raise HTTPException(status_code=422, detail="Title must not be empty")
    if "ai_tags" in changes:
        changes["ai_tags"] = unique_strings(changes["ai_tags"])
    if "source_id" in changes:
        await _check_source(db, changes["source_id"], signal.workspace_id)

    for field, value in changes.items():
        setattr(signal, field, value)

    db.add(signal)
    await db.commit()
    await db.refresh(signal)
    return _signal_to_out(signal)


@router.delete("/{signal_id}", status_code=204)
async def delete_signal(
    signal_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a signal together with its trend links"""
    signal = await load_visible(db, Signal, signal_id, user.id)
    await require_access(db, user.id, signal.workspace_id, Resource.SIGNAL, Action.DELETE)
    await TenancyService.delete_signal(db, signal)
