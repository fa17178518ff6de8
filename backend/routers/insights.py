# routers/insights.py — Dashboard, network graph and radar projections
# Read-only views over a workspace. Callers outside the workspace get empty
# projections rather than errors.
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso
from models import (
    Signal, Trend, Megatrend, SignalTrend, TrendMegatrend,
    Impact, Certainty, utcnow,
)
from policy import visible

router = APIRouter(prefix="/api/v1/workspaces", tags=["Insights"])

RECENT_LIMIT = 10
RECENT_WINDOW_DAYS = 7
LABEL_LENGTH = 25

CERTAINTY_X = {Certainty.CERTAIN.value: 80, Certainty.UNCERTAIN.value: 50, Certainty.WILDCARD.value: 20}
IMPACT_Y = {Impact.HIGH.value: 85, Impact.MEDIUM.value: 50, Impact.LOW.value: 15}


def truncate_label(title: str) -> str:
    return title[:LABEL_LENGTH] + "..." if len(title) > LABEL_LENGTH else title


def radar_point(trend: Trend, signal_count: int) -> dict:
    """Place a trend on the certainty (x) / impact (y) plane, sized by its signal count."""
    certainty = enum_value(trend.certainty)
    impact = enum_value(trend.impact)
    return {
        "id": trend.id,
        "title": trend.title,
        "description": trend.description,
        "impact": impact,
        "certainty": certainty,
        "signal_count": signal_count,
        "x": CERTAINTY_X.get(certainty, 50),
        "y": IMPACT_Y.get(impact, 50),
        "z": max(200, signal_count * 100 + 200),
    }


def _scoped(model, workspace_id: str, user: CurrentUser):
    return visible(select(model).where(model.workspace_id == workspace_id), model, user.id)


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0


def _visible_links(workspace_id: str, user: CurrentUser):
    return visible(
        select(SignalTrend.signal_id, SignalTrend.trend_id)
        .join(Signal, Signal.id == SignalTrend.signal_id)
        .where(Signal.workspace_id == workspace_id),
        Signal,
        user.id,
    )


async def _signal_counts(db: AsyncSession, workspace_id: str, user: CurrentUser) -> dict:
    links = _visible_links(workspace_id, user).subquery()
    stmt = select(links.c.trend_id, func.count()).group_by(links.c.trend_id)
    return {trend_id: count for trend_id, count in (await db.execute(stmt)).all()}


@router.get("/{workspace_id}/dashboard")
async def dashboard(
    workspace_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Headline counts plus the latest signals and trends"""
    since = utcnow() - timedelta(days=RECENT_WINDOW_DAYS)
    signals = _scoped(Signal, workspace_id, user)
    trends = _scoped(Trend, workspace_id, user)

    recent_signals = await db.execute(signals.order_by(Signal.created_at.desc()).limit(RECENT_LIMIT))
    recent_trends = await db.execute(trends.order_by(Trend.created_at.desc()).limit(RECENT_LIMIT))

    return {
        "counts": {
            "signals": await _count(db, signals),
            "trends": await _count(db, trends),
            "megatrends": await _count(db, _scoped(Megatrend, workspace_id, user)),
            "links": await _count(db, _visible_links(workspace_id, user)),
            "signals_this_week": await _count(db, signals.where(Signal.created_at >= since)),
            "high_impact_trends": await _count(db, trends.where(Trend.impact == Impact.HIGH)),
        },
        "recent_signals": [
            {
                "id": s.id,
                "title": s.title,
                "summary": s.summary,
                "relevance": s.relevance,
                "horizon": enum_value(s.horizon),
                "certainty": enum_value(s.certainty),
                "ai_tags": s.ai_tags or [],
                "created_at": iso(s.created_at),
            }
            for s in recent_signals.scalars().all()
        ],
        "recent_trends": [
            {
                "id": t.id,
                "title": t.title,
                "impact": enum_value(t.impact),
                "certainty": enum_value(t.certainty),
                "created_at": iso(t.created_at),
            }
            for t in recent_trends.scalars().all()
        ],
    }


@router.get("/{workspace_id}/graph")
async def network_graph(
    workspace_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Nodes for signals, trends and megatrends; edges for their links"""
    signals = (await db.execute(_scoped(Signal, workspace_id, user))).scalars().all()
    trends = (await db.execute(_scoped(Trend, workspace_id, user))).scalars().all()
    megatrends = (await db.execute(_scoped(Megatrend, workspace_id, user))).scalars().all()

    nodes = []
    for s in signals:
        nodes.append({
            "id": f"signal-{s.id}", "label": truncate_label(s.title), "type": "signal",
            "certainty": enum_value(s.certainty), "horizon": enum_value(s.horizon),
        })
    for t in trends:
        nodes.append({
            "id": f"trend-{t.id}", "label": truncate_label(t.title), "type": "trend",
            "impact": enum_value(t.impact), "certainty": enum_value(t.certainty),
        })
    for m in megatrends:
        nodes.append({"id": f"megatrend-{m.id}", "label": truncate_label(m.title), "type": "megatrend"})

    edges = []
    for signal_id, trend_id in (await db.execute(_visible_links(workspace_id, user))).all():
        edges.append({
            "id": f"edge-{signal_id}-{trend_id}",
            "source": f"signal-{signal_id}",
            "target": f"trend-{trend_id}",
        })

    trend_links = visible(
        select(TrendMegatrend.trend_id, TrendMegatrend.megatrend_id)
        .join(Trend, Trend.id == TrendMegatrend.trend_id)
        .where(Trend.workspace_id == workspace_id),
        Trend,
        user.id,
    )
    for trend_id, megatrend_id in (await db.execute(trend_links)).all():
        edges.append({
            "id": f"edge-{trend_id}-{megatrend_id}",
            "source": f"trend-{trend_id}",
            "target": f"megatrend-{megatrend_id}",
        })

    return {"nodes": nodes, "edges": edges}


@router.get("/{workspace_id}/radar")
async def trend_radar(
    workspace_id: str,
    impact: Optional[Impact] = None,
    certainty: Optional[Certainty] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """One point per trend on the impact/certainty radar"""
    stmt = _scoped(Trend, workspace_id, user)
    if impact:
        stmt = stmt.where(Trend.impact == impact)
    if certainty:
        stmt = stmt.where(Trend.certainty == certainty)
    trends = (await db.execute(stmt.order_by(Trend.created_at.desc()))).scalars().all()
    counts = await _signal_counts(db, workspace_id, user)
    return {"points": [radar_point(t, counts.get(t.id, 0)) for t in trends]}
