# tenancy.py — Workspace lifecycle and record-graph maintenance
# - Workspace + founding owner created in one transaction
# - Explicit cascades: join rows are cleared before their parents go away
# - Link replacement for trend<->signal and megatrend<->trend sets

import logging
from typing import Iterable, List

from fastapi import HTTPException
from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    Workspace, Member, WorkspaceRole, Source, Signal, Trend, Megatrend,
    SignalTrend, TrendMegatrend, Job,
)

logger = logging.getLogger("foresight.tenancy")

MAX_WORKSPACE_NAME = 100


def _founding_member(workspace_id: str, identity_id: str) -> Member:
    return Member(workspace_id=workspace_id, user_id=identity_id, role=WorkspaceRole.OWNER)


class TenancyService:
    """Multi-row operations that must succeed or fail as a unit"""

    @staticmethod
    async def create_workspace_with_owner(db: AsyncSession, name: str, identity_id: str) -> Workspace:
        if not identity_id:
            raise HTTPException(status_code=401, detail="Authentication required")
        clean_name = (name or "").strip()
        if not clean_name:
            raise HTTPException(status_code=422, detail="Workspace name must not be empty")
        if len(clean_name) > MAX_WORKSPACE_NAME:
            raise HTTPException(
                status_code=422,
                detail=f"Workspace name must be at most {MAX_WORKSPACE_NAME} characters",
            )

        workspace = Workspace(name=clean_name)
        db.add(workspace)
        try:
            await db.flush()
            db.add(_founding_member(workspace.id, identity_id))
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error(f"Workspace creation rolled back for {identity_id}")
            raise
        await db.refresh(workspace)

        logger.info(f"Workspace {workspace.id} created with owner {identity_id}")
        return workspace

    @staticmethod
    async def delete_workspace(db: AsyncSession, workspace_id: str) -> None:
        signal_ids = select(Signal.id).where(Signal.workspace_id == workspace_id)
        trend_ids = select(Trend.id).where(Trend.workspace_id == workspace_id)
        try:
            await db.execute(delete(SignalTrend).where(SignalTrend.signal_id.in_(signal_ids)))
            await db.execute(delete(SignalTrend).where(SignalTrend.trend_id.in_(trend_ids)))
            await db.execute(delete(TrendMegatrend).where(TrendMegatrend.trend_id.in_(trend_ids)))
            await db.execute(delete(TrendMegatrend).where(
                TrendMegatrend.megatrend_id.in_(
                    select(Megatrend.id).where(Megatrend.workspace_id == workspace_id)
                )
            ))
            for model in (Job, Megatrend, Trend, Signal, Source, Member):
                await db.execute(delete(model).where(model.workspace_id == workspace_id))
            await db.execute(delete(Workspace).where(Workspace.id == workspace_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(f"Workspace {workspace_id} deleted")

    @staticmethod
    async def delete_signal(db: AsyncSession, signal: Signal) -> None:
        await db.execute(delete(SignalTrend).where(SignalTrend.signal_id == signal.id))
        await db.delete(signal)
        await db.commit()

    @staticmethod
    async def delete_trend(db: AsyncSession, trend: Trend) -> None:
        await db.execute(delete(SignalTrend).where(SignalTrend.trend_id == trend.id))
        await db.execute(delete(TrendMegatrend).where(TrendMegatrend.trend_id == trend.id))
        await db.delete(trend)
        await db.commit()

    @staticmethod
    async def delete_megatrend(db: AsyncSession, megatrend: Megatrend) -> None:
        await db.execute(delete(TrendMegatrend).where(TrendMegatrend.megatrend_id == megatrend.id))
        await db.delete(megatrend)
        await db.commit()

    @staticmethod
    async def delete_source(db: AsyncSession, source: Source) -> None:
        await db.execute(
            update(Signal).where(Signal.source_id == source.id).values(source_id=None)
        )
        await db.delete(source)
        await db.commit()

    @staticmethod
    async def same_workspace_ids(db: AsyncSession, model, ids: Iterable[str], workspace_id: str) -> List[str]:
        """Return ``ids`` unchanged (deduplicated) or 404 if any lies outside the workspace."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        stmt = select(model.id).where(model.id.in_(wanted), model.workspace_id == workspace_id)
        found = set((await db.execute(stmt)).scalars().all())
        if len(found) != len(wanted):
            raise HTTPException(status_code=404, detail="Not found")
        return wanted

    @staticmethod
    async def replace_trend_signals(db: AsyncSession, trend: Trend, signal_ids: Iterable[str]) -> List[str]:
        ids = await TenancyService.same_workspace_ids(db, Signal, signal_ids, trend.workspace_id)
        await db.execute(delete(SignalTrend).where(SignalTrend.trend_id == trend.id))
        for signal_id in ids:
            db.add(SignalTrend(signal_id=signal_id, trend_id=trend.id))
        await db.commit()
        return ids

    @staticmethod
    async def replace_megatrend_trends(db: AsyncSession, megatrend: Megatrend, trend_ids: Iterable[str]) -> List[str]:
        ids = await TenancyService.same_workspace_ids(db, Trend, trend_ids, megatrend.workspace_id)
        await db.execute(delete(TrendMegatrend).where(TrendMegatrend.megatrend_id == megatrend.id))
        for trend_id in ids:
            db.add(TrendMegatrend(trend_id=trend_id, megatrend_id=megatrend.id))
        await db.commit()
        return ids
