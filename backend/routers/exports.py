# routers/exports.py — CSV exports of a workspace's signals, trends and links
import csv
import io
import re
from datetime import date
from enum import Enum

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from helpers import enum_value, iso
from models import Signal, Trend, SignalTrend, Workspace
from policy import visible, member_workspace_ids

router = APIRouter(prefix="/api/v1/workspaces", tags=["Exports"])

SIGNAL_COLUMNS = ["ID", "Title", "URL", "Summary", "Tags", "Relevance", "Horizon", "Certainty", "Created At"]
TREND_COLUMNS = ["ID", "Title", "Description", "Impact", "Certainty", "Created At"]
LINK_COLUMNS = ["Signal ID", "Trend ID"]

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_-]+")
# Leading characters spreadsheets evaluate as a formula
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


class ExportDataset(str, Enum):
    SIGNALS = "signals"
    TRENDS = "trends"
    LINKS = "links"


FILE_PREFIX = {
    ExportDataset.SIGNALS: "signals",
    ExportDataset.TRENDS: "trends",
    ExportDataset.LINKS: "signal_trend_links",
}


def _safe_cell(value):
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def to_csv(columns, rows) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns)
    writer.writeheader()
    writer.writerows({key: _safe_cell(value) for key, value in row.items()} for row in rows)
    return buf.getvalue()


async def _signal_rows(db: AsyncSession, workspace_id: str, user: CurrentUser):
    stmt = visible(select(Signal).where(Signal.workspace_id == workspace_id), Signal, user.id)
    result = await db.execute(stmt.order_by(Signal.created_at.desc()))
    return [
        {
            "ID": s.id,
            "Title": s.title,
            "URL": s.url or "",
            "Summary": s.summary or "",
            "Tags": ", ".join(s.ai_tags or []),
            "Relevance": s.relevance,
            "Horizon": enum_value(s.horizon),
            "Certainty": enum_value(s.certainty),
            "Created At": iso(s.created_at),
        }
        for s in result.scalars().all()
    ]


async def _trend_rows(db: AsyncSession, workspace_id: str, user: CurrentUser):
    stmt = visible(select(Trend).where(Trend.workspace_id == workspace_id), Trend, user.id)
    result = await db.execute(stmt.order_by(Trend.created_at.desc()))
    return [
        {
            "ID": t.id,
            "Title": t.title,
            "Description": t.description or "",
            "Impact": enum_value(t.impact),
            "Certainty": enum_value(t.certainty),
            "Created At": iso(t.created_at),
        }
        for t in result.scalars().all()
    ]


async def _link_rows(db: AsyncSession, workspace_id: str, user: CurrentUser):
    stmt = visible(
        select(SignalTrend.signal_id, SignalTrend.trend_id)
        .join(Signal, Signal.id == SignalTrend.signal_id)
        .where(Signal.workspace_id == workspace_id),
        Signal,
        user.id,
    )
    result = await db.execute(stmt)
    return [{"Signal ID": signal_id, "Trend ID": trend_id} for signal_id, trend_id in result.all()]


@router.get("/{workspace_id}/export/{dataset}.csv")
async def export_csv(
    workspace_id: str,
    dataset: ExportDataset,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Download one dataset as CSV. Outside the workspace the file holds only headers."""
    if dataset == ExportDataset.SIGNALS:
        columns, rows = SIGNAL_COLUMNS, await _signal_rows(db, workspace_id, user)
    elif dataset == ExportDataset.TRENDS:
        columns, rows = TREND_COLUMNS, await _trend_rows(db, workspace_id, user)
    else:
        columns, rows = LINK_COLUMNS, await _link_rows(db, workspace_id, user)

    name = (await db.execute(
        select(Workspace.name).where(
            Workspace.id == workspace_id,
            Workspace.id.in_(member_workspace_ids(user.id)),
        )
    )).scalar_one_or_none() or workspace_id
    filename = f"{FILE_PREFIX[dataset]}_{_UNSAFE_FILENAME.sub('_', name)}_{date.today().isoformat()}.csv"

    return Response(
        content=to_csv(columns, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
