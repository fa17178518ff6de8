# helpers.py — Listing and serialisation helpers shared by the routers
import math
from enum import Enum
from typing import Any, Callable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession


def enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def unique_strings(values: Optional[List[str]]) -> List[str]:
    """Strip, drop blanks and deduplicate while keeping first-seen order."""
    out: List[str] = []
    for v in values or []:
        v = str(v).strip()
        if v and v not in out:
            out.append(v)
    return out


async def paginate(
    db: AsyncSession,
    stmt,
    page: int,
    page_size: int,
    serialize: Callable[[Any], Any],
) -> dict:
    """Run ``stmt`` as one fixed-size page plus a total count."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    result = await db.execute(stmt.offset((page - 1) * page_size).limit(page_size))
    rows = result.scalars().all()

    return {
        "items": [serialize(r) for r in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
    }
