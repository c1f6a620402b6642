from __future__ import annotations

import math
from typing import Any, Callable, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.schemas.common import Page

POSTS_PER_PAGE = 15


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    per_page: int,
    serialize: Optional[Callable[[Any], Any]] = None,
) -> Page:
    """Offset pagination; ``stmt`` must already carry a deterministic ORDER BY."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.offset((page - 1) * per_page).limit(per_page))
    rows = result.scalars().all()
    items = [serialize(row) for row in rows] if serialize else list(rows)

    return Page(
        data=items,
        current_page=page,
        per_page=per_page,
        total=total,
        last_page=max(1, math.ceil(total / per_page)),
    )
