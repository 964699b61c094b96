# elevatehub/repositories/pagination.py
from typing import Any, List, Sequence, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
    *,
    options: Sequence[Any] = (),
    order_by: Sequence[Any] = (),
) -> Tuple[List[Any], int]:
    """
    Run `stmt` for one page. The count is taken on the bare filtered
    statement, loader options are only applied to the page query.
    """
    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    page_stmt = (
        stmt.options(*options)
        .order_by(*order_by)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(page_stmt)
    return list(result.scalars().unique().all()), total or 0
