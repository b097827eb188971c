"""Pagination utility functions."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

T = TypeVar("T")


@dataclass
class OffsetParams:
    """Limit/offset pagination parameters."""

    limit: int = 50
    offset: int = 0


@dataclass
class OffsetPage(Generic[T]):
    """Paginated result container."""

    items: list[T]
    total: int
    offset: int

    @property
    def has_more(self) -> bool:
        """True if rows exist past the returned slice."""
        return self.offset + len(self.items) < self.total


async def paginate_query(
    db: AsyncSession,
    query: Select,
    params: OffsetParams,
) -> OffsetPage[T]:
    """Apply pagination to a query and return results with total count.

    Args:
        db: Database session
        query: SQLAlchemy select query (already ordered)
        params: Pagination parameters

    Returns:
        OffsetPage with the requested slice and the unpaginated total
    """
    # Count total
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    count_result = await db.execute(count_query)
    total = count_result.scalar() or 0

    # Apply pagination
    paginated_query = query.offset(params.offset).limit(params.limit)
    result = await db.execute(paginated_query)
    items = list(result.scalars().all())

    return OffsetPage(items=items, total=total, offset=params.offset)
