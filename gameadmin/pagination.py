"""Page/sort coercion and the count + page query pair.

Every list endpoint goes through `paginate()`: one ``COUNT(*)`` and one
``SELECT ... ORDER BY ... LIMIT ? OFFSET ?`` built from the same
`PredicateSet`, so the reported total always describes the rows being paged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .filters import INT64_MAX, PredicateSet, is_int_literal, parse_int
from .settings import settings

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _bounded_int(raw: Any) -> Optional[int]:
    # positive integers too wide for BIGINT saturate instead of reading as absent
    p = parse_int(raw)
    if p is None and is_int_literal(raw) and int(str(raw).strip(), 10) > 0:
        return INT64_MAX
    return p


@dataclass(frozen=True)
class PageOptions:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_raw(
        cls, page: Any = None, limit: Any = None, max_limit: Optional[int] = None
    ) -> "PageOptions":
        """Coerce raw page/limit inputs to positive ints with defaults.

        Non-numeric or non-positive values fall back to the defaults (1 and 10);
        `limit` is capped at `max_limit` (``MAX_PAGE_LIMIT`` when omitted) and
        `page` is capped so the OFFSET still fits a signed 64-bit integer.
        """
        cap = settings.MAX_PAGE_LIMIT if max_limit is None else max_limit
        p = _bounded_int(page)
        n = _bounded_int(limit)
        p = p if p is not None and p >= 1 else DEFAULT_PAGE
        n = n if n is not None and n >= 1 else DEFAULT_LIMIT
        if cap and cap > 0:
            n = min(n, cap)
        p = min(p, INT64_MAX // n + 1)
        return cls(page=p, limit=n)


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


def resolve_sort(
    sort_by: Optional[str],
    sort_order: Optional[str],
    allowed: Mapping[str, Any],
    default: str,
    tiebreaker: Any = None,
) -> Tuple[str, List[Any]]:
    """Map a requested sort onto an allow-listed column and a direction.

    Unknown fields fall back to `default`; any order other than
    ``desc`` (case-insensitive) is ascending. When `tiebreaker` (a unique
    column) is given and differs from the sort column, it is appended in
    ascending order so LIMIT/OFFSET pages are deterministic on ties.

    Returns:
        Tuple of (field_name, ORDER BY clauses).
    """
    field_name = sort_by if sort_by in allowed else default
    column = allowed[field_name]
    descending = (sort_order or "").strip().lower() == "desc"
    order = [desc(column) if descending else asc(column)]
    if tiebreaker is not None and tiebreaker is not column:
        order.append(asc(tiebreaker))
    return field_name, order


async def paginate(
    session: AsyncSession,
    table,
    columns: Sequence[Any],
    predicates: PredicateSet,
    order_by: Sequence[Any],
    opts: PageOptions,
) -> Tuple[List[Dict[str, Any]], Pagination]:
    """Run the count query and the page query for one predicate set.

    Args:
        session: Active async SQLAlchemy session.
        table: Mapped class or table to count over.
        columns: Columns selected for each row.
        predicates: Filters shared by both queries.
        order_by: ORDER BY clauses for the page query.
        opts: Coerced page options.

    Returns:
        A tuple of (rows, pagination):
          * rows: Plain dicts keyed by column name, at most `opts.limit` of them.
          * pagination: Totals for the whole filtered set.
    """
    q_total = predicates.apply(select(func.count()).select_from(table))
    total = int((await session.execute(q_total)).scalar_one())

    q = (
        predicates.apply(select(*columns))
        .order_by(*order_by)
        .limit(opts.limit)
        .offset(opts.offset)
    )
    res = await session.execute(q)
    rows = [dict(r) for r in res.mappings().all()]
    return rows, Pagination(total=total, page=opts.page, limit=opts.limit)
