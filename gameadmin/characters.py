"""Characters repository (game database).

Characters are owned by the game server; everything here is read-only.
Soft-deleted characters (``deletetime > 0``) are hidden from lookups and stats
unless a caller asks for them explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, distinct, func, select

from .db import Database
from .enrich import enrich_character
from .filters import CharacterFilters, LEVEL_COLUMN, PredicateSet, build_character_predicates
from .models import Character
from .pagination import PageOptions, paginate, resolve_sort

log = logging.getLogger(__name__)

SORT_FIELDS = {
    "char_name": Character.char_name,
    "account_name": Character.account_name,
    "createtime": Character.createtime,
    "lastAccess": Character.lastAccess,
    "online": Character.online,
    "clanid": Character.clanid,
    "pvpkills": Character.pvpkills,
    "pkkills": Character.pkkills,
    "karma": Character.karma,
    "onlinetime": Character.onlinetime,
}
DEFAULT_SORT = "char_name"

LIST_COLUMNS = (
    Character.obj_Id,
    Character.char_name,
    Character.account_name,
    Character.sex,
    Character.createtime,
    Character.deletetime,
    Character.lastAccess,
    Character.online,
    Character.onlinetime,
    Character.clanid,
    Character.title,
    Character.pvpkills,
    Character.pkkills,
    Character.karma,
    Character.accesslevel,
    Character.x,
    Character.y,
    Character.z,
)

ACCOUNT_CHAR_COLUMNS = (
    Character.obj_Id,
    Character.char_name,
    Character.sex,
    Character.createtime,
    Character.deletetime,
    Character.lastAccess,
    Character.online,
    Character.onlinetime,
    Character.clanid,
    Character.title,
    Character.pvpkills,
    Character.pkkills,
)

# Width of one by_level bucket
LEVEL_BAND = 10

_ACTIVE = Character.deletetime == 0


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


class CharactersRepository:
    """Character lookups, lists and aggregate stats over an injected game `Database`."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def _scalar_count(self, *conditions) -> int:
        q = select(func.count()).select_from(Character).where(*conditions)
        async with self._db.session() as s:
            return int((await s.execute(q)).scalar_one())

    async def exists(self, char_name: str) -> bool:
        """True if a non-deleted character named `char_name` exists."""
        try:
            count = await self._scalar_count(Character.char_name == char_name, _ACTIVE)
        except Exception as exc:
            log.error("repo.characters.exists failed char_name=%s error=%r", char_name, exc)
            raise
        log.debug("repo.characters.exists char_name=%s exists=%s", char_name, count > 0)
        return count > 0

    async def exists_by_id(self, obj_id: int) -> bool:
        try:
            count = await self._scalar_count(Character.obj_Id == obj_id, _ACTIVE)
        except Exception as exc:
            log.error("repo.characters.exists_by_id failed obj_id=%s error=%r", obj_id, exc)
            raise
        return count > 0

    async def _load_one(self, condition, label: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._db.session() as s:
                res = await s.execute(select(Character.__table__).where(condition, _ACTIVE))
                row = res.mappings().first()
        except Exception as exc:
            log.error("repo.characters.load failed %s error=%r", label, exc)
            raise
        if row is None:
            log.warning("repo.characters.load not_found %s", label)
            return None
        return enrich_character(row)

    async def load_by_name(self, char_name: str) -> Optional[Dict[str, Any]]:
        return await self._load_one(Character.char_name == char_name, f"char_name={char_name}")

    async def load_by_id(self, obj_id: int) -> Optional[Dict[str, Any]]:
        """Load a full character row by object id; soft-deleted rows count as missing."""
        return await self._load_one(Character.obj_Id == obj_id, f"obj_id={obj_id}")

    async def get_characters(
        self,
        filters: CharacterFilters,
        page: PageOptions,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return one page of characters plus pagination metadata.

        Args:
            filters: Normalized list filters.
            page: Coerced page options.
            sort_by: Requested sort field (allow-listed, default ``char_name``).
            sort_order: ``asc`` or ``desc``.

        Returns:
            ``{"characters": [...], "pagination": {...}}``.
        """
        predicates = build_character_predicates(filters)
        field_name, order = resolve_sort(
            sort_by, sort_order, SORT_FIELDS, DEFAULT_SORT, tiebreaker=Character.obj_Id
        )
        try:
            async with self._db.session() as s:
                rows, pagination = await paginate(
                    s, Character, LIST_COLUMNS, predicates, order, page
                )
        except Exception as exc:
            log.error("repo.characters.list failed error=%r", exc)
            raise

        where, params = predicates.render()
        log.info(
            "repo.characters.list page=%d limit=%d sort=%s returned=%d total=%d where=%r params=%r",
            pagination.page,
            pagination.limit,
            field_name,
            len(rows),
            pagination.total,
            where,
            params,
        )
        return {
            "characters": [enrich_character(r) for r in rows],
            "pagination": pagination.as_dict(),
        }

    async def get_account_characters(
        self, account_name: str, page: PageOptions, include_deleted: bool = False
    ) -> Dict[str, Any]:
        """Return one page of an account's characters, most recently played first."""
        predicates = PredicateSet().add(Character.account_name == account_name)
        if not include_deleted:
            predicates.add(_ACTIVE)
        try:
            async with self._db.session() as s:
                rows, pagination = await paginate(
                    s,
                    Character,
                    ACCOUNT_CHAR_COLUMNS,
                    predicates,
                    [Character.lastAccess.desc(), Character.obj_Id.asc()],
                    page,
                )
        except Exception as exc:
            log.error("repo.characters.account failed account=%s error=%r", account_name, exc)
            raise
        log.debug(
            "repo.characters.account account=%s include_deleted=%s returned=%d total=%d",
            account_name,
            include_deleted,
            len(rows),
            pagination.total,
        )
        return {
            "accountName": account_name,
            "characters": [enrich_character(r) for r in rows],
            "pagination": pagination.as_dict(),
        }

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_total_stats(self) -> Dict[str, int]:
        """Overall counts: all rows, active, soft-deleted, online and distinct accounts."""
        q = select(
            func.count().label("total"),
            _count_if(_ACTIVE).label("active"),
            _count_if(Character.deletetime > 0).label("deleted"),
            _count_if((Character.online == 1) & _ACTIVE).label("online"),
            func.count(distinct(Character.account_name)).label("accounts"),
        ).select_from(Character)
        try:
            async with self._db.session() as s:
                row = (await s.execute(q)).mappings().one()
        except Exception as exc:
            log.error("repo.characters.stats failed type=total error=%r", exc)
            raise
        out = {k: int(row[k] or 0) for k in ("total", "active", "deleted", "online", "accounts")}
        log.debug("repo.characters.stats type=total %s", out)
        return out

    async def get_online_stats(self) -> Dict[str, int]:
        q = select(
            func.count().label("total"),
            _count_if(Character.online == 1).label("online"),
        ).select_from(Character).where(_ACTIVE)
        try:
            async with self._db.session() as s:
                row = (await s.execute(q)).mappings().one()
        except Exception as exc:
            log.error("repo.characters.stats failed type=online error=%r", exc)
            raise
        total = int(row["total"] or 0)
        online = int(row["online"] or 0)
        return {"online": online, "offline": total - online, "total": total}

    async def get_characters_by_class(self) -> Dict[str, List[Dict[str, int]]]:
        n = func.count().label("count")
        q = (
            select(Character.base_class_id, n)
            .where(_ACTIVE)
            .group_by(Character.base_class_id)
            .order_by(n.desc(), Character.base_class_id.asc())
        )
        try:
            async with self._db.session() as s:
                rows = (await s.execute(q)).all()
        except Exception as exc:
            log.error("repo.characters.stats failed type=by_class error=%r", exc)
            raise
        return {"classes": [{"classId": int(c), "count": int(cnt)} for c, cnt in rows]}

    async def get_characters_by_clan(self) -> Dict[str, List[Dict[str, int]]]:
        """Member and online counts for every clan with at least one active character."""
        n = func.count().label("count")
        q = (
            select(Character.clanid, n, _count_if(Character.online == 1).label("online"))
            .where(_ACTIVE, Character.clanid > 0)
            .group_by(Character.clanid)
            .order_by(n.desc(), Character.clanid.asc())
        )
        try:
            async with self._db.session() as s:
                rows = (await s.execute(q)).all()
        except Exception as exc:
            log.error("repo.characters.stats failed type=by_clan error=%r", exc)
            raise
        return {
            "clans": [
                {"clanId": int(c), "count": int(cnt), "online": int(on or 0)}
                for c, cnt, on in rows
            ]
        }

    async def get_characters_by_level(self) -> Dict[str, List[Dict[str, int]]]:
        """Active characters bucketed into bands of `LEVEL_BAND` on `LEVEL_COLUMN`."""
        q = select(LEVEL_COLUMN, func.count()).where(_ACTIVE).group_by(LEVEL_COLUMN)
        try:
            async with self._db.session() as s:
                rows = (await s.execute(q)).all()
        except Exception as exc:
            log.error("repo.characters.stats failed type=by_level error=%r", exc)
            raise
        bands: Dict[int, int] = {}
        for value, cnt in rows:
            band = (int(value or 0) // LEVEL_BAND) * LEVEL_BAND
            bands[band] = bands.get(band, 0) + int(cnt)
        return {"levels": [{"level": b, "count": bands[b]} for b in sorted(bands)]}
