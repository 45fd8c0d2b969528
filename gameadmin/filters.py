"""Query-string filters: normalization and SQL predicate building.

Raw query parameters arrive as optional strings. They are first normalized
into typed, frozen dataclasses (absent or malformed values become ``None``),
then turned into a `PredicateSet`: an ordered list of SQLAlchemy conditions
over the mapped columns. Values always travel as bound parameters and column
names only ever come from the model attributes referenced here, so nothing a
client sends can change the shape of the SQL.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.dialects import sqlite
from sqlalchemy.sql.elements import ColumnElement

from .models import Account, Character

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_INT_RE = re.compile(r"^[+-]?\d+$")

# Signed BIGINT bounds; anything wider cannot be bound by the DB drivers
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Escape character for LIKE patterns built from client input
_LIKE_ESCAPE = "/"

# Positional ("?") dialect used only to render predicates for logs and tests
_RENDER_DIALECT = sqlite.dialect()

# TODO: point at the real level column once character_subclasses.level is mapped;
# base_class_id is a class identifier, not an experience level.
LEVEL_COLUMN = Character.base_class_id


# ---------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------


def is_int_literal(value: Any) -> bool:
    """True when `value` is written as a base-10 integer, whatever its size."""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return bool(_INT_RE.match(str(value).strip()))


def parse_int(value: Any) -> Optional[int]:
    """Parse a base-10 integer, or return None when absent/malformed.

    Values outside the signed 64-bit range are treated as absent.
    """
    if not is_int_literal(value):
        return None
    n = value if isinstance(value, int) else int(str(value).strip(), 10)
    if not INT64_MIN <= n <= INT64_MAX:
        return None
    return n


def parse_timestamp(value: Any) -> Optional[int]:
    """Turn a ``YYYY-MM-DD`` date or an integer string into Unix seconds.

    Dates are read as midnight UTC. Anything else that is not an integer
    (including impossible dates such as ``2024-02-31``) yields None.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if _DATE_RE.match(s):
        try:
            day = datetime.strptime(s, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
        return int(day.timestamp())
    return parse_int(s)


def parse_flag(value: Any) -> Optional[bool]:
    """Tri-state flag: "true" -> True, "false" -> False, anything else -> None."""
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    s = str(value).strip().lower()
    if s == "true":
        return True
    if s == "false":
        return False
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


@dataclass(frozen=True)
class AccountFilters:
    login: Optional[str] = None
    email: Optional[str] = None
    last_ip: Optional[str] = None
    last_hwid: Optional[str] = None
    last_server_id: Optional[int] = None
    access_level: Optional[int] = None
    last_active_from: Optional[int] = None
    last_active_to: Optional[int] = None
    is_banned: Optional[bool] = None


@dataclass(frozen=True)
class CharacterFilters:
    char_name: Optional[str] = None
    account_name: Optional[str] = None
    clanid: Optional[int] = None
    online: Optional[bool] = None
    min_level: Optional[int] = None
    max_level: Optional[int] = None
    created_after: Optional[int] = None
    created_before: Optional[int] = None
    last_access_after: Optional[int] = None
    last_access_before: Optional[int] = None
    sex: Optional[int] = None
    deleted_only: bool = False


def normalize_account_filters(raw: Mapping[str, Any]) -> AccountFilters:
    """Build `AccountFilters` from the raw ``/account/list`` query parameters."""
    return AccountFilters(
        login=_text(raw.get("login")),
        email=_text(raw.get("email")),
        last_ip=_text(raw.get("lastIP")),
        last_hwid=_text(raw.get("lastHWID")),
        last_server_id=parse_int(raw.get("lastServerId")),
        access_level=parse_int(raw.get("accessLevel")),
        last_active_from=parse_timestamp(raw.get("lastActiveFrom")),
        last_active_to=parse_timestamp(raw.get("lastActiveTo")),
        is_banned=parse_flag(raw.get("isBanned")),
    )


def normalize_character_filters(raw: Mapping[str, Any]) -> CharacterFilters:
    """Build `CharacterFilters` from the raw ``/characters/list`` query parameters."""
    return CharacterFilters(
        char_name=_text(raw.get("char_name")),
        account_name=_text(raw.get("account_name")),
        clanid=parse_int(raw.get("clanid")),
        online=parse_flag(raw.get("online")),
        min_level=parse_int(raw.get("minLevel")),
        max_level=parse_int(raw.get("maxLevel")),
        created_after=parse_timestamp(raw.get("createdAfter")),
        created_before=parse_timestamp(raw.get("createdBefore")),
        last_access_after=parse_timestamp(raw.get("lastAccessAfter")),
        last_access_before=parse_timestamp(raw.get("lastAccessBefore")),
        sex=parse_int(raw.get("sex")),
        deleted_only=parse_flag(raw.get("deletedOnly")) is True,
    )


# ---------------------------------------------------------------------
# Predicate builder
# ---------------------------------------------------------------------


@dataclass
class PredicateSet:
    """Ordered AND-ed conditions shared by a count query and its data query."""

    conditions: List[ColumnElement[bool]] = field(default_factory=list)

    def add(self, condition: ColumnElement[bool]) -> "PredicateSet":
        self.conditions.append(condition)
        return self

    def __len__(self) -> int:
        return len(self.conditions)

    def apply(self, stmt):
        """Attach the conditions to a SELECT/UPDATE/DELETE statement."""
        if not self.conditions:
            return stmt
        return stmt.where(*self.conditions)

    def render(self) -> Tuple[str, List[Any]]:
        """Return ``("WHERE a LIKE ? AND b = ?", [params...])``, or ``("", [])``."""
        if not self.conditions:
            return "", []
        compiled = and_(*self.conditions).compile(dialect=_RENDER_DIALECT)
        params = [compiled.params[name] for name in (compiled.positiontup or [])]
        return f"WHERE {compiled}", params


def _contains(column, value: str) -> ColumnElement[bool]:
    """``column LIKE '%value%'`` with ``%`` and ``_`` in `value` matched literally."""
    escaped = (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return column.like(f"%{escaped}%", escape=_LIKE_ESCAPE)


def build_account_predicates(f: AccountFilters, now: Optional[int] = None) -> PredicateSet:
    """Translate account filters into predicates.

    Args:
        f: Normalized filters.
        now: Unix seconds used for the ban check; defaults to the current time.

    Returns:
        A `PredicateSet`; empty when no filter is set.
    """
    p = PredicateSet()
    if f.login:
        p.add(_contains(Account.login, f.login))
    if f.email:
        p.add(_contains(Account.l2email, f.email))
    if f.last_ip:
        p.add(_contains(Account.lastIP, f.last_ip))
    if f.last_hwid:
        p.add(_contains(Account.lastHWID, f.last_hwid))
    if f.last_server_id is not None:
        p.add(Account.lastServerId == f.last_server_id)
    if f.access_level is not None:
        p.add(Account.accessLevel == f.access_level)
    if f.last_active_from is not None:
        p.add(Account.lastactive >= f.last_active_from)
    if f.last_active_to is not None:
        p.add(Account.lastactive <= f.last_active_to)
    if f.is_banned is not None:
        now = int(time.time()) if now is None else now
        if f.is_banned:
            p.add(Account.ban_expire > now)
        else:
            p.add(Account.ban_expire <= now)
    return p


def build_character_predicates(f: CharacterFilters) -> PredicateSet:
    """Translate character filters into predicates.

    Exactly one soft-delete predicate is always present: ``deletetime > 0``
    when `deleted_only` is set, ``deletetime = 0`` otherwise.
    """
    p = PredicateSet()
    if f.char_name:
        p.add(_contains(Character.char_name, f.char_name))
    if f.account_name:
        p.add(_contains(Character.account_name, f.account_name))
    if f.clanid is not None:
        p.add(Character.clanid == f.clanid)
    if f.online is not None:
        p.add(Character.online == (1 if f.online else 0))
    if f.min_level is not None:
        p.add(LEVEL_COLUMN >= f.min_level)
    if f.max_level is not None:
        p.add(LEVEL_COLUMN <= f.max_level)
    if f.created_after is not None:
        p.add(Character.createtime >= f.created_after)
    if f.created_before is not None:
        p.add(Character.createtime <= f.created_before)
    if f.last_access_after is not None:
        p.add(Character.lastAccess >= f.last_access_after)
    if f.last_access_before is not None:
        p.add(Character.lastAccess <= f.last_access_before)
    if f.sex is not None:
        p.add(Character.sex == f.sex)

    if f.deleted_only:
        p.add(Character.deletetime > 0)
    else:
        p.add(Character.deletetime == 0)
    return p
