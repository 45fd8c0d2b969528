"""Derived response fields for raw account, character and login-log rows.

All functions are pure: they return a new dict and never touch the input.
Unix timestamps of 0/None render as None rather than as the epoch.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


def iso_from_unix(ts: Optional[int]) -> Optional[str]:
    """Render Unix seconds as ``2024-01-02T03:04:05.000Z``; None for 0/None/invalid."""
    if not ts:
        return None
    try:
        dt = datetime.fromtimestamp(int(ts), tz=timezone.utc)
    except (OverflowError, OSError, ValueError, TypeError):
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def enrich_account(row: Mapping[str, Any], now: Optional[int] = None) -> Dict[str, Any]:
    now = int(time.time()) if now is None else now
    ban_expire = row.get("ban_expire") or 0
    out = dict(row)
    out["lastactiveDate"] = iso_from_unix(row.get("lastactive"))
    out["isBanned"] = ban_expire > now
    out["banExpireDate"] = iso_from_unix(ban_expire)
    return out


def enrich_character(row: Mapping[str, Any]) -> Dict[str, Any]:
    deletetime = row.get("deletetime") or 0
    out = dict(row)
    out["createDate"] = iso_from_unix(row.get("createtime"))
    out["deleteDate"] = iso_from_unix(deletetime) if deletetime > 0 else None
    out["lastAccessDate"] = iso_from_unix(row.get("lastAccess"))
    out["isOnline"] = row.get("online") == 1
    out["isDeleted"] = deletetime > 0
    out["gender"] = "male" if row.get("sex") == 1 else "female"
    out["onlineTimeHours"] = (row.get("onlinetime") or 0) // 3600
    return out


def enrich_login_entry(row: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["date"] = iso_from_unix(row.get("time"))
    return out
