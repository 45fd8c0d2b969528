"""Accounts repository (login database).

Holds every read/write against ``accounts`` and ``account_log`` so the HTTP
handlers stay thin. Database errors are logged and re-raised unchanged; the
HTTP layer decides what status they become.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Union

from sqlalchemy import delete, func, insert, select, update

from .db import Database
from .enrich import enrich_account, enrich_login_entry
from .filters import AccountFilters, build_account_predicates, PredicateSet
from .models import Account, AccountLog
from .pagination import PageOptions, paginate, resolve_sort

log = logging.getLogger(__name__)


class _Unset(enum.Enum):
    UNSET = "UNSET"


UNSET = _Unset.UNSET

# Sortable fields; anything else falls back to DEFAULT_SORT
SORT_FIELDS = {
    "login": Account.login,
    "lastactive": Account.lastactive,
    "accessLevel": Account.accessLevel,
    "lastIP": Account.lastIP,
    "lastHWID": Account.lastHWID,
    "lastServerId": Account.lastServerId,
    "ban_expire": Account.ban_expire,
}
DEFAULT_SORT = "login"

# Public columns; the password digest is never selected
ACCOUNT_COLUMNS = (
    Account.login,
    Account.accessLevel,
    Account.lastactive,
    Account.lastIP,
    Account.lastHWID,
    Account.lastServerId,
    Account.ban_expire,
    Account.l2email.label("email"),
)

HISTORY_COLUMNS = (
    AccountLog.time,
    AccountLog.lastServerId,
    AccountLog.ip,
    AccountLog.hwid,
)


@dataclass(frozen=True)
class AccountUpdate:
    """Partial account update.

    Fields left as `UNSET` are not written. ``None`` clears a nullable column.
    """

    password: Union[str, _Unset] = UNSET
    access_level: Union[int, _Unset] = UNSET
    last_server_id: Union[int, None, _Unset] = UNSET
    last_ip: Union[str, None, _Unset] = UNSET
    last_hwid: Union[str, None, _Unset] = UNSET
    last_active: Union[int, None, _Unset] = UNSET
    email: Union[str, None, _Unset] = UNSET

    _COLUMNS = {
        "password": "password",
        "access_level": "accessLevel",
        "last_server_id": "lastServerId",
        "last_ip": "lastIP",
        "last_hwid": "lastHWID",
        "last_active": "lastactive",
        "email": "l2email",
    }

    def changes(self) -> Dict[str, Any]:
        """Return ``{column: value}`` for supplied fields only."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not UNSET:
                out[self._COLUMNS[f.name]] = value
        return out


class AccountsRepository:
    """Account operations over an injected login `Database`."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def exists(self, login: str) -> bool:
        try:
            async with self._db.session() as s:
                q = select(func.count()).select_from(Account).where(Account.login == login)
                count = int((await s.execute(q)).scalar_one())
        except Exception as exc:
            log.error("repo.accounts.exists failed login=%s error=%r", login, exc)
            raise
        log.debug("repo.accounts.exists login=%s exists=%s", login, count > 0)
        return count > 0

    async def create(self, login: str, password_hash: str, email: Optional[str] = None) -> None:
        """Insert a new account with access level 0 and no last-active time.

        Uniqueness is enforced by the primary key: a concurrent duplicate
        surfaces as the driver's IntegrityError.
        """
        try:
            async with self._db.transaction() as s:
                await s.execute(
                    insert(Account).values(
                        login=login,
                        password=password_hash,
                        accessLevel=0,
                        lastactive=None,
                        ban_expire=0,
                        l2email=email,
                    )
                )
        except Exception as exc:
            log.error("repo.accounts.create failed login=%s error=%r", login, exc)
            raise
        log.info("repo.accounts.create login=%s email_set=%s", login, email is not None)

    async def update(self, login: str, changes: AccountUpdate) -> bool:
        """Apply a partial update.

        Returns:
            True if a row matched, False otherwise (also when nothing was supplied).
        """
        values = changes.changes()
        if not values:
            log.debug("repo.accounts.update login=%s skipped=no_changes", login)
            return False
        try:
            async with self._db.transaction() as s:
                res = await s.execute(
                    update(Account).where(Account.login == login).values(**values)
                )
        except Exception as exc:
            log.error("repo.accounts.update failed login=%s error=%r", login, exc)
            raise
        # column names only; values may contain the password digest
        log.info(
            "repo.accounts.update login=%s columns=%s matched=%d",
            login,
            sorted(values),
            res.rowcount,
        )
        return res.rowcount > 0

    async def load(self, login: str, now: Optional[int] = None) -> Optional[Dict[str, Any]]:
        try:
            async with self._db.session() as s:
                res = await s.execute(
                    select(*ACCOUNT_COLUMNS).where(Account.login == login)
                )
                row = res.mappings().first()
        except Exception as exc:
            log.error("repo.accounts.load failed login=%s error=%r", login, exc)
            raise
        if row is None:
            log.warning("repo.accounts.load not_found login=%s", login)
            return None
        return enrich_account(row, now)

    async def get_accounts(
        self,
        filters: AccountFilters,
        page: PageOptions,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Return one page of accounts plus pagination metadata.

        Args:
            filters: Normalized list filters.
            page: Coerced page options.
            sort_by: Requested sort field (allow-listed, default ``login``).
            sort_order: ``asc`` or ``desc``.
            now: Unix seconds for ban checks; defaults to the current time.

        Returns:
            ``{"accounts": [...], "pagination": {...}}``.
        """
        now = int(time.time()) if now is None else now
        predicates = build_account_predicates(filters, now=now)
        field_name, order = resolve_sort(
            sort_by, sort_order, SORT_FIELDS, DEFAULT_SORT, tiebreaker=Account.login
        )
        try:
            async with self._db.session() as s:
                rows, pagination = await paginate(
                    s, Account, ACCOUNT_COLUMNS, predicates, order, page
                )
        except Exception as exc:
            log.error("repo.accounts.list failed error=%r", exc)
            raise

        where, params = predicates.render()
        log.info(
            "repo.accounts.list page=%d limit=%d sort=%s returned=%d total=%d where=%r params=%r",
            pagination.page,
            pagination.limit,
            field_name,
            len(rows),
            pagination.total,
            where,
            params,
        )
        return {
            "accounts": [enrich_account(r, now) for r in rows],
            "pagination": pagination.as_dict(),
        }

    async def get_login_history(self, login: str, page: PageOptions) -> Dict[str, Any]:
        """Return one page of login events for `login`, newest first."""
        predicates = PredicateSet().add(AccountLog.login == login)
        try:
            async with self._db.session() as s:
                rows, pagination = await paginate(
                    s,
                    AccountLog,
                    HISTORY_COLUMNS,
                    predicates,
                    [AccountLog.time.desc()],
                    page,
                )
        except Exception as exc:
            log.error("repo.accounts.history failed login=%s error=%r", login, exc)
            raise
        log.debug(
            "repo.accounts.history login=%s returned=%d total=%d",
            login,
            len(rows),
            pagination.total,
        )
        return {
            "login": login,
            "loginHistory": [enrich_login_entry(r) for r in rows],
            "pagination": pagination.as_dict(),
        }

    async def delete(self, login: str) -> bool:
        """Delete the account and its login history in one transaction."""
        try:
            async with self._db.transaction() as s:
                await s.execute(delete(AccountLog).where(AccountLog.login == login))
                res = await s.execute(delete(Account).where(Account.login == login))
        except Exception as exc:
            log.error("repo.accounts.delete failed login=%s error=%r", login, exc)
            raise
        log.info("repo.accounts.delete login=%s deleted=%d", login, res.rowcount)
        return res.rowcount > 0

    async def ban(self, login: str, until: int) -> bool:
        """Set ``ban_expire`` to `until` (Unix seconds)."""
        return await self._set_ban_expire(login, until)

    async def unban(self, login: str) -> bool:
        """Reset ``ban_expire`` to 0. Idempotent."""
        return await self._set_ban_expire(login, 0)

    async def _set_ban_expire(self, login: str, value: int) -> bool:
        try:
            async with self._db.transaction() as s:
                res = await s.execute(
                    update(Account).where(Account.login == login).values(ban_expire=value)
                )
        except Exception as exc:
            log.error("repo.accounts.ban failed login=%s error=%r", login, exc)
            raise
        log.info("repo.accounts.ban login=%s ban_expire=%d matched=%d", login, value, res.rowcount)
        return res.rowcount > 0
