"""AccountsRepository against a seeded in-memory login database."""

import logging
import time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from gameadmin.accounts import AccountUpdate, UNSET
from gameadmin.filters import AccountFilters
from gameadmin.models import Account, AccountLog
from gameadmin.pagination import PageOptions

from conftest import FAR_FUTURE


def test_account_update_only_lists_supplied_fields():
    assert AccountUpdate().changes() == {}
    assert AccountUpdate(password="h", email=None).changes() == {
        "password": "h",
        "l2email": None,
    }
    assert AccountUpdate(access_level=UNSET, last_ip="1.1.1.1").changes() == {"lastIP": "1.1.1.1"}


@pytest.mark.asyncio
async def test_exists(accounts_repo):
    assert await accounts_repo.exists("admin01") is True
    assert await accounts_repo.exists("ghost") is False


@pytest.mark.asyncio
async def test_create_then_load_has_defaults(accounts_repo):
    await accounts_repo.create("tester01", "digest")
    acc = await accounts_repo.load("tester01")
    assert acc["accessLevel"] == 0
    assert acc["lastactive"] is None
    assert acc["lastactiveDate"] is None
    assert acc["email"] is None
    assert acc["isBanned"] is False
    assert "password" not in acc


@pytest.mark.asyncio
async def test_create_duplicate_raises_integrity_error(accounts_repo, caplog):
    caplog.set_level(logging.ERROR)
    with pytest.raises(IntegrityError):
        await accounts_repo.create("admin01", "digest")
    assert any("repo.accounts.create failed" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_update_writes_only_supplied_columns(accounts_repo, login_db):
    matched = await accounts_repo.update("admin01", AccountUpdate(email=None))
    assert matched is True
    async with login_db.session() as s:
        row = (await s.execute(select(Account).where(Account.login == "admin01"))).scalar_one()
    assert row.l2email is None
    # untouched columns keep their values
    assert row.lastIP == "10.0.0.1"
    assert row.accessLevel == 100
    assert row.password == "x"


@pytest.mark.asyncio
async def test_update_without_changes_is_a_noop(accounts_repo):
    assert await accounts_repo.update("admin01", AccountUpdate()) is False


@pytest.mark.asyncio
async def test_update_missing_account_matches_nothing(accounts_repo):
    assert await accounts_repo.update("ghost", AccountUpdate(password="h")) is False


@pytest.mark.asyncio
async def test_load_missing_returns_none(accounts_repo):
    assert await accounts_repo.load("ghost") is None


@pytest.mark.asyncio
async def test_get_accounts_default_sort_and_pagination(accounts_repo):
    out = await accounts_repo.get_accounts(AccountFilters(), PageOptions(1, 3))
    assert [a["login"] for a in out["accounts"]] == ["admin01", "player01", "player02"]
    assert out["pagination"] == {"total": 4, "page": 1, "limit": 3, "totalPages": 2}
    assert len(out["accounts"]) <= 3


@pytest.mark.asyncio
async def test_get_accounts_bad_sort_falls_back_to_login_asc(accounts_repo):
    out = await accounts_repo.get_accounts(
        AccountFilters(), PageOptions(), sort_by="password", sort_order="sideways"
    )
    assert [a["login"] for a in out["accounts"]] == ["admin01", "player01", "player02", "player03"]


@pytest.mark.asyncio
async def test_get_accounts_sort_desc(accounts_repo):
    out = await accounts_repo.get_accounts(
        AccountFilters(), PageOptions(), sort_by="accessLevel", sort_order="desc"
    )
    assert out["accounts"][0]["login"] == "admin01"


@pytest.mark.asyncio
async def test_get_accounts_filters(accounts_repo):
    out = await accounts_repo.get_accounts(AccountFilters(last_ip="192.168"), PageOptions())
    assert {a["login"] for a in out["accounts"]} == {"player01", "player02"}

    out = await accounts_repo.get_accounts(AccountFilters(is_banned=True), PageOptions())
    assert [a["login"] for a in out["accounts"]] == ["player01"]
    assert out["accounts"][0]["banExpireDate"] == "2100-01-01T00:00:00.000Z"

    out = await accounts_repo.get_accounts(AccountFilters(is_banned=False), PageOptions())
    assert [a["login"] for a in out["accounts"]] == ["admin01", "player02", "player03"]


@pytest.mark.asyncio
async def test_get_accounts_logs_rendered_where(accounts_repo, caplog):
    caplog.set_level(logging.INFO, logger="gameadmin.accounts")
    await accounts_repo.get_accounts(AccountFilters(login="adm"), PageOptions())
    msgs = [r.getMessage() for r in caplog.records]
    assert any("repo.accounts.list" in m and "LIKE ?" in m and "%adm%" in m for m in msgs)


@pytest.mark.asyncio
async def test_login_history_newest_first(accounts_repo):
    out = await accounts_repo.get_login_history("player01", PageOptions(1, 2))
    assert out["login"] == "player01"
    assert [e["time"] for e in out["loginHistory"]] == [1700007200, 1700003600]
    assert out["loginHistory"][0]["date"] == "2023-11-15T00:13:20.000Z"
    assert out["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}


@pytest.mark.asyncio
async def test_delete_removes_account_and_history(accounts_repo, login_db):
    assert await accounts_repo.delete("player01") is True
    assert await accounts_repo.exists("player01") is False
    async with login_db.session() as s:
        rows = (await s.execute(select(AccountLog).where(AccountLog.login == "player01"))).all()
    assert rows == []
    # other accounts' history is untouched
    out = await accounts_repo.get_login_history("admin01", PageOptions())
    assert out["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_ban_then_unban_round_trip(accounts_repo):
    until = int(time.time()) + 3600
    assert await accounts_repo.ban("player03", until) is True
    acc = await accounts_repo.load("player03")
    assert acc["isBanned"] is True
    assert acc["ban_expire"] == until

    banned = await accounts_repo.get_accounts(AccountFilters(is_banned=True), PageOptions())
    assert "player03" in [a["login"] for a in banned["accounts"]]

    assert await accounts_repo.unban("player03") is True
    assert await accounts_repo.unban("player03") is True
    banned = await accounts_repo.get_accounts(AccountFilters(is_banned=True), PageOptions())
    assert "player03" not in [a["login"] for a in banned["accounts"]]
    assert (await accounts_repo.load("player03"))["banExpireDate"] is None


@pytest.mark.asyncio
async def test_seeded_ban_is_far_future(accounts_repo):
    acc = await accounts_repo.load("player01")
    assert acc["ban_expire"] == FAR_FUTURE
    assert acc["isBanned"] is True


@pytest.mark.asyncio
async def test_database_errors_propagate_unchanged(accounts_repo, login_db, monkeypatch, caplog):
    class Boom(Exception):
        pass

    def broken_session():
        raise Boom("db down")

    monkeypatch.setattr(login_db, "session", broken_session)
    caplog.set_level(logging.ERROR)
    with pytest.raises(Boom):
        await accounts_repo.get_accounts(AccountFilters(), PageOptions())
    assert any("repo.accounts.list failed" in r.getMessage() for r in caplog.records)
