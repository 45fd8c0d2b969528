"""Derived response fields."""

from gameadmin.enrich import enrich_account, enrich_character, enrich_login_entry, iso_from_unix

NOW = 1_750_000_000


def test_iso_from_unix_format():
    assert iso_from_unix(1704067200) == "2024-01-01T00:00:00.000Z"


def test_iso_from_unix_zero_and_none_are_null():
    assert iso_from_unix(0) is None
    assert iso_from_unix(None) is None


def test_enrich_account_ban_fields():
    row = {"login": "a", "lastactive": None, "ban_expire": NOW + 60}
    out = enrich_account(row, now=NOW)
    assert out["isBanned"] is True
    assert out["banExpireDate"] == iso_from_unix(NOW + 60)
    assert out["lastactiveDate"] is None
    # input is not mutated
    assert "isBanned" not in row


def test_enrich_account_expired_ban_keeps_date_but_not_banned():
    out = enrich_account({"login": "a", "lastactive": 1, "ban_expire": 1000}, now=NOW)
    assert out["isBanned"] is False
    assert out["banExpireDate"] == "1970-01-01T00:16:40.000Z"


def test_enrich_account_never_banned():
    out = enrich_account({"login": "a", "lastactive": 0, "ban_expire": 0}, now=NOW)
    assert out["isBanned"] is False
    assert out["banExpireDate"] is None
    assert out["lastactiveDate"] is None


def test_enrich_character_derived_fields():
    out = enrich_character(
        {
            "createtime": 1704067200,
            "deletetime": 0,
            "lastAccess": 0,
            "online": 1,
            "sex": 1,
            "onlinetime": 7199,
        }
    )
    assert out["createDate"] == "2024-01-01T00:00:00.000Z"
    assert out["deleteDate"] is None
    assert out["lastAccessDate"] is None
    assert out["isOnline"] is True
    assert out["isDeleted"] is False
    assert out["gender"] == "male"
    assert out["onlineTimeHours"] == 1


def test_enrich_character_deleted_female():
    out = enrich_character({"deletetime": 1704067200, "sex": 0, "online": 0, "onlinetime": None})
    assert out["isDeleted"] is True
    assert out["deleteDate"] == "2024-01-01T00:00:00.000Z"
    assert out["gender"] == "female"
    assert out["isOnline"] is False
    assert out["onlineTimeHours"] == 0


def test_enrich_login_entry_adds_date():
    out = enrich_login_entry({"time": 1704067200, "ip": "1.2.3.4"})
    assert out == {"time": 1704067200, "ip": "1.2.3.4", "date": "2024-01-01T00:00:00.000Z"}
