# --- keep this shim at the very top ---
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# --------------------------------------

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import insert

# Settings are read at import time: pin them before importing the app.
MEMORY_URL = "sqlite+aiosqlite:///:memory:"
os.environ["API_KEY"] = "test-key"
os.environ["LOGIN_DATABASE_URL"] = MEMORY_URL
os.environ["GAME_DATABASE_URL"] = MEMORY_URL
for _k in ("API_KEY_HEADER", "API_KEY_ENABLED", "MAX_PAGE_LIMIT", "EXPOSE_ERROR_DETAILS"):
    os.environ.pop(_k, None)
# Ensure no leftover pool envs confuse SQLAlchemy in tests
os.environ.pop("DB_POOL_SIZE", None)
os.environ.pop("DB_MAX_OVERFLOW", None)

from gameadmin.accounts import AccountsRepository  # noqa: E402
from gameadmin.characters import CharactersRepository  # noqa: E402
from gameadmin.db import Database  # noqa: E402
from gameadmin.models import Account, AccountLog, Character, GameBase, LoginBase  # noqa: E402
import gameadmin.main as app_main  # noqa: E402

API_KEY = "test-key"
AUTH = {"X-API-Key": API_KEY}

# 2100-01-01T00:00:00Z
FAR_FUTURE = 4102444800

ACCOUNTS = [
    {
        "login": "admin01",
        "password": "x",
        "accessLevel": 100,
        "lastactive": 1700000000,
        "lastIP": "10.0.0.1",
        "lastHWID": "hw-aaa",
        "lastServerId": 1,
        "ban_expire": 0,
        "l2email": "admin@example.com",
    },
    {
        "login": "player01",
        "password": "x",
        "accessLevel": 0,
        "lastactive": 1710000000,
        "lastIP": "192.168.1.5",
        "lastHWID": "hw-bbb",
        "lastServerId": 2,
        "ban_expire": FAR_FUTURE,
        "l2email": "p1@example.com",
    },
    {
        "login": "player02",
        "password": "x",
        "accessLevel": 0,
        "lastactive": None,
        "lastIP": "192.168.1.6",
        "lastHWID": None,
        "lastServerId": 1,
        "ban_expire": 1000,
        "l2email": None,
    },
    {
        "login": "player03",
        "password": "x",
        "accessLevel": 0,
        "lastactive": 1720000000,
        "lastIP": "172.16.0.9",
        "lastHWID": "hw-ccc",
        "lastServerId": 2,
        "ban_expire": 0,
        "l2email": None,
    },
]

HISTORY = [
    {"login": "player01", "time": 1700000000, "lastServerId": 1, "ip": "192.168.1.5", "hwid": "hw-bbb"},
    {"login": "player01", "time": 1700003600, "lastServerId": 2, "ip": "192.168.1.5", "hwid": "hw-bbb"},
    {"login": "player01", "time": 1700007200, "lastServerId": 2, "ip": "192.168.1.7", "hwid": "hw-bbb"},
    {"login": "admin01", "time": 1700000500, "lastServerId": 1, "ip": "10.0.0.1", "hwid": "hw-aaa"},
]


def _char(obj_id, name, account, **kw):
    row = {
        "obj_Id": obj_id,
        "char_name": name,
        "account_name": account,
        "sex": 0,
        "x": 0,
        "y": 0,
        "z": 0,
        "base_class_id": 0,
        "clanid": 0,
        "title": None,
        "pvpkills": 0,
        "pkkills": 0,
        "karma": 0,
        "accesslevel": 0,
        "online": 0,
        "onlinetime": 0,
        "createtime": 0,
        "deletetime": 0,
        "lastAccess": 0,
    }
    row.update(kw)
    return row


CHARACTERS = [
    _char(268000001, "Aragorn", "player01", sex=1, base_class_id=5, clanid=100, online=1,
          onlinetime=7200, createtime=1690000000, lastAccess=1710000000, pvpkills=10),
    _char(268000002, "Legolas", "player01", sex=1, base_class_id=12, clanid=100,
          onlinetime=3599, createtime=1691000000, lastAccess=1711000000, pvpkills=25),
    _char(268000003, "Gimli", "player03", sex=1, base_class_id=25,
          createtime=1692000000, lastAccess=1700000000, karma=300),
    _char(268000004, "Boromir", "player01", sex=1, base_class_id=5, clanid=200,
          createtime=1689000000, lastAccess=1712000000, deletetime=1715000000),
    _char(268000005, "Arwen", "admin01", sex=0, base_class_id=31, clanid=200, online=1,
          onlinetime=36000, createtime=1693000000, lastAccess=1713000000, title="Evenstar"),
]


@pytest_asyncio.fixture
async def login_db():
    """Seeded in-memory login database."""
    db = Database(MEMORY_URL, "login")
    await db.create_all(LoginBase.metadata)
    async with db.transaction() as s:
        await s.execute(insert(Account), ACCOUNTS)
        await s.execute(insert(AccountLog), HISTORY)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def game_db():
    """Seeded in-memory game database."""
    db = Database(MEMORY_URL, "game")
    await db.create_all(GameBase.metadata)
    async with db.transaction() as s:
        await s.execute(insert(Character), CHARACTERS)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def accounts_repo(login_db):
    return AccountsRepository(login_db)


@pytest_asyncio.fixture
async def characters_repo(game_db):
    return CharactersRepository(game_db)


def _install_state(monkeypatch, login, game):
    state = app_main.app.state
    monkeypatch.setattr(state, "login_db", login, raising=False)
    monkeypatch.setattr(state, "game_db", game, raising=False)
    monkeypatch.setattr(state, "accounts", AccountsRepository(login), raising=False)
    monkeypatch.setattr(state, "characters", CharactersRepository(game), raising=False)


@pytest_asyncio.fixture
async def test_app(login_db, game_db, monkeypatch):
    # Point the already-imported app at the seeded in-memory databases
    _install_state(monkeypatch, login_db, game_db)
    yield app_main.app


@pytest_asyncio.fixture
async def test_client(test_app):
    """Authenticated async client; unhandled errors come back as 500 responses."""
    transport = httpx.ASGITransport(app=test_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver", headers=AUTH
    ) as c:
        yield c


@pytest.fixture
def sync_client(monkeypatch):
    """TestClient for routes that never reach a database (auth, validation, telemetry).

    The lifespan does not run; the handles below are never connected.
    """
    _install_state(
        monkeypatch, Database(MEMORY_URL, "login"), Database(MEMORY_URL, "game")
    )
    return TestClient(app_main.app, raise_server_exceptions=False)
