"""ORM models (SQLAlchemy 2.0).

Mirrors the tables owned by the game's login server and game server. Column
names follow the server schema verbatim (``accessLevel``, ``obj_Id``,
``lastAccess`` ...) because the tables are shared with the servers themselves.
"""

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import BigInteger, Integer, SmallInteger, String


class LoginBase(DeclarativeBase):
    """Declarative base for tables in the login database."""

    pass


class GameBase(DeclarativeBase):
    """Declarative base for tables in the game database."""

    pass


class Account(LoginBase):
    """Login account.

    Columns:
        login: Unique account name (primary key).
        password: Base64 password digest, never exposed by the API.
        accessLevel: Privilege tier, 0 for regular players.
        lastactive: Unix seconds of the last login, NULL if never.
        ban_expire: Unix seconds the ban ends at; 0 or a past value means not banned.
        l2email: Optional contact email (exposed as ``email``).
    """

    __tablename__ = "accounts"

    login: Mapped[str] = mapped_column(String(45), primary_key=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    accessLevel: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lastactive: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    lastIP: Mapped[str | None] = mapped_column(String(45), nullable=True)
    lastHWID: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lastServerId: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ban_expire: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    l2email: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AccountLog(LoginBase):
    """One login event. The server table has no surrogate key, so (login, time) maps it."""

    __tablename__ = "account_log"

    login: Mapped[str] = mapped_column(String(45), primary_key=True)
    time: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    lastServerId: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    hwid: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Character(GameBase):
    """Player character, created and mutated by the game server only."""

    __tablename__ = "characters"

    obj_Id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    char_name: Mapped[str] = mapped_column(String(35), nullable=False, unique=True)
    account_name: Mapped[str] = mapped_column(String(45), nullable=False, index=True)
    sex: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    z: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    base_class_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clanid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str | None] = mapped_column(String(16), nullable=True)
    pvpkills: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pkkills: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    karma: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accesslevel: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    online: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    onlinetime: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    createtime: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    deletetime: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    lastAccess: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
