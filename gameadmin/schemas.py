"""Pydantic schemas for API request/response bodies."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Requests ---


class RegisterIn(BaseModel):
    login: str = Field(min_length=4, max_length=32)
    password: str = Field(min_length=6, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordIn(BaseModel):
    login: str = Field(min_length=1)
    newPassword: str = Field(min_length=6, max_length=32)


class BanIn(BaseModel):
    """Ban request. Naive datetimes are read as UTC; Unix seconds are accepted too."""

    banExpire: datetime
    reason: Optional[str] = None


# --- Responses ---


class MessageOut(BaseModel):
    success: bool = True
    message: str


class BanOut(MessageOut):
    banExpireDate: str


class ExistsOut(BaseModel):
    exists: bool


class PaginationOut(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class AccountOut(BaseModel):
    login: str
    accessLevel: int
    lastactive: Optional[int] = None
    lastIP: Optional[str] = None
    lastHWID: Optional[str] = None
    lastServerId: Optional[int] = None
    ban_expire: int = 0
    email: Optional[str] = None
    lastactiveDate: Optional[str] = None
    isBanned: bool
    banExpireDate: Optional[str] = None


class AccountsPage(BaseModel):
    accounts: List[AccountOut]
    pagination: PaginationOut


class LoginHistoryEntryOut(BaseModel):
    time: int
    lastServerId: Optional[int] = None
    ip: Optional[str] = None
    hwid: Optional[str] = None
    date: Optional[str] = None


class LoginHistoryPage(BaseModel):
    login: str
    loginHistory: List[LoginHistoryEntryOut]
    pagination: PaginationOut


class CharacterOut(BaseModel):
    """Character row plus derived fields; lookups by id carry every column."""

    model_config = ConfigDict(extra="allow")

    obj_Id: int
    char_name: str
    account_name: Optional[str] = None
    createDate: Optional[str] = None
    deleteDate: Optional[str] = None
    lastAccessDate: Optional[str] = None
    isOnline: bool
    isDeleted: bool
    gender: Literal["male", "female"]
    onlineTimeHours: int


class CharactersPage(BaseModel):
    characters: List[CharacterOut]
    pagination: PaginationOut


class AccountCharactersPage(CharactersPage):
    accountName: str


class HealthcheckOut(BaseModel):
    status: Literal["ok", "degraded"]
    login_db_ok: bool
    game_db_ok: bool


class ProblemDetail(BaseModel):
    """RFC 7807-style problem response with ``error``/``details`` extensions."""

    type: str = "about:blank"
    title: str
    status: int
    error: str
    details: Optional[str] = None
