"""Account routes under ``/api/login/account``.

Static paths (``/list``, ``/register``, ``/change-password``) are declared
before the ``/{login}`` routes so they are matched first.
"""

import logging
import time
from datetime import timezone
from typing import Optional

from fastapi import APIRouter, Depends

from .accounts import AccountsRepository, AccountUpdate
from .deps import get_accounts_repo
from .enrich import iso_from_unix
from .errors import ConflictError, NotFoundError, ValidationError
from .filters import normalize_account_filters
from .pagination import PageOptions
from .passwords import hash_password
from .schemas import (
    AccountOut,
    AccountsPage,
    BanIn,
    BanOut,
    ChangePasswordIn,
    LoginHistoryPage,
    MessageOut,
    ProblemDetail,
    RegisterIn,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/login/account", tags=["Account"])

_problem_resp = {
    "application/problem+json": {"schema": ProblemDetail.model_json_schema()},
}


def _responses(*codes: int):
    return {c: {"content": _problem_resp, "model": ProblemDetail} for c in codes}


ACCOUNT_NOT_FOUND = "Account not found"


async def _require_account(repo: AccountsRepository, login: str) -> None:
    if not await repo.exists(login):
        raise NotFoundError(ACCOUNT_NOT_FOUND)


@router.post(
    "/register",
    status_code=201,
    response_model=MessageOut,
    responses=_responses(400, 409),
)
async def register(body: RegisterIn, repo: AccountsRepository = Depends(get_accounts_repo)):
    """Create an account with access level 0 and no last-active time."""
    if await repo.exists(body.login):
        raise ConflictError("Account with this login already exists")
    await repo.create(body.login, hash_password(body.password), body.email)
    log.info("route.account.register login=%s", body.login)
    return {"success": True, "message": "Account created"}


@router.put(
    "/change-password",
    response_model=MessageOut,
    responses=_responses(400, 404),
)
async def change_password(
    body: ChangePasswordIn, repo: AccountsRepository = Depends(get_accounts_repo)
):
    """Replace the password digest; the current password is not required."""
    await _require_account(repo, body.login)
    await repo.update(body.login, AccountUpdate(password=hash_password(body.newPassword)))
    log.info("route.account.change_password login=%s", body.login)
    return {"success": True, "message": "Password changed"}


@router.get("/list", response_model=AccountsPage)
async def list_accounts(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    login: Optional[str] = None,
    email: Optional[str] = None,
    lastIP: Optional[str] = None,
    lastHWID: Optional[str] = None,
    lastServerId: Optional[str] = None,
    accessLevel: Optional[str] = None,
    lastActiveFrom: Optional[str] = None,
    lastActiveTo: Optional[str] = None,
    isBanned: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    repo: AccountsRepository = Depends(get_accounts_repo),
):
    """Paginated, filterable account list.

    Dates accept ``YYYY-MM-DD`` or Unix seconds. Unknown sort fields and
    malformed values fall back to defaults instead of failing the request.
    """
    filters = normalize_account_filters(
        {
            "login": login,
            "email": email,
            "lastIP": lastIP,
            "lastHWID": lastHWID,
            "lastServerId": lastServerId,
            "accessLevel": accessLevel,
            "lastActiveFrom": lastActiveFrom,
            "lastActiveTo": lastActiveTo,
            "isBanned": isBanned,
        }
    )
    return await repo.get_accounts(
        filters, PageOptions.from_raw(page, limit), sortBy, sortOrder
    )


@router.get(
    "/{login}/history",
    response_model=LoginHistoryPage,
    responses=_responses(404),
)
async def login_history(
    login: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    repo: AccountsRepository = Depends(get_accounts_repo),
):
    """Login events for one account, newest first."""
    await _require_account(repo, login)
    return await repo.get_login_history(login, PageOptions.from_raw(page, limit))


@router.get("/{login}", response_model=AccountOut, responses=_responses(404))
async def load_account(login: str, repo: AccountsRepository = Depends(get_accounts_repo)):
    account = await repo.load(login)
    if account is None:
        raise NotFoundError(ACCOUNT_NOT_FOUND)
    return account


@router.delete("/{login}", response_model=MessageOut, responses=_responses(404))
async def delete_account(login: str, repo: AccountsRepository = Depends(get_accounts_repo)):
    """Delete the account together with its login history."""
    await _require_account(repo, login)
    await repo.delete(login)
    return {"success": True, "message": "Account deleted"}


@router.post("/{login}/ban", response_model=BanOut, responses=_responses(400, 404))
async def ban_account(
    login: str, body: BanIn, repo: AccountsRepository = Depends(get_accounts_repo)
):
    """Ban until `banExpire`, which must lie in the future."""
    await _require_account(repo, login)

    expire = body.banExpire
    if expire.tzinfo is None:
        expire = expire.replace(tzinfo=timezone.utc)
    until = int(expire.timestamp())
    if until <= int(time.time()):
        raise ValidationError("Invalid ban request", "banExpire must be in the future")

    await repo.ban(login, until)
    log.info(
        "route.account.ban login=%s until=%d reason=%r", login, until, body.reason
    )
    return {
        "success": True,
        "message": "Account banned",
        "banExpireDate": iso_from_unix(until),
    }


@router.post("/{login}/unban", response_model=MessageOut, responses=_responses(404))
async def unban_account(login: str, repo: AccountsRepository = Depends(get_accounts_repo)):
    await _require_account(repo, login)
    await repo.unban(login)
    return {"success": True, "message": "Account unbanned"}
