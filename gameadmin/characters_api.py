"""Character routes under ``/api/game/characters`` (read-only)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .accounts import AccountsRepository
from .characters import CharactersRepository
from .deps import get_accounts_repo, get_characters_repo
from .errors import NotFoundError, ValidationError
from .filters import is_int_literal, normalize_character_filters, parse_flag, parse_int
from .pagination import PageOptions
from .schemas import (
    AccountCharactersPage,
    CharacterOut,
    CharactersPage,
    ExistsOut,
    ProblemDetail,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/game/characters", tags=["Characters"])

_problem_resp = {
    "application/problem+json": {"schema": ProblemDetail.model_json_schema()},
}


@router.get("/list", response_model=CharactersPage)
async def list_characters(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    char_name: Optional[str] = None,
    account_name: Optional[str] = None,
    clanid: Optional[str] = None,
    online: Optional[str] = None,
    minLevel: Optional[str] = None,
    maxLevel: Optional[str] = None,
    createdAfter: Optional[str] = None,
    createdBefore: Optional[str] = None,
    lastAccessAfter: Optional[str] = None,
    lastAccessBefore: Optional[str] = None,
    sex: Optional[str] = None,
    deletedOnly: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    repo: CharactersRepository = Depends(get_characters_repo),
):
    """Paginated, filterable character list; soft-deleted rows only with ``deletedOnly=true``."""
    filters = normalize_character_filters(
        {
            "char_name": char_name,
            "account_name": account_name,
            "clanid": clanid,
            "online": online,
            "minLevel": minLevel,
            "maxLevel": maxLevel,
            "createdAfter": createdAfter,
            "createdBefore": createdBefore,
            "lastAccessAfter": lastAccessAfter,
            "lastAccessBefore": lastAccessBefore,
            "sex": sex,
            "deletedOnly": deletedOnly,
        }
    )
    return await repo.get_characters(
        filters, PageOptions.from_raw(page, limit), sortBy, sortOrder
    )


@router.get("/stats")
async def character_stats(
    type_: Optional[str] = Query(None, alias="type"),
    repo: CharactersRepository = Depends(get_characters_repo),
):
    """Aggregate stats: ``total`` (default), ``online``, ``by_class``, ``by_clan``, ``by_level``."""
    handlers = {
        "total": repo.get_total_stats,
        "online": repo.get_online_stats,
        "by_class": repo.get_characters_by_class,
        "by_clan": repo.get_characters_by_clan,
        "by_level": repo.get_characters_by_level,
    }
    kind = type_ if type_ in handlers else "total"
    log.debug("route.characters.stats requested=%s resolved=%s", type_, kind)
    return await handlers[kind]()


@router.get(
    "/account/{accountName}",
    response_model=AccountCharactersPage,
    responses={404: {"content": _problem_resp, "model": ProblemDetail}},
)
async def account_characters(
    accountName: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    includDeleted: Optional[str] = None,
    accounts: AccountsRepository = Depends(get_accounts_repo),
    repo: CharactersRepository = Depends(get_characters_repo),
):
    """Characters of one login account, most recently played first."""
    if not await accounts.exists(accountName):
        raise NotFoundError("Account not found")
    return await repo.get_account_characters(
        accountName,
        PageOptions.from_raw(page, limit),
        include_deleted=parse_flag(includDeleted) is True,
    )


@router.get("/{charName}/exists", response_model=ExistsOut)
async def character_exists(
    charName: str, repo: CharactersRepository = Depends(get_characters_repo)
):
    return {"exists": await repo.exists(charName)}


@router.get(
    "/{charId}",
    response_model=CharacterOut,
    responses={
        400: {"content": _problem_resp, "model": ProblemDetail},
        404: {"content": _problem_resp, "model": ProblemDetail},
    },
)
async def character_by_id(
    charId: str, repo: CharactersRepository = Depends(get_characters_repo)
):
    if not is_int_literal(charId):
        raise ValidationError("Invalid character id", "Character id must be a number")
    obj_id = parse_int(charId)
    if obj_id is None:
        # wider than any obj_Id column can hold
        raise NotFoundError("Character not found")
    character = await repo.load_by_id(obj_id)
    if character is None:
        raise NotFoundError("Character not found")
    return character
