"""FastAPI dependencies handing route handlers the repositories built at startup."""

from fastapi import Request

from .accounts import AccountsRepository
from .characters import CharactersRepository


def get_accounts_repo(request: Request) -> AccountsRepository:
    return request.app.state.accounts


def get_characters_repo(request: Request) -> CharactersRepository:
    return request.app.state.characters
