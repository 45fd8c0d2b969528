from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Databases (async SQLAlchemy URLs, e.g. mysql+aiomysql://user:pw@host/l2jls)
    LOGIN_DATABASE_URL: str = "sqlite+aiosqlite:///./login.db"
    GAME_DATABASE_URL: str = "sqlite+aiosqlite:///./game.db"
    DB_WAIT_FOR_DB: bool = False
    DB_CREATE_SCHEMA: bool = False  # dev only; the game server owns the real schema

    # API key guard for /api/**
    API_KEY: str | None = None
    API_KEY_HEADER: str = "X-API-Key"
    API_KEY_ENABLED: bool = True

    # API
    MAX_PAGE_LIMIT: int = 100
    EXPOSE_ERROR_DETAILS: bool = False

    # Must match the game server's login config
    DEFAULT_PASSWORD_HASH: str = "sha1"

    class Config:
        env_file = ".env"


settings = Settings()
