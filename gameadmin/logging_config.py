"""Process-wide logging setup (stdlib ``logging.config.dictConfig``).

Env:
    LOG_LEVEL       root level (default INFO)
    LOG_FILE_PATH   optional file, reopened after logrotate (WatchedFileHandler)
    LOG_LEVELS      per-logger overrides, e.g. "gameadmin.accounts=DEBUG,uvicorn.access=WARNING"
    SQL_ECHO        "true" to log every SQL statement (sqlalchemy.engine at INFO)
"""

import os
import logging
import logging.config
from pathlib import Path
from typing import Dict, Any

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Server-side loggers that follow LOG_LEVEL unless LOG_LEVELS says otherwise
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}

_configured = False


def _parse_overrides(raw: str | None) -> Dict[str, str]:
    """``"a=DEBUG, b=warning"`` -> ``{"a": "DEBUG", "b": "WARNING"}``; malformed pairs are skipped."""
    out: Dict[str, str] = {}
    for pair in (raw or "").split(","):
        name, sep, lvl = pair.partition("=")
        name, lvl = name.strip(), lvl.strip().upper()
        if sep and name and lvl in _LEVELS:
            out[name] = lvl
    return out


def _build_dict_config(
    log_file: str | None,
    level: str,
    sql_echo: bool = False,
    overrides: Dict[str, str] | None = None,
) -> Dict[str, Any]:
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "std",
        }
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": log_file,
            "formatter": "std",
        }

    sql_level = "INFO" if sql_echo else "WARNING"
    loggers: Dict[str, Any] = {
        "sqlalchemy.engine": {"level": sql_level},
        "sqlalchemy.pool": {"level": sql_level},
    }
    for name, lvl in (overrides or {}).items():
        loggers[name] = {"level": lvl}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"std": {"format": FORMAT}},
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": level, "handlers": list(handlers)},
    }


def configure_logging() -> None:
    """Configure console (and optional file) logging once per process."""
    global _configured
    if _configured:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    overrides = _parse_overrides(os.getenv("LOG_LEVELS"))
    cfg = _build_dict_config(
        log_file=os.getenv("LOG_FILE_PATH") or None,
        level=level,
        sql_echo=os.getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes"),
        overrides=overrides,
    )
    logging.config.dictConfig(cfg)

    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(overrides.get(name, level))

    _configured = True
