"""Password digests in the format the login server stores (base64 of the raw hash)."""

import base64
import hashlib
import logging
from typing import Optional

from .settings import settings

log = logging.getLogger(__name__)

FALLBACK_ALGORITHM = "sha1"

# Login-server names that differ from hashlib's
_ALIASES = {"whirlpool2": "whirlpool"}


def hash_password(password: str, algorithm: Optional[str] = None) -> str:
    """Hash `password` and return the base64-encoded digest.

    `algorithm` defaults to ``DEFAULT_PASSWORD_HASH``. When the interpreter's
    hashlib/OpenSSL build does not provide it, SHA-1 is used instead.
    """
    name = (algorithm or settings.DEFAULT_PASSWORD_HASH or FALLBACK_ALGORITHM).lower()
    name = _ALIASES.get(name, name)
    data = password.encode("utf-8")
    try:
        digest = hashlib.new(name, data).digest()
    except (ValueError, TypeError) as exc:
        log.warning(
            "passwords.unsupported_algorithm algorithm=%s fallback=%s error=%r",
            name,
            FALLBACK_ALGORITHM,
            exc,
        )
        digest = hashlib.new(FALLBACK_ALGORITHM, data).digest()
    return base64.b64encode(digest).decode("ascii")


def ensure_supported(algorithm: str) -> None:
    """Raise RuntimeError when hashlib cannot compute `algorithm`.

    Called at startup for ``DEFAULT_PASSWORD_HASH`` so a missing digest
    (e.g. whirlpool on an OpenSSL 3 build without the legacy provider) stops the
    service instead of silently storing SHA-1 digests.
    """
    name = _ALIASES.get(algorithm.lower(), algorithm.lower())
    try:
        hashlib.new(name)
    except (ValueError, TypeError) as exc:
        raise RuntimeError(f"Password hash {algorithm!r} is not available: {exc}") from exc
