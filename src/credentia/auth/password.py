"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt generates a random
salt on every call, so hashing the same password twice gives two different
hashes that both verify. The work factor defaults to 12 (~100ms per hash
on modern hardware); tests turn it down to the minimum of 4.

These functions are CPU-bound and synchronous. Async callers run them in
a worker thread (asyncio.to_thread) so the event loop keeps serving.
"""

import secrets
from typing import Optional

import bcrypt
import structlog

logger = structlog.get_logger()

DEFAULT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of input.
_MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with bcrypt.

    Learn: Output is always 60 characters and starts with "$2b$".
    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = _encode(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a password against its stored hash.

    Recomputes the digest with the stored salt and compares the digests
    in constant time. A stored hash that bcrypt cannot parse is a data
    integrity problem, not a wrong password: it is logged separately and
    the check fails closed.
    """
    if not password_hash:
        logger.warning("password.malformed_hash", reason="empty")
        return False
    try:
        hash_bytes = password_hash.encode("utf-8")
        candidate = bcrypt.hashpw(_encode(password), hash_bytes)
    except (ValueError, TypeError) as e:
        logger.warning("password.malformed_hash", reason=str(e))
        return False
    return secrets.compare_digest(candidate, hash_bytes)


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
