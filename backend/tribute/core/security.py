"""
Security helpers: share-link password hashing and identity-provider tokens.
"""
import logging
from typing import Optional

import bcrypt
from jose import jwt, JWTError

from tribute.core.config import settings

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72

# Checked against when a link has no password so both paths cost one bcrypt round
_DUMMY_HASH = bcrypt.hashpw(b"tribute-dummy-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    """Hash a share-link password with a per-hash random salt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    """
    Verify a submitted password against a stored bcrypt hash.

    When no hash is stored a dummy comparison still runs and the result is
    always False.
    """
    if not password_hash:
        bcrypt.checkpw(_encode_password(plain_password or ""), _DUMMY_HASH.encode("utf-8"))
        return False
    try:
        return bcrypt.checkpw(_encode_password(plain_password or ""), password_hash.encode("utf-8"))
    except ValueError:
        logger.error("Stored share-link password hash is not a valid bcrypt hash")
        return False


def decode_token(token: str) -> Optional[dict]:
    """
    Decode a bearer token issued by the identity provider.

    Returns the claims dict, or None if the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.IDENTITY_JWT_SECRET,
            algorithms=[settings.IDENTITY_JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        return None
