"""
Guest token codec.

Guest tokens are compact HS256 JWS strings (``header.payload.signature``)
carrying the share link id, a client fingerprint and issue/expiry times.
Nothing is stored server side; a token is trusted only after its signature and
claims check out, and the share link it names is still re-checked on every
request by the resolver.
"""
import binascii
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import jwt, JWTError
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode, base64url_encode

from tribute.core.config import settings
from tribute.core.errors import Expired, InvalidSignature, MalformedToken
from tribute.utils.hash import compute_hmac_sha256, derive_key
from tribute.utils.timeutils import earliest, from_epoch, to_epoch, utcnow

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_ISSUER = "tribute"
JWT_AUDIENCE = "guest"

# Bound on raw client identifiers before hashing
MAX_CLIENT_ID_LENGTH = 256


@dataclass(frozen=True)
class GuestClaims:
    share_link_id: uuid.UUID
    fingerprint: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: GuestClaims


class GuestTokenCodec:
    def __init__(self, secret: str = None, clock: Callable[[], datetime] = utcnow):
        secret = secret or settings.SHARE_LINK_SECRET
        if not secret:
            raise ValueError("SHARE_LINK_SECRET must be set")
        self._signing_key = derive_key(secret, "guest-token").hex()
        self._fingerprint_key = derive_key(secret, "guest-fingerprint")
        self.clock = clock

    def issue(
        self,
        share_link_id: uuid.UUID,
        fingerprint: str,
        ttl_seconds: int,
        not_after: Optional[datetime] = None,
    ) -> IssuedToken:
        """
        Sign a token for a share link.

        ``not_after`` caps the expiry (e.g. the link's own expiry); the earlier
        of it and ``now + ttl_seconds`` wins.
        """
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        if not fingerprint:
            raise ValueError("fingerprint is required")

        issued_at = self.clock().replace(microsecond=0)
        expires_at = earliest(issued_at + timedelta(seconds=ttl_seconds), not_after).replace(microsecond=0)

        payload = {
            "sub": str(share_link_id),
            "fp": fingerprint,
            "iat": to_epoch(issued_at),
            "exp": to_epoch(expires_at),
            "iss": JWT_ISSUER,
            "aud": JWT_AUDIENCE,
        }
        token = jwt.encode(payload, self._signing_key, algorithm=JWT_ALGORITHM)
        claims = GuestClaims(
            share_link_id=uuid.UUID(str(share_link_id)),
            fingerprint=fingerprint,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return IssuedToken(token=token, claims=claims)

    def verify(self, token: str) -> GuestClaims:
        """
        Verify a token and return its claims.

        Raises MalformedToken, InvalidSignature or Expired. The signature is
        checked before expiry, so only authentic tokens are ever reported as
        Expired.
        """
        if not token or not isinstance(token, str):
            raise MalformedToken()

        claims = self._parse_claims(token)

        try:
            # Expiry is checked below against the injected clock
            jwt.decode(
                token,
                self._signing_key,
                algorithms=[JWT_ALGORITHM],
                audience=JWT_AUDIENCE,
                issuer=JWT_ISSUER,
                options={"verify_exp": False},
            )
        except JWTClaimsError as e:
            logger.warning(f"Guest token claim validation failed: {e}")
            raise MalformedToken()
        except JWTError:
            raise InvalidSignature()

        if self.clock() > claims.expires_at:
            raise Expired()

        return claims

    def fingerprint(self, raw_identifier: str) -> str:
        """
        One-way fingerprint of a client-supplied identifier (a random value the
        browser keeps in a cookie). Keyed so it cannot be recomputed without
        the deployment secret.
        """
        if not raw_identifier or not raw_identifier.strip():
            raise MalformedToken("Client identifier is required")
        raw_identifier = raw_identifier.strip()[:MAX_CLIENT_ID_LENGTH]
        return compute_hmac_sha256(self._fingerprint_key, raw_identifier)

    def _parse_claims(self, token: str) -> GuestClaims:
        segments = token.split(".")
        if len(segments) != 3 or not all(segments):
            raise MalformedToken()

        # Reject non-canonical base64url so no two strings verify as one token
        header_seg, payload_seg, signature_seg = segments
        if not _is_canonical(header_seg) or not _is_canonical(payload_seg):
            raise MalformedToken()
        if not _is_canonical(signature_seg):
            raise InvalidSignature()

        try:
            header = jwt.get_unverified_header(token)
            raw = jwt.get_unverified_claims(token)
        except JWTError:
            raise MalformedToken()

        if header.get("alg") != JWT_ALGORITHM:
            raise InvalidSignature()

        try:
            share_link_id = uuid.UUID(str(raw["sub"]))
            fingerprint = raw["fp"]
            issued_at = from_epoch(raw["iat"])
            expires_at = from_epoch(raw["exp"])
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            raise MalformedToken()

        if not isinstance(fingerprint, str) or not fingerprint:
            raise MalformedToken()

        return GuestClaims(
            share_link_id=share_link_id,
            fingerprint=fingerprint,
            issued_at=issued_at,
            expires_at=expires_at,
        )


def _is_canonical(segment: str) -> bool:
    if not segment:
        return False
    try:
        raw = segment.encode("ascii")
        return base64url_encode(base64url_decode(raw)) == raw
    except (UnicodeEncodeError, binascii.Error, ValueError):
        return False


def extract_guest_token(value: Optional[str]) -> Optional[str]:
    """Accept a raw token or a "Bearer <token>" value; None when absent."""
    if not value:
        return None
    value = value.strip()
    if value.startswith("Bearer "):
        value = value[7:].strip()
    return value or None


def guest_cookie_name(share_key: str) -> str:
    """One cookie per share link, so opening a second link keeps the first session."""
    return f"{settings.GUEST_TOKEN_COOKIE}_{share_key}"


def guest_cookie_options(claims: GuestClaims, share_key: str, now: Optional[datetime] = None) -> dict:
    """
    Cookie attributes for a guest token, aligned to the token's own expiry.
    The cookie lifetime is a delivery convenience; the token claims stay
    authoritative.
    """
    now = now or utcnow()
    max_age = max(int((claims.expires_at - now).total_seconds()), 0)
    return {
        "key": guest_cookie_name(share_key),
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
        "max_age": max_age,
        "expires": max_age,
    }


_codec: Optional[GuestTokenCodec] = None


def get_guest_token_codec() -> GuestTokenCodec:
    """Process-wide codec built from settings."""
    global _codec
    if _codec is None:
        _codec = GuestTokenCodec()
    return _codec
