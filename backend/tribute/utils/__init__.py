"""Utilities module."""
from tribute.utils.hash import compute_hmac_sha256, derive_key
from tribute.utils.timeutils import utcnow, to_epoch, from_epoch, expires_in_days, earliest

__all__ = [
    "compute_hmac_sha256",
    "derive_key",
    "utcnow",
    "to_epoch",
    "from_epoch",
    "expires_in_days",
    "earliest",
]
