"""
Utility functions for computing keyed hashes.
"""
import hashlib
import hmac


def compute_hmac_sha256(key: bytes, data: str) -> str:
    """
    Compute a keyed HMAC-SHA256 of a string.

    Args:
        key: Secret key bytes
        data: Text to authenticate (UTF-8 encoded before hashing)

    Returns:
        Hex-encoded digest string
    """
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).hexdigest()


def derive_key(secret: str, purpose: str) -> bytes:
    """Derive a purpose-specific subkey so one secret never signs two kinds of data."""
    return hmac.new(secret.encode("utf-8"), purpose.encode("utf-8"), hashlib.sha256).digest()
