"""
Error taxonomy for guest access.

Every guest-path failure is an AuthError subclass carrying a stable ``code``
(returned to clients), an HTTP ``status_code`` and the user-facing
``outcome`` the frontend should render.
"""


class Outcome:
    """User-facing outcomes an AuthError maps to."""

    REJECT = "reject"
    REAUTHENTICATE = "reauthenticate"
    OPEN_SESSION = "open_session"
    ENTER_PASSWORD = "enter_password"
    LINK_UNAVAILABLE = "link_unavailable"
    READ_ONLY = "read_only"
    TRY_LATER = "try_later"


class AuthError(Exception):
    """Base class for categorized guest authorization failures."""

    code = "auth_error"
    status_code = 401
    outcome = Outcome.REJECT
    default_message = "Access denied"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "outcome": self.outcome, "detail": self.message}


# Token level

class MalformedToken(AuthError):
    code = "malformed_token"
    default_message = "Token is malformed"


class InvalidSignature(AuthError):
    code = "invalid_signature"
    default_message = "Token signature is invalid"


class Expired(AuthError):
    code = "expired"
    outcome = Outcome.REAUTHENTICATE
    default_message = "Session expired. Please open the link again."


class TokenRequired(AuthError):
    code = "token_required"
    outcome = Outcome.OPEN_SESSION
    default_message = "Open the share link to continue"


# Authorization level

class LinkNotFound(AuthError):
    code = "link_not_found"
    status_code = 404
    outcome = Outcome.LINK_UNAVAILABLE
    default_message = "Share link not found"


class LinkRevoked(AuthError):
    code = "link_revoked"
    status_code = 410
    outcome = Outcome.LINK_UNAVAILABLE
    default_message = "This link is no longer available"


class LinkExpired(AuthError):
    code = "link_expired"
    status_code = 410
    outcome = Outcome.LINK_UNAVAILABLE
    default_message = "This link has expired"


class ResourceGone(AuthError):
    code = "resource_gone"
    status_code = 410
    outcome = Outcome.LINK_UNAVAILABLE
    default_message = "The shared item has been removed"


class PermissionInsufficient(AuthError):
    code = "permission_insufficient"
    status_code = 403
    outcome = Outcome.READ_ONLY
    default_message = "This link does not allow that action"


# Password level

class PasswordRequired(AuthError):
    code = "password_required"
    outcome = Outcome.ENTER_PASSWORD
    default_message = "This link is password protected"


class WrongPassword(AuthError):
    code = "wrong_password"
    outcome = Outcome.ENTER_PASSWORD
    default_message = "Incorrect password"


# Abuse mitigation

class RateLimited(AuthError):
    code = "rate_limited"
    status_code = 429
    outcome = Outcome.TRY_LATER
    default_message = "Too many attempts. Please try again later."

    def __init__(self, message: str = None, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after


class WriteFailed(Exception):
    """A guest or owner write could not be persisted; the caller may retry."""

    def __init__(self, message: str = "Failed to save. Please try again."):
        self.message = message
        super().__init__(message)
