"""
Owner authentication.
Verifies bearer tokens issued by the external identity provider.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from tribute.core.security import decode_token

security = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    org_id: Optional[str] = None
    org_role: Optional[str] = None


def _user_from_token(token: str) -> CurrentUser:
    payload = decode_token(token)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    return CurrentUser(
        user_id=str(user_id),
        org_id=payload.get("org_id"),
        org_role=payload.get("org_role"),
    )


# Dependency to get current user from JWT
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Extract user from the identity provider's access token."""
    return _user_from_token(credentials.credentials)
