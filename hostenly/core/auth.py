"""Bearer-token authentication for host endpoints.

Tokens are Supabase access tokens; the Supabase user id is the account id.
"""

import asyncio
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from hostenly.core.logging import get_logger
from hostenly.db.supabase_client import get_supabase

logger = get_logger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


class AuthContext:
    """Authenticated host account."""

    def __init__(self, account_id: UUID, token: str, email: str | None = None):
        self.account_id = account_id
        self.token = token
        self.email = email

    def owns(self, account_id: UUID) -> bool:
        return self.account_id == account_id


def get_supabase_client() -> Client:
    """FastAPI dependency wrapper so tests can override the client."""
    return get_supabase()


async def require_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    supabase: Client = Depends(get_supabase_client),
) -> AuthContext:
    """
    Resolve the calling account from its bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    try:
        auth_response = await asyncio.to_thread(supabase.auth.get_user, token)
    except Exception as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    if not auth_response or not auth_response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = auth_response.user
    return AuthContext(account_id=UUID(str(user.id)), token=token, email=user.email)
