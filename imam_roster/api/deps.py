from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.core.rate_limit import RateLimiter
from imam_roster.core.security import get_bearer_token
from imam_roster.services.auth_service import AdminIdentity, AuthService
from imam_roster.services.db_service import get_session

def get_rate_limiter(request: Request) -> RateLimiter:
    """The limiter is created at startup and can be swapped on app.state."""
    return request.app.state.rate_limiter

def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"

async def require_admin(
    token: str = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_session),
) -> AdminIdentity:
    return await AuthService(session).authenticate(token)
