from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.api.deps import client_key, get_rate_limiter, require_admin
from imam_roster.core.logger import logger
from imam_roster.core.rate_limit import RateLimiter
from imam_roster.core.security import get_bearer_token
from imam_roster.models.schemas import AdminVerifyResponse, LoginRequest, LoginResponse, SuccessResponse
from imam_roster.services.auth_service import AdminIdentity, AuthService
from imam_roster.services.db_service import get_session

router = APIRouter()

@router.post("/admin/login", response_model=LoginResponse)
async def admin_login(
    req: LoginRequest,
    ip: str = Depends(client_key),
    limiter: RateLimiter = Depends(get_rate_limiter),
    session: AsyncSession = Depends(get_session),
):
    result = await AuthService(session, limiter).login(req.username, req.password, client_key=f"login:{ip}")
    return LoginResponse(token=result.token, username=result.username, expiresAt=result.expires_at)

@router.post("/admin/logout", response_model=SuccessResponse)
async def admin_logout(
    admin: AdminIdentity = Depends(require_admin),
    token: str = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_session),
):
    await AuthService(session).logout(token)
    logger.info(f"👋 Admin logout successful for {admin.username}")
    return SuccessResponse()

@router.get("/admin/verify", response_model=AdminVerifyResponse)
async def admin_verify(admin: AdminIdentity = Depends(require_admin)):
    return AdminVerifyResponse(username=admin.username)
