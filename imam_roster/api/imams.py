from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.api.deps import client_key, get_rate_limiter, require_admin
from imam_roster.core.exceptions import AuthenticationError, RateLimitedError
from imam_roster.core.logger import logger
from imam_roster.core.rate_limit import RateLimiter
from imam_roster.models.schemas import (
    AccessCodeVerify,
    ImamCreate,
    ImamProfile,
    ImamUpdate,
    ImamWithCode,
    SuccessResponse,
)
from imam_roster.services.auth_service import AdminIdentity
from imam_roster.services.db_service import get_session
from imam_roster.services.imam_service import ImamRecord, ImamService

router = APIRouter()

def _profile(record: ImamRecord) -> ImamProfile:
    return ImamProfile(
        id=record.id, name=record.name, quota=record.quota, booked=record.booked, createdAt=record.created_at
    )

def _with_code(record: ImamRecord) -> ImamWithCode:
    return ImamWithCode(**_profile(record).model_dump(), accessCode=record.access_code)

@router.get("/imams", response_model=List[ImamProfile])
async def list_imams(session: AsyncSession = Depends(get_session)):
    return [_profile(record) for record in await ImamService(session).list_imams()]

@router.get("/admin/imams", response_model=List[ImamWithCode], dependencies=[Depends(require_admin)])
async def list_imams_with_codes(session: AsyncSession = Depends(get_session)):
    return [_with_code(record) for record in await ImamService(session).list_imams()]

@router.post("/imams", response_model=ImamWithCode, status_code=status.HTTP_201_CREATED)
async def create_imam(
    req: ImamCreate,
    admin: AdminIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    record = await ImamService(session).create_imam(req.name, req.quota)
    logger.info(f"👤 {admin.username} registered imam {record.id}")
    return _with_code(record)

@router.patch("/imams/{imam_id}", response_model=ImamWithCode, dependencies=[Depends(require_admin)])
async def update_imam(imam_id: int, req: ImamUpdate, session: AsyncSession = Depends(get_session)):
    return _with_code(await ImamService(session).update_imam(imam_id, name=req.name, quota=req.quota))

@router.delete("/imams/{imam_id}", response_model=SuccessResponse, dependencies=[Depends(require_admin)])
async def delete_imam(imam_id: int, session: AsyncSession = Depends(get_session)):
    await ImamService(session).delete_imam(imam_id)
    return SuccessResponse()

@router.post("/auth/verify", response_model=ImamProfile)
async def verify_access_code(
    req: AccessCodeVerify,
    ip: str = Depends(client_key),
    limiter: RateLimiter = Depends(get_rate_limiter),
    session: AsyncSession = Depends(get_session),
):
    key = f"access-code:{ip}"
    if not limiter.allow(key):
        logger.warning(f"🚫 Too many access code attempts from {ip}")
        raise RateLimitedError("Too many attempts. Please try again later.")
    try:
        record = await ImamService(session).verify_access_code(req.accessCode)
    except AuthenticationError:
        limiter.record_failure(key)
        raise
    limiter.reset(key)
    return _profile(record)
