from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.api.deps import require_admin
from imam_roster.models.schemas import StartDateResponse, StartDateUpdate
from imam_roster.services.db_service import get_session
from imam_roster.services.settings_service import SettingsService

router = APIRouter()

@router.get("/settings", response_model=Dict[str, str])
async def get_settings(session: AsyncSession = Depends(get_session)):
    return await SettingsService(session).get_settings()

@router.put("/settings/ramadhan-start", response_model=StartDateResponse, dependencies=[Depends(require_admin)])
async def update_ramadhan_start(req: StartDateUpdate, session: AsyncSession = Depends(get_session)):
    date_key = await SettingsService(session).set_start_date(req.date)
    return StartDateResponse(date=date_key)
