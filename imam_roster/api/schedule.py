from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.models.schemas import ScheduleDay, ScheduleResponse
from imam_roster.services.booking_service import BookingService
from imam_roster.services.calendar_service import generate_days
from imam_roster.services.db_service import get_session
from imam_roster.services.imam_service import ImamService
from imam_roster.services.settings_service import SettingsService

router = APIRouter()

@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(session: AsyncSession = Depends(get_session)):
    """
    The 30-day window joined with the current bookings, read-only.
    `configured` is False until an admin sets the start date.
    """
    start_date = await SettingsService(session).get_start_date()
    if start_date is None:
        return ScheduleResponse(configured=False)

    bookings = await BookingService(session).get_bookings()
    names = {record.id: record.name for record in await ImamService(session).list_imams()}

    days = []
    for day in generate_days(start_date):
        imam_id = bookings.get(day.date_key)
        days.append(ScheduleDay(
            dateKey=day.date_key,
            weekday=day.weekday,
            cycleDay=day.cycle_day,
            hijriDay=day.hijri_day,
            hijriMonth=day.hijri_month,
            hijriYear=day.hijri_year,
            gregorianDay=day.gregorian_day,
            gregorianMonth=day.gregorian_month,
            gregorianYear=day.gregorian_year,
            imamId=imam_id,
            imamName=names.get(imam_id),
        ))
    return ScheduleResponse(configured=True, startDate=start_date.isoformat(), days=days)
