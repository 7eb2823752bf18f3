import datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from imam_roster.core.exceptions import ValidationError
from imam_roster.core.logger import logger
from imam_roster.models.db_models import Setting, utcnow
from imam_roster.services.calendar_service import parse_date_key

START_DATE_KEY = "ramadhanStartDate"


class SettingsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_settings(self) -> Dict[str, str]:
        result = await self.session.execute(select(Setting))
        return {setting.key: setting.value for setting in result.scalars().all()}

    async def get_start_date(self) -> Optional[datetime.date]:
        setting = await self.session.get(Setting, START_DATE_KEY)
        if setting is None or not setting.value:
            return None
        return parse_date_key(setting.value)

    async def set_start_date(self, value: Optional[str]) -> str:
        """
        Store the first day of the 30-day window.
        Existing bookings are kept even if they fall outside the new window.
        """
        if not value:
            raise ValidationError("Date is required")
        date_key = parse_date_key(value).isoformat()

        setting = await self.session.get(Setting, START_DATE_KEY)
        if setting is None:
            setting = Setting(key=START_DATE_KEY, value=date_key)
            self.session.add(setting)
        else:
            setting.value = date_key
            setting.updated_at = utcnow()
        await self.session.commit()

        logger.info(f"📅 Ramadhan start date set to {date_key}")
        return date_key
