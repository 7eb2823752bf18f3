from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from imam_roster.core.config import settings
from imam_roster.core.exceptions import (
    AccessCodeExhaustedError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from imam_roster.core.logger import logger
from imam_roster.core.security import generate_access_code
from imam_roster.models.db_models import Booking, Imam
from imam_roster.services.booking_service import BookingService


@dataclass(frozen=True)
class ImamRecord:
    id: int
    name: str
    quota: int
    booked: int
    access_code: str
    created_at: Optional[datetime] = None


class ImamService:
    def __init__(self, session: AsyncSession, code_generator: Callable[[], str] = generate_access_code):
        self.session = session
        self.code_generator = code_generator
        self.bookings = BookingService(session)

    def _record(self, imam: Imam, booked: int) -> ImamRecord:
        return ImamRecord(
            id=imam.id,
            name=imam.name,
            quota=imam.quota,
            booked=booked,
            access_code=imam.access_code,
            created_at=imam.created_at,
        )

    def _validate_name(self, name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        return name

    def _validate_quota(self, quota) -> int:
        if quota is None:
            raise ValidationError("Quota is required")
        if isinstance(quota, bool) or not isinstance(quota, int):
            raise ValidationError("Quota must be a whole number")
        if quota < settings.MIN_QUOTA or quota > settings.MAX_QUOTA:
            raise ValidationError(f"Quota must be between {settings.MIN_QUOTA} and {settings.MAX_QUOTA}")
        return quota

    async def _code_in_use(self, code: str) -> bool:
        result = await self.session.execute(select(Imam.id).where(Imam.access_code == code))
        return result.first() is not None

    async def _unique_access_code(self) -> str:
        for _ in range(settings.ACCESS_CODE_MAX_RETRIES):
            code = self.code_generator()
            if not await self._code_in_use(code):
                return code
        logger.error(f"❌ No free access code after {settings.ACCESS_CODE_MAX_RETRIES} attempts")
        raise AccessCodeExhaustedError("Failed to generate unique access code. Please try again.")

    async def list_imams(self) -> List[ImamRecord]:
        """All imams, newest first, with their current booked-day count."""
        result = await self.session.execute(select(Imam).order_by(Imam.created_at.desc(), Imam.id.desc()))
        counts = await self.bookings.booked_counts()
        return [self._record(imam, counts.get(imam.id, 0)) for imam in result.scalars().all()]

    async def get_imam(self, imam_id: int) -> ImamRecord:
        imam = await self.session.get(Imam, imam_id)
        if imam is None:
            raise NotFoundError("Imam not found")
        return self._record(imam, await self.bookings.booked_count(imam.id))

    async def create_imam(self, name: Optional[str], quota) -> ImamRecord:
        name = self._validate_name(name)
        quota = self._validate_quota(quota)
        code = await self._unique_access_code()

        imam = Imam(name=name, access_code=code, quota=quota)
        self.session.add(imam)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request took the same code between our check and insert
            await self.session.rollback()
            raise AccessCodeExhaustedError("Failed to generate unique access code. Please try again.")
        await self.session.refresh(imam)

        logger.info(f"🆕 Imam created: {imam.name} (ID {imam.id}, quota {imam.quota})")
        return self._record(imam, 0)

    async def update_imam(self, imam_id: int, name: Optional[str] = None, quota=None) -> ImamRecord:
        imam = await self.session.get(Imam, imam_id)
        if imam is None:
            raise NotFoundError("Imam not found")

        booked = await self.bookings.booked_count(imam.id)
        if name is not None:
            imam.name = self._validate_name(name)
        if quota is not None:
            quota = self._validate_quota(quota)
            if quota < booked:
                raise ConflictError(f"Imam already has {booked} booked days; free some before lowering the quota to {quota}")
            imam.quota = quota

        await self.session.commit()
        logger.info(f"✏️ Imam {imam.id} updated: {imam.name}, quota {imam.quota}")
        return self._record(imam, booked)

    async def delete_imam(self, imam_id: int) -> None:
        """Remove the imam and every day they hold, in one transaction."""
        imam = await self.session.get(Imam, imam_id)
        if imam is None:
            raise NotFoundError("Imam not found")

        freed = await self.session.execute(delete(Booking).where(Booking.imam_id == imam.id))
        await self.session.delete(imam)
        await self.session.commit()
        logger.info(f"🗑️ Imam {imam_id} deleted, {freed.rowcount} booking(s) freed")

    async def verify_access_code(self, access_code: Optional[str]) -> ImamRecord:
        code = (access_code or "").strip()
        if not code:
            raise ValidationError("Access code is required")

        result = await self.session.execute(select(Imam).where(Imam.access_code == code))
        imam = result.scalars().first()
        if imam is None:
            raise AuthenticationError("Invalid access code")
        return self._record(imam, await self.bookings.booked_count(imam.id))
