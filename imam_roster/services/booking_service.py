from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as postgres_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from imam_roster.core.exceptions import (
    ConflictError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    ValidationError,
)
from imam_roster.core.logger import logger
from imam_roster.models.db_models import Booking, Imam, utcnow
from imam_roster.services.calendar_service import parse_date_key, window_keys
from imam_roster.services.settings_service import SettingsService


@dataclass(frozen=True)
class CommitResult:
    bookings_added: int
    booked: int


class BookingService:
    """
    Owns the day -> imam map and the quota rule.

    A batch passed to `commit_bookings` is all-or-nothing: either every day is
    assigned or nothing is written. Days already owned by another imam move to
    the caller without any conflict check (the last write wins).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_bookings(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(Booking.date_key, Booking.imam_id).order_by(Booking.date_key)
        )
        return {date_key: imam_id for date_key, imam_id in result.all()}

    async def get_owned_days(self, imam_id: int) -> List[str]:
        result = await self.session.execute(
            select(Booking.date_key).where(Booking.imam_id == imam_id).order_by(Booking.date_key)
        )
        return list(result.scalars().all())

    async def booked_count(self, imam_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Booking.id)).where(Booking.imam_id == imam_id)
        )
        return result.scalar_one()

    async def booked_counts(self) -> Dict[int, int]:
        result = await self.session.execute(
            select(Booking.imam_id, func.count(Booking.id)).group_by(Booking.imam_id)
        )
        return {imam_id: count for imam_id, count in result.all()}

    async def quota_violations(self) -> Dict[int, Tuple[int, int]]:
        """Imams holding more days than their quota, as {imam_id: (booked, quota)}. Empty when healthy."""
        counts = await self.booked_counts()
        result = await self.session.execute(select(Imam.id, Imam.quota))
        return {
            imam_id: (counts.get(imam_id, 0), quota)
            for imam_id, quota in result.all()
            if counts.get(imam_id, 0) > quota
        }

    def _normalize_keys(self, date_keys: Sequence[str]) -> List[str]:
        # Canonical ISO form, duplicates collapsed, order kept
        return list(dict.fromkeys(parse_date_key(key).isoformat() for key in date_keys))

    def _upsert(self, imam_id: int, date_keys: List[str]):
        dialect = self.session.get_bind().dialect.name
        insert = postgres_insert if dialect == "postgresql" else sqlite_insert
        now = utcnow()
        stmt = insert(Booking).values(
            [{"date_key": key, "imam_id": imam_id, "created_at": now} for key in date_keys]
        )
        return stmt.on_conflict_do_update(
            index_elements=["date_key"],
            set_={"imam_id": stmt.excluded.imam_id, "created_at": stmt.excluded.created_at},
        )

    async def commit_bookings(self, imam_id: Optional[int], date_keys: Optional[Sequence[str]]) -> CommitResult:
        if imam_id is None or date_keys is None:
            raise ValidationError("Imam ID and dates array are required")
        keys = self._normalize_keys(date_keys)
        if not keys:
            raise ValidationError("At least one date is required")

        imam = await self.session.get(Imam, imam_id)
        if imam is None:
            raise NotFoundError("Imam not found")

        start_date = await SettingsService(self.session).get_start_date()
        if start_date is None:
            raise ValidationError("Ramadhan start date is not configured yet")
        window = window_keys(start_date)
        outside = [key for key in keys if key not in window]
        if outside:
            raise ValidationError(f"Dates outside the schedule: {', '.join(outside)}")

        owned = set(await self.get_owned_days(imam.id))
        new_keys = [key for key in keys if key not in owned]
        total = len(owned) + len(new_keys)
        if total > imam.quota:
            logger.warning(f"⛔ Quota exceeded for imam {imam.id}: {total} > {imam.quota}")
            raise QuotaExceededError(total, imam.quota)

        if not new_keys:
            logger.info(f"🔁 Imam {imam.id} re-submitted {len(keys)} owned day(s), nothing to write")
            return CommitResult(bookings_added=0, booked=total)

        result = await self.session.execute(
            select(Booking.date_key, Booking.imam_id).where(Booking.date_key.in_(new_keys))
        )
        previous_owners = {date_key: owner for date_key, owner in result.all()}

        try:
            await self.session.execute(self._upsert(imam.id, new_keys))
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"⚠️ Booking commit for imam {imam.id} rejected by the database: {e}")
            raise ConflictError("Bookings could not be saved, please reload and try again")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"❌ DB Error (commit_bookings): {e}")
            raise StorageError("Failed to create bookings")

        for key, owner in previous_owners.items():
            logger.info(f"🔀 Day {key} reassigned from imam {owner} to imam {imam.id}")
        logger.info(f"✅ Imam {imam.id} booked {len(new_keys)} day(s), now {total}/{imam.quota}")
        return CommitResult(bookings_added=len(new_keys), booked=total)

    async def delete_booking(self, date_key: str, actor: Optional[str] = None) -> None:
        if not date_key:
            raise ValidationError("Date key is required")
        result = await self.session.execute(select(Booking).where(Booking.date_key == date_key))
        booking = result.scalars().first()
        if booking is None:
            raise NotFoundError("Booking not found")

        await self.session.delete(booking)
        await self.session.commit()
        logger.info(f"🗑️ {actor or 'Admin'} freed {date_key} (was imam {booking.imam_id})")
