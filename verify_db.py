import asyncio
import sys

from imam_roster.core.logger import setup_logging, logger
from imam_roster.services.booking_service import BookingService
from imam_roster.services.calendar_service import window_keys
from imam_roster.services.db_service import db_service
from imam_roster.services.settings_service import SettingsService

setup_logging()

async def audit_roster() -> bool:
    """Check the stored roster against the quota rule and the configured window."""
    await db_service.init_db()
    healthy = True
    async with db_service.sessionmaker() as session:
        bookings_service = BookingService(session)
        violations = await bookings_service.quota_violations()
        for imam_id, (booked, quota) in violations.items():
            logger.error(f"❌ Imam {imam_id} holds {booked} days, quota is {quota}")
            healthy = False

        window = window_keys(await SettingsService(session).get_start_date())
        bookings = await bookings_service.get_bookings()
        stray = sorted(key for key in bookings if key not in window)
        if stray:
            logger.warning(f"⚠️ {len(stray)} booking(s) outside the current window: {', '.join(stray)}")

        logger.info(f"📊 {len(bookings)} booked day(s) checked")
    await db_service.dispose()

    if healthy:
        logger.info("✅ Roster is consistent")
    return healthy

if __name__ == "__main__":
    sys.exit(0 if asyncio.run(audit_roster()) else 1)
