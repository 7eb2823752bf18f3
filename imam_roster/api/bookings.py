from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from imam_roster.api.deps import require_admin
from imam_roster.models.schemas import BookingMap, BookingsCommit, BookingsCommitResponse, SuccessResponse
from imam_roster.services.auth_service import AdminIdentity
from imam_roster.services.booking_service import BookingService
from imam_roster.services.db_service import get_session

router = APIRouter()

@router.get("/bookings", response_model=BookingMap)
async def get_bookings(session: AsyncSession = Depends(get_session)):
    # Same {dateKey: imamId} shape the client keeps in its cache
    return await BookingService(session).get_bookings()

@router.post("/bookings", response_model=BookingsCommitResponse)
async def commit_bookings(req: BookingsCommit, session: AsyncSession = Depends(get_session)):
    result = await BookingService(session).commit_bookings(req.imamId, req.dates)
    return BookingsCommitResponse(bookingsAdded=result.bookings_added, booked=result.booked)

@router.delete("/bookings/{date_key}", response_model=SuccessResponse)
async def delete_booking(
    date_key: str,
    admin: AdminIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await BookingService(session).delete_booking(date_key, actor=admin.username)
    return SuccessResponse(message="Booking deleted successfully")
