from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

# --- Incoming Request Models ---
# Fields are optional on purpose: presence and ranges are checked by the
# services so the caller gets the same 400 message the UI shows.

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class StartDateUpdate(BaseModel):
    date: Optional[str] = None

class ImamCreate(BaseModel):
    name: Optional[str] = None
    quota: Optional[int] = None

class ImamUpdate(BaseModel):
    name: Optional[str] = None
    quota: Optional[int] = None

class BookingsCommit(BaseModel):
    imamId: Optional[int] = None
    dates: Optional[List[str]] = None

class AccessCodeVerify(BaseModel):
    accessCode: Optional[str] = None


# --- Outgoing Response Models ---

class LoginResponse(BaseModel):
    success: bool = True
    token: str
    username: str
    expiresAt: datetime

class AdminVerifyResponse(BaseModel):
    success: bool = True
    username: str

class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None

class StartDateResponse(BaseModel):
    success: bool = True
    date: str

class ImamProfile(BaseModel):
    """What an imam (or the public) may see about a person."""
    id: int
    name: str
    quota: int
    booked: int = 0
    createdAt: Optional[datetime] = None

class ImamWithCode(ImamProfile):
    accessCode: str

class BookingsCommitResponse(BaseModel):
    success: bool = True
    bookingsAdded: int
    booked: int

class ScheduleDay(BaseModel):
    dateKey: str
    weekday: str
    cycleDay: int
    hijriDay: int
    hijriMonth: str
    hijriYear: int
    gregorianDay: int
    gregorianMonth: str
    gregorianYear: int
    imamId: Optional[int] = None
    imamName: Optional[str] = None

class ScheduleResponse(BaseModel):
    configured: bool
    startDate: Optional[str] = None
    days: List[ScheduleDay] = Field(default_factory=list)

BookingMap = Dict[str, int]
