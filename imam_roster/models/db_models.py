from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Setting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utcnow)


class Imam(SQLModel, table=True):
    __tablename__ = "imams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    access_code: str = Field(unique=True, index=True)
    quota: int = Field(default=3)
    created_at: datetime = Field(default_factory=utcnow)


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # One imam per day, enforced by the database
        UniqueConstraint("date_key", name="unique_booking_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date_key: str = Field(index=True)
    imam_id: int = Field(foreign_key="imams.id", ondelete="CASCADE", index=True)
    created_at: datetime = Field(default_factory=utcnow)


class AdminUser(SQLModel, table=True):
    __tablename__ = "admin_users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class AdminSession(SQLModel, table=True):
    __tablename__ = "admin_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admin_users.id", ondelete="CASCADE", index=True)
    token: str = Field(unique=True, index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
