from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from imam_roster.core.config import settings
from imam_roster.core.exceptions import AuthenticationError, RateLimitedError, ValidationError
from imam_roster.core.logger import logger
from imam_roster.core.rate_limit import RateLimiter
from imam_roster.core.security import hash_password, new_session_token, verify_password
from imam_roster.models.db_models import AdminSession, AdminUser, utcnow


@dataclass(frozen=True)
class AdminLogin:
    token: str
    username: str
    expires_at: datetime


@dataclass(frozen=True)
class AdminIdentity:
    id: int
    username: str


def _aware(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo; they were stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthService:
    def __init__(self, session: AsyncSession, limiter: Optional[RateLimiter] = None):
        self.session = session
        self.limiter = limiter

    async def ensure_default_admin(self) -> bool:
        """Create the configured default admin when the table has none. Returns True if created."""
        result = await self.session.execute(select(AdminUser.id).limit(1))
        if result.first() is not None:
            return False

        self.session.add(AdminUser(
            username=settings.DEFAULT_ADMIN_USERNAME,
            password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
        ))
        await self.session.commit()
        logger.warning(
            f"⚠️ Default admin user created (username: {settings.DEFAULT_ADMIN_USERNAME}). Change the password!"
        )
        return True

    def _fail(self, client_key: str, username: str, reason: str):
        logger.info(f"🔒 Admin login failed: {reason} for {username}")
        if self.limiter is not None:
            self.limiter.record_failure(client_key)
        raise AuthenticationError("Invalid username or password")

    async def login(self, username: Optional[str], password: Optional[str], client_key: str = "unknown") -> AdminLogin:
        if self.limiter is not None and not self.limiter.allow(client_key):
            logger.warning(f"🚫 Too many admin login attempts from {client_key}")
            raise RateLimitedError("Too many login attempts. Please try again later.")

        if not username or not password:
            raise ValidationError("Username and password are required")

        logger.info(f"🔑 Admin login attempt for username: {username} from {client_key}")
        result = await self.session.execute(select(AdminUser).where(AdminUser.username == username))
        admin = result.scalars().first()
        if admin is None:
            self._fail(client_key, username, "invalid username")
        if not verify_password(password, admin.password_hash):
            self._fail(client_key, username, "invalid password")

        now = utcnow()
        expires_at = now + timedelta(hours=settings.SESSION_TTL_HOURS)
        token = new_session_token()
        self.session.add(AdminSession(admin_id=admin.id, token=token, expires_at=expires_at))
        # Drop this admin's stale sessions while we're here
        await self.session.execute(
            delete(AdminSession).where(AdminSession.admin_id == admin.id, AdminSession.expires_at < now)
        )
        await self.session.commit()

        if self.limiter is not None:
            self.limiter.reset(client_key)
        logger.info(f"✅ Admin login successful for {admin.username}")
        return AdminLogin(token=token, username=admin.username, expires_at=expires_at)

    async def authenticate(self, token: Optional[str]) -> AdminIdentity:
        if not token:
            raise AuthenticationError("Authentication required")

        result = await self.session.execute(select(AdminSession).where(AdminSession.token == token))
        admin_session = result.scalars().first()
        if admin_session is None:
            raise AuthenticationError("Invalid or expired session")

        if _aware(admin_session.expires_at) <= utcnow():
            await self.session.delete(admin_session)
            await self.session.commit()
            raise AuthenticationError("Invalid or expired session")

        admin = await self.session.get(AdminUser, admin_session.admin_id)
        if admin is None:
            raise AuthenticationError("Invalid or expired session")
        return AdminIdentity(id=admin.id, username=admin.username)

    async def logout(self, token: str) -> None:
        await self.session.execute(delete(AdminSession).where(AdminSession.token == token))
        await self.session.commit()
