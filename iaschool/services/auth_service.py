# iaschool/services/auth_service.py
"""Email/password authentication with failed-attempt lockout."""
from datetime import timedelta
import logging
import math

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import AuthenticationError, AccountLocked, PermissionDenied, BadRequestError
from ..core.security import hash_password, verify_password, needs_rehash, create_access_token
from ..models.tenant_specific.user import User
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate(self, email: str, password: str) -> User:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower(), User.is_deleted == False)
        )
        user = result.scalar_one_or_none()
        if not user:
            logger.info(f"Login failed for unknown email {email}")
            raise AuthenticationError("Invalid credentials")

        now = utcnow()
        if user.locked_until and user.locked_until > now:
            minutes = math.ceil((user.locked_until - now).total_seconds() / 60)
            raise AccountLocked(minutes)

        if not user.is_active or (user.school and not user.school.is_active):
            raise PermissionDenied("Account is disabled")

        if not verify_password(password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.max_failed_login_attempts:
                user.locked_until = now + timedelta(minutes=settings.lock_duration_minutes)
                logger.warning(f"Account {user.email} locked after {user.failed_login_attempts} failed attempts")
            await self.db.commit()
            raise AuthenticationError("Invalid credentials")

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
        await self.db.commit()
        logger.info(f"User {user.email} logged in")
        return user

    async def login(self, email: str, password: str) -> dict:
        user = await self.authenticate(email, password)
        token, expires_at = create_access_token(user.id, user.school_id, user.role.value)
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_at": expires_at.isoformat(),
            "user": self.format_user(user)
        }

    async def change_password(self, user: User, current_password: str, new_password: str):
        if not verify_password(current_password, user.password_hash):
            raise BadRequestError("Current password is incorrect")
        if len(new_password) < 8:
            raise BadRequestError("New password must have at least 8 characters")
        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(f"Password changed for {user.email}")

    @staticmethod
    def format_user(user: User) -> dict:
        return {
            "id": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "admin_sub_roles": user.admin_sub_roles or [],
            "school_id": str(user.school_id),
            "school_name": user.school.name if user.school else None,
            "school_code": user.school.code if user.school else None,
        }
