# iaschool/core/dependencies.py
"""FastAPI dependencies for authentication and role gating."""
from typing import Callable
from uuid import UUID
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .exceptions import AuthenticationError, PermissionDenied
from .security import decode_access_token
from ..models.tenant_specific.user import User, UserRole, AdminSubRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError("Invalid token")

    result = await db.execute(
        select(User).where(User.id == user_id, User.is_deleted == False)
    )
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    if str(user.school_id) != payload.get("school_id"):
        logger.warning(f"Token school mismatch for user {user.id}")
        raise AuthenticationError("Invalid token")
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Allow only the given roles; SUPER_ADMIN passes every admin gate"""
    allowed = set(roles)
    if UserRole.ADMIN in allowed:
        allowed.add(UserRole.SUPER_ADMIN)

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise PermissionDenied(
                f"Role {current_user.role.value} cannot access this resource"
            )
        return current_user

    return checker


def require_admin_sub_roles(*sub_roles: AdminSubRole) -> Callable:
    """Admins with any of the sub-roles, or general admins without sub-roles"""

    async def checker(current_user: User = Depends(require_roles(UserRole.ADMIN))) -> User:
        if current_user.role == UserRole.SUPER_ADMIN or current_user.is_general_admin:
            return current_user
        if not current_user.has_sub_role(*sub_roles):
            raise PermissionDenied("Your admin area does not include this resource")
        return current_user

    return checker


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.PROFESOR)
require_parent = require_roles(UserRole.PADRE)
