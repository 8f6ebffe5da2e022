from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import get_current_user
from ..core.rate_limiter import rate_limiter
from ..models.tenant_specific.user import User
from ..schemas.auth_schemas import LoginRequest, ChangePasswordRequest
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/login")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    await rate_limiter.check_rate_limit(request, settings.login_rate_limit, settings.login_rate_window)
    service = AuthService(db)
    return await service.login(credentials.email, credentials.password)


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return AuthService.format_user(current_user)


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = AuthService(db)
    await service.change_password(current_user, payload.current_password, payload.new_password)
    return {"message": "Password updated successfully"}
