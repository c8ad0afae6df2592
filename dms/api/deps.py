"""API dependencies for authentication and common operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dms.core.exceptions import AuthenticationError, AuthorizationError
from dms.core.security import verify_token
from dms.database import get_db
from dms.models.institution import UserRole, Utilisateur

# Security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Utilisateur:
    """Get the current authenticated user from JWT token."""
    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    result = await db.execute(select(Utilisateur).where(Utilisateur.id == user_uuid))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


async def get_current_active_user(
    current_user: Annotated[Utilisateur, Depends(get_current_user)],
) -> Utilisateur:
    """Get current user and verify they are active."""
    if not current_user.is_active:
        raise AuthorizationError("User account is deactivated")
    return current_user


async def get_current_admin(
    current_user: Annotated[Utilisateur, Depends(get_current_active_user)],
) -> Utilisateur:
    """Get current user and verify they are an admin."""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return current_user


CurrentUser = Annotated[Utilisateur, Depends(get_current_active_user)]
AdminUser = Annotated[Utilisateur, Depends(get_current_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
