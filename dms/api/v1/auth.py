"""Authentication endpoints."""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select

from dms.api.deps import CurrentUser, DbSession
from dms.core.exceptions import AuthenticationError, ConflictError, ValidationError
from dms.core.middleware import login_limiter, register_limiter
from dms.core.security import create_tokens, get_password_hash, verify_password, verify_token
from dms.models.institution import Institution, UserRole, Utilisateur
from dms.schemas.user import (
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

router = APIRouter()


def _tokens_for(user: Utilisateur) -> TokenResponse:
    tokens = create_tokens(
        str(user.id),
        user.email,
        user.role.value,
        str(user.institution_id) if user.institution_id else None,
    )
    return TokenResponse(**tokens)


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(register_limiter)],
)
async def register(user_data: UserCreate, db: DbSession) -> TokenResponse:
    """Register a new user account within an institution."""
    result = await db.execute(select(Utilisateur).where(Utilisateur.email == user_data.email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already registered")

    institution = await db.get(Institution, user_data.institution_id)
    if not institution or not institution.enabled:
        raise ValidationError("Institution does not exist or is disabled")

    user = Utilisateur(
        email=user_data.email,
        name=user_data.name,
        password_hash=get_password_hash(user_data.password),
        role=UserRole.USER,
        access_level=user_data.access_level,
        institution_id=institution.id,
    )
    db.add(user)
    await db.flush()

    return _tokens_for(user)


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(login_limiter)])
async def login(credentials: UserLogin, db: DbSession) -> TokenResponse:
    """Login with email and password."""
    result = await db.execute(select(Utilisateur).where(Utilisateur.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    user.last_login_at = datetime.now(UTC)
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request: RefreshTokenRequest, db: DbSession) -> TokenResponse:
    """Refresh access token using refresh token."""
    payload = verify_token(request.refresh_token, token_type="refresh")
    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        raise AuthenticationError("Invalid token")

    user = await db.get(Utilisateur, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return _tokens_for(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUser) -> Utilisateur:
    """Get current authenticated user profile."""
    return current_user
