"""User administration endpoints (admin only)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, status
from sqlalchemy import select

from dms.api.deps import AdminUser, DbSession
from dms.core.exceptions import ConflictError, NotFoundError, ValidationError
from dms.core.security import get_password_hash
from dms.models.institution import Institution, UserRole, Utilisateur
from dms.schemas.user import AdminUserCreate, UserResponse, UserRoleUpdate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_user(db: DbSession, user_id: UUID) -> Utilisateur:
    user = await db.get(Utilisateur, user_id)
    if not user:
        raise NotFoundError("User", str(user_id))
    return user


async def _require_institution(db: DbSession, institution_id: UUID) -> Institution:
    institution = await db.get(Institution, institution_id)
    if not institution:
        raise ValidationError(f"Institution {institution_id} does not exist")
    return institution


@router.get("", response_model=list[UserResponse])
async def list_users(
    admin: AdminUser,
    db: DbSession,
    institution_id: UUID | None = None,
    role: UserRole | None = None,
    is_active: bool | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
) -> list[Utilisateur]:
    query = select(Utilisateur)
    if institution_id is not None:
        query = query.where(Utilisateur.institution_id == institution_id)
    if role is not None:
        query = query.where(Utilisateur.role == role)
    if is_active is not None:
        query = query.where(Utilisateur.is_active.is_(is_active))

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(Utilisateur.created_at.desc()).offset(offset).limit(page_size)
    )
    return list(result.scalars().all())


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: AdminUserCreate, admin: AdminUser, db: DbSession) -> Utilisateur:
    """Create an account for any institution, or another administrator."""
    result = await db.execute(select(Utilisateur).where(Utilisateur.email == data.email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already registered")
    if data.institution_id is not None:
        await _require_institution(db, data.institution_id)

    user = Utilisateur(
        email=data.email,
        name=data.name,
        password_hash=get_password_hash(data.password),
        role=data.role,
        access_level=data.access_level,
        institution_id=data.institution_id,
    )
    db.add(user)
    await db.flush()
    logger.info(f"User {user.id} ({user.role.value}) created by admin {admin.id}")
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    admin: AdminUser,
    db: DbSession,
) -> Utilisateur:
    user = await _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if "institution_id" in changes:
        if changes["institution_id"] is None:
            if user.role != UserRole.ADMIN:
                raise ValidationError("Institution users must belong to an institution")
        else:
            await _require_institution(db, changes["institution_id"])

    for field, value in changes.items():
        if field != "institution_id" and value is None:
            continue
        setattr(user, field, value)
    await db.flush()
    return user


@router.post("/{user_id}/toggle", response_model=UserResponse)
async def toggle_user(user_id: UUID, admin: AdminUser, db: DbSession) -> Utilisateur:
    """Activate a suspended account or suspend an active one."""
    if user_id == admin.id:
        raise ValidationError("Administrators cannot suspend their own account")
    user = await _get_user(db, user_id)
    user.is_active = not user.is_active
    await db.flush()
    logger.info(f"User {user_id} {'activated' if user.is_active else 'suspended'} by admin {admin.id}")
    return user


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    admin: AdminUser,
    db: DbSession,
) -> Utilisateur:
    if user_id == admin.id:
        raise ValidationError("Administrators cannot change their own role")
    user = await _get_user(db, user_id)
    if data.role == UserRole.USER and user.institution_id is None:
        raise ValidationError("Assign an institution before demoting an administrator")
    user.role = data.role
    await db.flush()
    logger.info(f"User {user_id} role set to {data.role.value} by admin {admin.id}")
    return user
