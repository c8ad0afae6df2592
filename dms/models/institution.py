"""Institution and user database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dms.database import Base, str_enum
from dms.utils.dates import utc_now


class UserRole(str, Enum):
    """User roles in the system."""

    USER = "USER"
    ADMIN = "ADMIN"


class AccessLevel(str, Enum):
    FAIBLE = "FAIBLE"
    MOYEN = "MOYEN"
    ELEVE = "ELEVE"


class InstitutionType(str, Enum):
    EMETTRICE = "EMETTRICE"
    ACQUEREUSE = "ACQUEREUSE"
    PORTEFEUILLE = "PORTEFEUILLE"  # Wallet provider
    CENTRE = "CENTRE"  # Processing or central bank


class Institution(Base):
    """A bank, wallet or processing centre taking part in card transactions."""

    __tablename__ = "institutions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    type: Mapped[InstitutionType] = mapped_column(
        str_enum(InstitutionType, 20), nullable=False, default=InstitutionType.CENTRE
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Utilisateur(Base):
    """Human actor; belongs to exactly one institution unless admin."""

    __tablename__ = "utilisateurs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        str_enum(UserRole, 10), nullable=False, default=UserRole.USER
    )
    access_level: Mapped[AccessLevel] = mapped_column(
        str_enum(AccessLevel, 10), nullable=False, default=AccessLevel.MOYEN
    )
    institution_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("institutions.id"), index=True
    )

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
