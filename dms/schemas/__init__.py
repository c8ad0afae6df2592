"""Pydantic schemas for API validation."""

from dms.schemas.chargeback import (
    ArbitrageDecisionCreate,
    ArbitrageRequestCreate,
    ArbitrageResponse,
    CancelResponse,
    ChargebackCancel,
    ChargebackInitiate,
    ChargebackResponse,
    EchangeResponse,
    JustificatifResponse,
    MessageCreate,
    PhaseCheckResponse,
    RepresentationCreate,
    SecondPresentmentCreate,
)
from dms.schemas.institution import (
    InstitutionCreate,
    InstitutionResponse,
    TransactionCreate,
    TransactionResponse,
)
from dms.schemas.litige import LitigeFlag, LitigeResponse
from dms.schemas.notification import NotificationResponse
from dms.schemas.reporting import (
    ArbitrationDossier,
    ArbitrationStats,
    InstitutionChargebackStats,
    PhaseDuration,
)
from dms.schemas.user import (
    AdminUserCreate,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    UserRoleUpdate,
    UserUpdate,
)

__all__ = [
    # User
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "TokenResponse",
    "RefreshTokenRequest",
    "AdminUserCreate",
    "UserUpdate",
    "UserRoleUpdate",
    # Institution
    "InstitutionCreate",
    "InstitutionResponse",
    "TransactionCreate",
    "TransactionResponse",
    # Litige
    "LitigeFlag",
    "LitigeResponse",
    # Chargeback
    "ChargebackInitiate",
    "RepresentationCreate",
    "SecondPresentmentCreate",
    "ArbitrageRequestCreate",
    "ArbitrageDecisionCreate",
    "ChargebackCancel",
    "MessageCreate",
    "ChargebackResponse",
    "CancelResponse",
    "ArbitrageResponse",
    "EchangeResponse",
    "JustificatifResponse",
    "PhaseCheckResponse",
    # Reporting
    "InstitutionChargebackStats",
    "PhaseDuration",
    "ArbitrationStats",
    "ArbitrationDossier",
    # Notification
    "NotificationResponse",
]
