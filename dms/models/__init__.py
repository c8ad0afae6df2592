"""Database models."""

from dms.models.case import Arbitrage, Echange, Justificatif, Litige, LitigeChargeback
from dms.models.institution import (
    AccessLevel,
    Institution,
    InstitutionType,
    UserRole,
    Utilisateur,
)
from dms.models.notification import Notification
from dms.models.transaction import Transaction

__all__ = [
    # Institution
    "Institution",
    "InstitutionType",
    "Utilisateur",
    "UserRole",
    "AccessLevel",
    # Transaction
    "Transaction",
    # Case
    "Litige",
    "LitigeChargeback",
    "Justificatif",
    "Echange",
    "Arbitrage",
    # Notification
    "Notification",
]
