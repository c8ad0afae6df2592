"""Arbitration rulings and fee grid."""

from decimal import Decimal
from enum import Enum

# (upper bound inclusive, fee) in the workflow currency
ARBITRATION_FEE_GRID: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("1000"), Decimal("100")),
    (Decimal("10000"), Decimal("500")),
    (Decimal("50000"), Decimal("1000")),
)
ARBITRATION_FEE_CEILING = Decimal("2000")


class ArbitrageStatus(str, Enum):
    DEMANDE = "DEMANDE"
    DECIDE = "DECIDE"
    ANNULE = "ANNULE"  # Case cancelled while arbitration was pending


class ArbitrageDecision(str, Enum):
    FAVORABLE_EMETTEUR = "FAVORABLE_EMETTEUR"
    FAVORABLE_ACQUEREUR = "FAVORABLE_ACQUEREUR"


class FeeAllocation(str, Enum):
    """Who bears the arbitration fee."""

    PERDANT = "PERDANT"
    EMETTEUR = "EMETTEUR"
    ACQUEREUR = "ACQUEREUR"
    PARTAGE = "PARTAGE"


DECISION_LABELS: dict[ArbitrageDecision, str] = {
    ArbitrageDecision.FAVORABLE_EMETTEUR: "Favorable to the issuing bank",
    ArbitrageDecision.FAVORABLE_ACQUEREUR: "Favorable to the acquiring bank",
}


def compute_arbitration_fee(contested_amount: Decimal) -> Decimal:
    """Flat arbitration fee for a contested amount.

    Args:
        contested_amount: Amount still disputed when arbitration is requested

    Returns:
        Fee from the grid; amounts above the last bracket pay the ceiling
    """
    for upper_bound, fee in ARBITRATION_FEE_GRID:
        if contested_amount <= upper_bound:
            return fee
    return ARBITRATION_FEE_CEILING
