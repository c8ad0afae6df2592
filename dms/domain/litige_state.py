"""Litige (dispute case) state machine.

States: OUVERT → EN_COURS → RESOLU
"""

from enum import Enum

from dms.core.exceptions import ValidationError


class LitigeStatus(str, Enum):
    OUVERT = "OUVERT"
    EN_COURS = "EN_COURS"
    RESOLU = "RESOLU"


class LitigeType(str, Enum):
    PAIEMENT_NON_RECONNU = "PAIEMENT_NON_RECONNU"
    MONTANT_INCORRECT = "MONTANT_INCORRECT"
    DOUBLE_DEBIT = "DOUBLE_DEBIT"
    FRAUDE = "FRAUDE"
    AUTRE = "AUTRE"


LITIGE_TRANSITIONS: dict[LitigeStatus, set[LitigeStatus]] = {
    LitigeStatus.OUVERT: {LitigeStatus.EN_COURS, LitigeStatus.RESOLU},
    LitigeStatus.EN_COURS: {LitigeStatus.RESOLU},
    LitigeStatus.RESOLU: set(),
}


def assert_litige_transition(current: LitigeStatus, target: LitigeStatus) -> None:
    allowed = LITIGE_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid litige transition: {current.value} → {target.value}"
        )
