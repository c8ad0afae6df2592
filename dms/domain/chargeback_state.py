"""Chargeback phase state machine.

Phases: CHARGEBACK_INITIAL → REPRESENTATION_RECUE → SECOND_PRESENTMENT
→ ARBITRAGE_DEMANDE → ARBITRAGE_DECIDE, with ANNULE reachable from any
non-terminal phase.
"""

from enum import Enum

from dms.core.exceptions import ValidationError


class ChargebackPhase(str, Enum):
    """Phase of a litige's chargeback sub-workflow."""

    CHARGEBACK_INITIAL = "CHARGEBACK_INITIAL"
    REPRESENTATION_RECUE = "REPRESENTATION_RECUE"
    SECOND_PRESENTMENT = "SECOND_PRESENTMENT"
    ARBITRAGE_DEMANDE = "ARBITRAGE_DEMANDE"
    ARBITRAGE_DECIDE = "ARBITRAGE_DECIDE"
    ANNULE = "ANNULE"


class RepresentationResponse(str, Enum):
    """Acquirer's answer to a chargeback."""

    ACCEPTATION_TOTALE = "ACCEPTATION_TOTALE"
    ACCEPTATION_PARTIELLE = "ACCEPTATION_PARTIELLE"
    CONTESTATION = "CONTESTATION"


class EvidenceType(str, Enum):
    """Kind of justificatif, tied to the phase it was submitted in."""

    PREUVE_CLIENT = "PREUVE_CLIENT"
    DEFENSE_COMMERCANT = "DEFENSE_COMMERCANT"
    NOUVELLE_PREUVE = "NOUVELLE_PREUVE"


class ExchangeType(str, Enum):
    """Kind of history entry."""

    MESSAGE = "MESSAGE"
    ACTION = "ACTION"
    ESCALADE = "ESCALADE"
    DECISION = "DECISION"


TERMINAL_PHASES: frozenset[ChargebackPhase] = frozenset(
    {ChargebackPhase.ARBITRAGE_DECIDE, ChargebackPhase.ANNULE}
)

PHASE_TRANSITIONS: dict[ChargebackPhase, frozenset[ChargebackPhase]] = {
    ChargebackPhase.CHARGEBACK_INITIAL: frozenset(
        {ChargebackPhase.REPRESENTATION_RECUE, ChargebackPhase.ANNULE}
    ),
    ChargebackPhase.REPRESENTATION_RECUE: frozenset(
        {ChargebackPhase.SECOND_PRESENTMENT, ChargebackPhase.ANNULE}
    ),
    ChargebackPhase.SECOND_PRESENTMENT: frozenset(
        {ChargebackPhase.ARBITRAGE_DEMANDE, ChargebackPhase.ANNULE}
    ),
    ChargebackPhase.ARBITRAGE_DEMANDE: frozenset(
        {ChargebackPhase.ARBITRAGE_DECIDE, ChargebackPhase.ANNULE}
    ),
    ChargebackPhase.ARBITRAGE_DECIDE: frozenset(),
    ChargebackPhase.ANNULE: frozenset(),
}

EVIDENCE_TYPE_BY_PHASE: dict[ChargebackPhase, EvidenceType] = {
    ChargebackPhase.CHARGEBACK_INITIAL: EvidenceType.PREUVE_CLIENT,
    ChargebackPhase.REPRESENTATION_RECUE: EvidenceType.DEFENSE_COMMERCANT,
    ChargebackPhase.SECOND_PRESENTMENT: EvidenceType.NOUVELLE_PREUVE,
}


def is_terminal(phase: ChargebackPhase) -> bool:
    return phase in TERMINAL_PHASES


def can_transition(current: ChargebackPhase, target: ChargebackPhase) -> bool:
    """Check a transition against the table without raising."""
    return target in PHASE_TRANSITIONS.get(current, frozenset())


def assert_chargeback_transition(current: ChargebackPhase, target: ChargebackPhase) -> None:
    """Validate chargeback phase transition."""
    if not can_transition(current, target):
        raise ValidationError(
            f"Invalid chargeback transition: {current.value} → {target.value}"
        )


def assert_phase(current: ChargebackPhase, expected: ChargebackPhase, action: str) -> None:
    """Require the case to sit exactly in ``expected`` before ``action``.

    Raises:
        ValidationError: If the current phase differs
    """
    if current != expected:
        raise ValidationError(
            f"{action} requires phase {expected.value}; current phase is {current.value}"
        )


def can_cancel_chargeback(phase: ChargebackPhase) -> tuple[bool, str | None]:
    """Check if a chargeback can be cancelled."""
    if is_terminal(phase):
        return False, f"Chargeback is already closed (phase {phase.value})"
    return True, None
