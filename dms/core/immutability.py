"""Immutability enforcement for case records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event, inspect

from dms.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an immutable case record."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Case history is append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _reject(model_name: str, operation: str, target) -> None:
    _log_immutability_violation(model_name, operation, str(target.id))
    raise ImmutabilityViolationError(model_name, operation, str(target.id))


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Safe to call more than once; listeners are attached a single time.
    """
    global _registered
    if _registered:
        return

    from dms.domain.arbitration import ArbitrageStatus
    from dms.models.case import Arbitrage, Echange, Justificatif

    # ============ Justificatif: No UPDATE, No DELETE ============

    @event.listens_for(Justificatif, "before_update")
    def prevent_evidence_update(mapper, connection, target):
        _reject("Justificatif", "UPDATE", target)

    @event.listens_for(Justificatif, "before_delete")
    def prevent_evidence_delete(mapper, connection, target):
        _reject("Justificatif", "DELETE", target)

    # ============ Echange: Append-Only ============

    @event.listens_for(Echange, "before_update")
    def prevent_exchange_update(mapper, connection, target):
        _reject("Echange", "UPDATE", target)

    @event.listens_for(Echange, "before_delete")
    def prevent_exchange_delete(mapper, connection, target):
        _reject("Echange", "DELETE", target)

    # ============ Arbitrage: frozen once decided ============

    @event.listens_for(Arbitrage, "before_update")
    def prevent_decided_arbitrage_update(mapper, connection, target):
        history = inspect(target).attrs.status.history
        previous = history.deleted[0] if history.deleted else target.status
        if previous == ArbitrageStatus.DECIDE:
            _reject("Arbitrage", "UPDATE", target)

    @event.listens_for(Arbitrage, "before_delete")
    def prevent_arbitrage_delete(mapper, connection, target):
        _reject("Arbitrage", "DELETE", target)

    _registered = True
    logger.info("Immutability enforcement registered for case records")
