"""Chargeback workflow service.

Each mutating operation is one case-scoped transaction: the chargeback row is
loaded ``FOR UPDATE``, the phase is checked against the transition table, the
new phase and its history/evidence rows are written, and the session commits.
Counterpart notifications are sent only after that commit and never fail the
operation.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from dms.config import settings
from dms.core.exceptions import AppException, ConflictError, NotFoundError, ValidationError
from dms.core.permissions import CaseSide, Permission, assert_case_action
from dms.domain.arbitration import (
    DECISION_LABELS,
    ArbitrageDecision,
    ArbitrageStatus,
    FeeAllocation,
    compute_arbitration_fee,
)
from dms.domain.chargeback_state import (
    ChargebackPhase,
    ExchangeType,
    RepresentationResponse,
    assert_chargeback_transition,
    assert_phase,
    can_cancel_chargeback,
    can_transition,
)
from dms.domain.litige_state import LitigeStatus, assert_litige_transition
from dms.models.case import Arbitrage, Echange, Justificatif, Litige, LitigeChargeback
from dms.models.institution import Utilisateur
from dms.models.transaction import Transaction
from dms.services.case_store import CaseStore, case_store
from dms.services.notification_service import NotificationService, notification_service
from dms.utils.dates import deadline_in

logger = logging.getLogger(__name__)

MIN_REPRESENTATION_ARGUMENTS = 20
MAX_REASON_LENGTH = 100


@dataclass
class CaseContext:
    """Rows an operation needs, loaded and checked for standing."""

    litige: Litige
    transaction: Transaction | None
    user: Utilisateur
    side: CaseSide
    chargeback: LitigeChargeback | None = None


def _parse_amount(value: Decimal | int | str | float, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"{field} must be a finite amount")
        amount = amount.quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a decimal amount")
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return amount


def _require_text(value: str | None, field: str, min_length: int = 1) -> str:
    text = (value or "").strip()
    if len(text) < min_length:
        if min_length > 1:
            raise ValidationError(f"{field} must be at least {min_length} characters")
        raise ValidationError(f"{field} is required")
    return text


def _clean_file_names(evidence: list[str] | None) -> list[str]:
    """Validate evidence file references; they are stored as plain names."""
    names = []
    for raw in evidence or []:
        name = (raw or "").strip()
        if not name:
            continue
        if "/" in name or "\\" in name or name.startswith("."):
            raise ValidationError(f"Invalid evidence file name: {raw!r}")
        names.append(name)
    return names


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'; expected one of: {allowed}")


class ChargebackWorkflowService:
    """Phase engine for the chargeback sub-workflow of a litige."""

    def __init__(
        self,
        store: CaseStore | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.store = store or case_store
        self.notifier = notifier or notification_service

    # ==================== TRANSITIONS ====================

    async def initiate_chargeback(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        reason: str,
        contested_amount: Decimal | int | str,
        evidence: list[str] | None = None,
        share_evidence: bool = True,
    ) -> LitigeChargeback:
        """Open the chargeback workflow on a litige (issuer side).

        Raises:
            ValidationError: Missing reason, bad amount, or resolved litige
            NotFoundError: Unknown litige or user
            AuthorizationError: User has no issuer standing on the transaction
            ConflictError: The litige already has a chargeback
        """
        reason = _require_text(reason, "Chargeback reason")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"Chargeback reason must be at most {MAX_REASON_LENGTH} characters")
        amount = _parse_amount(contested_amount, "Contested amount")
        files = _clean_file_names(evidence)

        async with self._atomic(db, litige_id, "InitiateChargeback"):
            case = await self._load_case(
                db, litige_id, user_id, Permission.INITIATE_CHARGEBACK, with_chargeback=False
            )
            litige = case.litige
            if case.transaction is None:
                raise NotFoundError("Transaction", str(litige.transaction_id))
            if amount > case.transaction.amount:
                raise ValidationError(
                    f"Contested amount {amount} exceeds transaction amount {case.transaction.amount}"
                )
            if await self.store.chargeback_exists(db, litige_id):
                raise ConflictError(f"A chargeback already exists for litige {litige_id}")
            if litige.status == LitigeStatus.RESOLU:
                raise ValidationError("Cannot initiate a chargeback on a resolved litige")

            if litige.status == LitigeStatus.OUVERT:
                assert_litige_transition(litige.status, LitigeStatus.EN_COURS)
                litige.status = LitigeStatus.EN_COURS

            phase = ChargebackPhase.CHARGEBACK_INITIAL
            chargeback = LitigeChargeback(
                litige_id=litige_id,
                phase=phase,
                reason=reason,
                contested_amount=amount,
                can_escalate=True,
                deadline=deadline_in(settings.representation_deadline_days),
            )
            db.add(chargeback)
            self.store.add_evidence(
                db, litige_id, files, phase, case.user.id, shared=share_evidence
            )
            self.store.append_exchange(
                db,
                litige_id,
                f"Chargeback initiated: {reason} ({amount} {settings.currency})",
                ExchangeType.ACTION,
                case.user,
                phase,
            )

        logger.info(f"Chargeback initiated on litige {litige_id} by user {user_id} for {amount}")
        await self._notify_counterpart(
            db, case, f"A chargeback of {amount} {settings.currency} was initiated: {reason}"
        )
        return chargeback

    async def process_representation(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        response_type: RepresentationResponse | str,
        arguments: str,
        accepted_amount: Decimal | int | str | None = None,
        evidence: list[str] | None = None,
        share_evidence: bool = True,
    ) -> LitigeChargeback:
        """Record the acquirer's answer to a chargeback.

        Every answer moves the case to REPRESENTATION_RECUE. A total
        acceptance settles the dispute and closes escalation; a partial
        acceptance reduces the contested amount to the remainder.
        """
        response = _parse_enum(RepresentationResponse, response_type, "representation response")
        arguments = _require_text(arguments, "Representation arguments", MIN_REPRESENTATION_ARGUMENTS)
        accepted = None
        if response == RepresentationResponse.ACCEPTATION_PARTIELLE:
            if accepted_amount is None:
                raise ValidationError("A partial acceptance requires an accepted amount")
            accepted = _parse_amount(accepted_amount, "Accepted amount")
        files = _clean_file_names(evidence)

        async with self._atomic(db, litige_id, "ProcessRepresentation"):
            case = await self._load_case(db, litige_id, user_id, Permission.RESPOND_REPRESENTATION)
            chargeback = case.chargeback
            previous = chargeback.phase
            assert_phase(previous, ChargebackPhase.CHARGEBACK_INITIAL, "Representation")
            target = ChargebackPhase.REPRESENTATION_RECUE
            assert_chargeback_transition(previous, target)

            if response == RepresentationResponse.ACCEPTATION_PARTIELLE:
                if accepted >= chargeback.contested_amount:
                    raise ValidationError(
                        f"Accepted amount {accepted} must be below the contested amount "
                        f"{chargeback.contested_amount}; use a total acceptance instead"
                    )
                chargeback.accepted_amount = accepted
                chargeback.contested_amount = chargeback.contested_amount - accepted
                chargeback.deadline = deadline_in(settings.representation_deadline_days)
            elif response == RepresentationResponse.ACCEPTATION_TOTALE:
                now = datetime.now(UTC)
                chargeback.accepted_amount = chargeback.contested_amount
                chargeback.can_escalate = False
                chargeback.deadline = None
                chargeback.closed_at = now
                self._resolve_litige(case.litige, now)
            else:
                chargeback.deadline = deadline_in(settings.representation_deadline_days)

            chargeback.phase = target
            chargeback.representation_response = response
            self.store.add_evidence(
                db, litige_id, files, target, case.user.id, shared=share_evidence
            )
            self.store.append_exchange(
                db,
                litige_id,
                f"Representation ({response.value}): {arguments}",
                ExchangeType.ACTION,
                case.user,
                target,
            )

        self._log_transition(litige_id, previous, target, user_id)
        await self._notify_counterpart(
            db, case, f"The acquirer answered the chargeback: {response.value}"
        )
        return chargeback

    async def second_presentment(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        refutation: str,
        evidence: list[str] | None = None,
        share_evidence: bool = True,
    ) -> LitigeChargeback:
        """Issuer rebuts the representation with new evidence."""
        refutation = _require_text(refutation, "Refutation")
        files = _clean_file_names(evidence)

        async with self._atomic(db, litige_id, "SecondPresentment"):
            case = await self._load_case(db, litige_id, user_id, Permission.SECOND_PRESENTMENT)
            chargeback = case.chargeback
            previous = chargeback.phase
            assert_phase(previous, ChargebackPhase.REPRESENTATION_RECUE, "Second presentment")
            if not chargeback.can_escalate:
                raise ValidationError("This chargeback can no longer be escalated")
            target = ChargebackPhase.SECOND_PRESENTMENT
            assert_chargeback_transition(previous, target)

            chargeback.phase = target
            chargeback.deadline = deadline_in(settings.second_presentment_deadline_days)
            self.store.add_evidence(
                db, litige_id, files, target, case.user.id, shared=share_evidence
            )
            self.store.append_exchange(
                db,
                litige_id,
                f"Second presentment: {refutation}",
                ExchangeType.ESCALADE,
                case.user,
                target,
            )

        self._log_transition(litige_id, previous, target, user_id)
        await self._notify_counterpart(db, case, "The issuer filed a second presentment")
        return chargeback

    async def request_arbitrage(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        justification: str,
    ) -> Arbitrage:
        """Either party asks for a third-party ruling after second presentment."""
        justification = _require_text(justification, "Arbitration justification")

        async with self._atomic(db, litige_id, "RequestArbitrage"):
            case = await self._load_case(db, litige_id, user_id, Permission.REQUEST_ARBITRAGE)
            chargeback = case.chargeback
            previous = chargeback.phase
            assert_phase(previous, ChargebackPhase.SECOND_PRESENTMENT, "Arbitration request")
            if not chargeback.can_escalate:
                raise ValidationError("This chargeback can no longer be escalated")
            target = ChargebackPhase.ARBITRAGE_DEMANDE
            assert_chargeback_transition(previous, target)

            cost = compute_arbitration_fee(chargeback.contested_amount)
            arbitrage = Arbitrage(
                litige_id=litige_id,
                chargeback_id=chargeback.id,
                requested_by_id=case.user.id,
                requested_by_institution_id=case.user.institution_id,
                justification=justification,
                cost=cost,
                status=ArbitrageStatus.DEMANDE,
            )
            db.add(arbitrage)

            chargeback.phase = target
            chargeback.estimated_arbitration_fee = cost
            chargeback.can_escalate = False
            chargeback.deadline = None
            self.store.append_exchange(
                db,
                litige_id,
                f"Arbitration requested (fee {cost} {settings.currency}): {justification}",
                ExchangeType.ESCALADE,
                case.user,
                target,
            )

        self._log_transition(litige_id, previous, target, user_id)
        await self._notify_counterpart(
            db, case, f"Arbitration was requested; estimated fee {cost} {settings.currency}"
        )
        return arbitrage

    async def decide_arbitrage(
        self,
        db: AsyncSession,
        arbitrage_id: UUID,
        decision: ArbitrageDecision | str,
        grounds: str,
        fee_allocation: FeeAllocation | str,
        admin_id: UUID,
    ) -> Arbitrage:
        """Record the ruling on a pending arbitration and close the case.

        Raises:
            NotFoundError: Unknown arbitrage or user
            AuthorizationError: Caller is not an administrator
            ValidationError: Arbitration already decided or case not awaiting a ruling
        """
        decision = _parse_enum(ArbitrageDecision, decision, "arbitration decision")
        fee_allocation = _parse_enum(FeeAllocation, fee_allocation, "fee allocation")
        grounds = _require_text(grounds, "Decision grounds")

        arbitrage = await self.store.get_arbitrage(db, arbitrage_id)
        litige_id = arbitrage.litige_id

        async with self._atomic(db, litige_id, "DecideArbitrage"):
            case = await self._load_case(db, litige_id, admin_id, Permission.DECIDE_ARBITRAGE)
            arbitrage = await self.store.get_arbitrage(db, arbitrage_id, for_update=True)
            chargeback = case.chargeback
            previous = chargeback.phase
            assert_phase(previous, ChargebackPhase.ARBITRAGE_DEMANDE, "Arbitration decision")
            if arbitrage.status != ArbitrageStatus.DEMANDE or arbitrage.chargeback_id != chargeback.id:
                raise ValidationError(
                    f"Arbitrage {arbitrage_id} is not pending (status {arbitrage.status.value})"
                )
            target = ChargebackPhase.ARBITRAGE_DECIDE
            assert_chargeback_transition(previous, target)

            now = datetime.now(UTC)
            arbitrage.status = ArbitrageStatus.DECIDE
            arbitrage.decision = decision
            arbitrage.grounds = grounds
            arbitrage.fee_allocation = fee_allocation
            arbitrage.arbitrator_id = case.user.id
            arbitrage.decided_at = now

            chargeback.phase = target
            chargeback.can_escalate = False
            chargeback.deadline = None
            chargeback.closed_at = now
            self._resolve_litige(case.litige, now)
            self.store.append_exchange(
                db,
                litige_id,
                f"Arbitration decided: {DECISION_LABELS[decision]}. "
                f"Fees borne by: {fee_allocation.value}. Grounds: {grounds}",
                ExchangeType.DECISION,
                case.user,
                target,
            )

        self._log_transition(litige_id, previous, target, admin_id)
        await self._notify_parties(
            db, case, f"Arbitration decided: {DECISION_LABELS[decision]}"
        )
        return arbitrage

    async def cancel_chargeback(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        reason: str,
    ) -> bool:
        """Cancel a chargeback from any non-terminal phase.

        Returns:
            bool: False, with nothing changed, when the case is already closed
        """
        reason = _require_text(reason, "Cancellation reason")

        async with self._atomic(db, litige_id, "Cancel"):
            case = await self._load_case(db, litige_id, user_id, Permission.CANCEL_CHARGEBACK)
            chargeback = case.chargeback
            previous = chargeback.phase
            can_cancel, error = can_cancel_chargeback(previous)
            if not can_cancel:
                logger.info(f"Cancel ignored on litige {litige_id}: {error}")
                return False
            target = ChargebackPhase.ANNULE
            assert_chargeback_transition(previous, target)

            pending = None
            if previous == ChargebackPhase.ARBITRAGE_DEMANDE:
                pending = await self.store.find_pending_arbitrage(db, litige_id)

            now = datetime.now(UTC)
            if pending is not None:
                pending.status = ArbitrageStatus.ANNULE
            chargeback.phase = target
            chargeback.can_escalate = False
            chargeback.deadline = None
            chargeback.closed_at = now
            self._resolve_litige(case.litige, now)
            self.store.append_exchange(
                db,
                litige_id,
                f"Chargeback cancelled: {reason}",
                ExchangeType.ACTION,
                case.user,
                target,
            )

        self._log_transition(litige_id, previous, target, user_id)
        await self._notify_counterpart(db, case, f"The chargeback was cancelled: {reason}")
        return True

    async def post_message(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        content: str,
    ) -> Echange:
        """Append a free-text message to the case history."""
        content = _require_text(content, "Message")

        async with self._atomic(db, litige_id, "PostMessage"):
            case = await self._load_case(
                db, litige_id, user_id, Permission.POST_MESSAGE, with_chargeback=False
            )
            chargeback = await self.store.find_chargeback(db, litige_id)
            echange = self.store.append_exchange(
                db,
                litige_id,
                content,
                ExchangeType.MESSAGE,
                case.user,
                chargeback.phase if chargeback else None,
            )

        await self._notify_counterpart(db, case, "A new message was posted on the case")
        return echange

    # ==================== QUERIES ====================

    async def can_progress_to(
        self,
        db: AsyncSession,
        litige_id: UUID,
        phase: ChargebackPhase | str,
    ) -> bool:
        """Whether the case's current phase allows a move to ``phase``."""
        target = _parse_enum(ChargebackPhase, phase, "phase")
        chargeback = await self.store.get_chargeback(db, litige_id)
        return can_transition(chargeback.phase, target)

    async def get_case(self, db: AsyncSession, litige_id: UUID, user_id: UUID) -> LitigeChargeback:
        case = await self._load_case(
            db, litige_id, user_id, Permission.VIEW_CASE, for_update=False
        )
        return case.chargeback

    async def get_history(self, db: AsyncSession, litige_id: UUID, user_id: UUID) -> list[Echange]:
        await self._load_case(
            db, litige_id, user_id, Permission.VIEW_CASE, with_chargeback=False
        )
        return await self.store.list_history(db, litige_id)

    async def get_evidence(
        self, db: AsyncSession, litige_id: UUID, user_id: UUID
    ) -> list[Justificatif]:
        """Evidence visible to the caller: shared documents plus their own side's."""
        case = await self._load_case(
            db, litige_id, user_id, Permission.VIEW_CASE, with_chargeback=False
        )
        documents = await self.store.list_evidence(db, litige_id)
        if case.side == CaseSide.ADMIN:
            return documents
        visible = []
        for doc in documents:
            if not doc.visible_to_counterparty:
                submitter = await self.store.get_user(db, doc.submitted_by_id)
                if submitter.institution_id != case.user.institution_id:
                    continue
            visible.append(doc)
        return visible

    # ==================== INTERNALS ====================

    async def _load_case(
        self,
        db: AsyncSession,
        litige_id: UUID,
        user_id: UUID,
        permission: Permission,
        with_chargeback: bool = True,
        for_update: bool = True,
    ) -> CaseContext:
        """Load the case rows and check the user's standing for ``permission``."""
        litige = await self.store.get_litige(db, litige_id)
        user = await self.store.get_user(db, user_id)
        chargeback = None
        if with_chargeback:
            chargeback = await self.store.get_chargeback(db, litige_id, for_update=for_update)
        transaction = await self.store.find_transaction(db, litige.transaction_id)
        institution = await self.store.find_institution(db, user.institution_id)

        side = assert_case_action(user, transaction, permission, institution)
        return CaseContext(
            litige=litige,
            transaction=transaction,
            user=user,
            side=side,
            chargeback=chargeback,
        )

    @asynccontextmanager
    async def _atomic(self, db: AsyncSession, litige_id: UUID, action: str) -> AsyncIterator[None]:
        """Commit the block as one unit; roll back and translate failures."""
        try:
            yield
            await db.commit()
        except StaleDataError:
            await db.rollback()
            logger.warning(f"{action} on litige {litige_id} lost a concurrent update")
            raise ValidationError(
                f"{action} rejected: the case was modified concurrently; reload and retry"
            )
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"{action} on litige {litige_id} hit a uniqueness conflict: {e.orig}")
            raise ConflictError(f"{action} conflicts with an existing record for litige {litige_id}")
        except AppException as e:
            await db.rollback()
            logger.warning(f"{action} rejected on litige {litige_id}: {e.detail}")
            raise
        except Exception:
            await db.rollback()
            logger.exception(f"{action} failed on litige {litige_id}")
            raise

    @staticmethod
    def _resolve_litige(litige: Litige, now: datetime) -> None:
        if litige.status == LitigeStatus.RESOLU:
            return
        assert_litige_transition(litige.status, LitigeStatus.RESOLU)
        litige.status = LitigeStatus.RESOLU
        litige.resolved_at = now

    @staticmethod
    def _log_transition(
        litige_id: UUID, previous: ChargebackPhase, target: ChargebackPhase, user_id: UUID
    ) -> None:
        logger.info(
            f"Litige {litige_id}: chargeback {previous.value} -> {target.value} by user {user_id}"
        )

    async def _notify_counterpart(self, db: AsyncSession, case: CaseContext, message: str) -> None:
        if case.transaction is None:
            return
        recipients = NotificationService.counterpart_institution_ids(
            case.transaction, case.user.institution_id
        )
        await self.notifier.notify_safely(db, case.litige.id, recipients, message)

    async def _notify_parties(self, db: AsyncSession, case: CaseContext, message: str) -> None:
        if case.transaction is None:
            return
        recipients = NotificationService.counterpart_institution_ids(case.transaction, None)
        await self.notifier.notify_safely(db, case.litige.id, recipients, message)


chargeback_workflow_service = ChargebackWorkflowService()
