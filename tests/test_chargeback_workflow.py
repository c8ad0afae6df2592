"""
Chargeback workflow tests.

Drives the phase engine through every operation against a real (SQLite)
session and checks phases, deadlines, history and notifications.
"""
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from dms.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from dms.domain.arbitration import ArbitrageDecision, ArbitrageStatus, FeeAllocation
from dms.domain.chargeback_state import (
    ChargebackPhase,
    EvidenceType,
    ExchangeType,
    RepresentationResponse,
)
from dms.domain.litige_state import LitigeStatus
from dms.models import Arbitrage, Litige, Notification, UserRole, Utilisateur
from dms.services.chargeback_workflow_service import ChargebackWorkflowService
from dms.services.notification_service import NotificationService
from dms.utils.dates import as_utc

ARGUMENTS = "The merchant shipped the goods and holds proof of delivery."


async def notification_count(db, institution_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(Notification).where(
            Notification.institution_id == institution_id
        )
    )
    return result.scalar_one()


def assert_deadline_in(deadline, days: int, since: datetime) -> None:
    delta = as_utc(deadline) - since
    assert timedelta(days=days) - timedelta(minutes=1) <= delta <= timedelta(days=days, minutes=1)


class TestInitiateChargeback:
    """InitiateChargeback opens the workflow on a litige."""

    @pytest.mark.asyncio
    async def test_opens_case_in_initial_phase(self, db, workflow, ids) -> None:
        before = datetime.now(UTC)
        chargeback = await workflow.initiate_chargeback(
            db, ids.litige, ids.issuer, "Unrecognised payment", "500.00", ["statement.pdf"]
        )

        assert chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL
        assert chargeback.contested_amount == Decimal("500.00")
        assert chargeback.can_escalate is True
        assert_deadline_in(chargeback.deadline, 10, before)

        litige = await db.get(Litige, ids.litige)
        assert litige.status == LitigeStatus.EN_COURS

        evidence = await workflow.store.list_evidence(db, ids.litige)
        assert [doc.file_name for doc in evidence] == ["statement.pdf"]
        assert evidence[0].evidence_type == EvidenceType.PREUVE_CLIENT
        assert evidence[0].phase == ChargebackPhase.CHARGEBACK_INITIAL

        history = await workflow.store.list_history(db, ids.litige)
        assert len(history) == 1
        assert history[0].exchange_type == ExchangeType.ACTION
        assert "Unrecognised payment" in history[0].content

    @pytest.mark.asyncio
    async def test_notifies_only_the_counterpart(self, db, workflow, ids) -> None:
        await workflow.initiate_chargeback(
            db, ids.litige, ids.issuer, "Unrecognised payment", "500.00"
        )

        assert await notification_count(db, ids.acquirer_bank) == 1
        assert await notification_count(db, ids.issuer_bank) == 0

    @pytest.mark.asyncio
    async def test_second_initiation_conflicts(self, db, workflow, ids) -> None:
        await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "First", "100")

        with pytest.raises(ConflictError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "Second", "100")

        assert await workflow.store.count_history(db, ids.litige) == 1

    @pytest.mark.asyncio
    async def test_full_transaction_amount_is_allowed(self, db, workflow, ids) -> None:
        chargeback = await workflow.initiate_chargeback(
            db, ids.litige, ids.issuer, "Double debit", "1000.00"
        )
        assert chargeback.contested_amount == Decimal("1000.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount", ["0", "-5", "1000.01", "not-a-number", "NaN", "Infinity", "-inf"]
    )
    async def test_rejects_bad_amounts(self, db, workflow, ids, amount) -> None:
        with pytest.raises(ValidationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "Reason", amount)

        assert not await workflow.store.chargeback_exists(db, ids.litige)

    @pytest.mark.asyncio
    async def test_rejects_missing_or_long_reason(self, db, workflow, ids) -> None:
        with pytest.raises(ValidationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "   ", "10")
        with pytest.raises(ValidationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "x" * 101, "10")

    @pytest.mark.asyncio
    async def test_rejects_evidence_paths(self, db, workflow, ids) -> None:
        with pytest.raises(ValidationError):
            await workflow.initiate_chargeback(
                db, ids.litige, ids.issuer, "Reason", "10", ["../etc/passwd"]
            )

    @pytest.mark.asyncio
    async def test_acquirer_cannot_initiate(self, db, workflow, ids) -> None:
        with pytest.raises(AuthorizationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.acquirer, "Reason", "10")

    @pytest.mark.asyncio
    async def test_outsider_cannot_initiate(self, db, workflow, ids) -> None:
        with pytest.raises(AuthorizationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.outsider, "Reason", "10")

    @pytest.mark.asyncio
    async def test_unknown_litige(self, db, workflow, ids) -> None:
        with pytest.raises(NotFoundError):
            await workflow.initiate_chargeback(db, uuid4(), ids.issuer, "Reason", "10")

    @pytest.mark.asyncio
    async def test_resolved_litige_rejected(self, db, workflow, ids) -> None:
        litige = await db.get(Litige, ids.litige)
        litige.status = LitigeStatus.RESOLU
        await db.commit()

        with pytest.raises(ValidationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "Reason", "10")

    @pytest.mark.asyncio
    async def test_admin_notifies_both_sides(self, db, workflow, ids) -> None:
        await workflow.initiate_chargeback(db, ids.litige, ids.admin, "Centre review", "10")

        assert await notification_count(db, ids.issuer_bank) == 1
        assert await notification_count(db, ids.acquirer_bank) == 1


class TestProcessRepresentation:
    @pytest.mark.asyncio
    async def test_contestation_keeps_case_open(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)
        before = datetime.now(UTC)

        chargeback = await workflow.process_representation(
            db, ids.litige, ids.acquirer, "CONTESTATION", ARGUMENTS, evidence=["receipt.pdf"]
        )

        assert chargeback.phase == ChargebackPhase.REPRESENTATION_RECUE
        assert chargeback.representation_response == RepresentationResponse.CONTESTATION
        assert chargeback.can_escalate is True
        assert chargeback.accepted_amount is None
        assert_deadline_in(chargeback.deadline, 10, before)

        evidence = await workflow.store.list_evidence(db, ids.litige)
        assert {doc.evidence_type for doc in evidence} == {
            EvidenceType.PREUVE_CLIENT,
            EvidenceType.DEFENSE_COMMERCANT,
        }
        assert await notification_count(db, ids.issuer_bank) == 1

    @pytest.mark.asyncio
    async def test_partial_acceptance_reduces_contested_amount(
        self, db, workflow, ids, advance
    ) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL, amount="500.00")

        chargeback = await workflow.process_representation(
            db,
            ids.litige,
            ids.acquirer,
            RepresentationResponse.ACCEPTATION_PARTIELLE,
            ARGUMENTS,
            accepted_amount="200.00",
        )

        assert chargeback.accepted_amount == Decimal("200.00")
        assert chargeback.contested_amount == Decimal("300.00")
        assert chargeback.can_escalate is True

    @pytest.mark.asyncio
    async def test_partial_acceptance_must_stay_below_contested(
        self, db, workflow, ids, advance
    ) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL, amount="500.00")

        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db,
                ids.litige,
                ids.acquirer,
                RepresentationResponse.ACCEPTATION_PARTIELLE,
                ARGUMENTS,
                accepted_amount="500.00",
            )
        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, RepresentationResponse.ACCEPTATION_PARTIELLE, ARGUMENTS
            )
        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db,
                ids.litige,
                ids.acquirer,
                RepresentationResponse.ACCEPTATION_PARTIELLE,
                ARGUMENTS,
                accepted_amount="NaN",
            )

        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL
        assert chargeback.contested_amount == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_total_acceptance_settles_case(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL, amount="500.00")

        chargeback = await workflow.process_representation(
            db, ids.litige, ids.acquirer, RepresentationResponse.ACCEPTATION_TOTALE, ARGUMENTS
        )

        assert chargeback.phase == ChargebackPhase.REPRESENTATION_RECUE
        assert chargeback.accepted_amount == Decimal("500.00")
        assert chargeback.can_escalate is False
        assert chargeback.deadline is None
        assert chargeback.closed_at is not None
        litige = await db.get(Litige, ids.litige)
        assert litige.status == LitigeStatus.RESOLU

        with pytest.raises(ValidationError):
            await workflow.second_presentment(db, ids.litige, ids.issuer, "Not satisfied")

    @pytest.mark.asyncio
    async def test_short_arguments_rejected(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, "CONTESTATION", "Too short"
            )

    @pytest.mark.asyncio
    async def test_unknown_response_type_rejected(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, "MAYBE", ARGUMENTS
            )

    @pytest.mark.asyncio
    async def test_only_once(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, "CONTESTATION", ARGUMENTS
            )

    @pytest.mark.asyncio
    async def test_issuer_cannot_answer(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        with pytest.raises(AuthorizationError):
            await workflow.process_representation(
                db, ids.litige, ids.issuer, "CONTESTATION", ARGUMENTS
            )

    @pytest.mark.asyncio
    async def test_requires_a_chargeback(self, db, workflow, ids) -> None:
        with pytest.raises(NotFoundError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, "CONTESTATION", ARGUMENTS
            )


class TestSecondPresentment:
    @pytest.mark.asyncio
    async def test_moves_to_second_presentment(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)
        before = datetime.now(UTC)

        chargeback = await workflow.second_presentment(
            db, ids.litige, ids.issuer, "Delivery address differs", ["address.pdf"]
        )

        assert chargeback.phase == ChargebackPhase.SECOND_PRESENTMENT
        assert_deadline_in(chargeback.deadline, 5, before)
        history = await workflow.store.list_history(db, ids.litige)
        assert history[-1].exchange_type == ExchangeType.ESCALADE
        assert history[-1].phase == ChargebackPhase.SECOND_PRESENTMENT

    @pytest.mark.asyncio
    async def test_rejected_before_representation(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        with pytest.raises(ValidationError):
            await workflow.second_presentment(db, ids.litige, ids.issuer, "Too early")

        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL
        assert await workflow.store.count_history(db, ids.litige) == 1

    @pytest.mark.asyncio
    async def test_acquirer_cannot_present(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        with pytest.raises(AuthorizationError):
            await workflow.second_presentment(db, ids.litige, ids.acquirer, "Wrong side")


class TestArbitrage:
    @pytest.mark.asyncio
    async def test_request_prices_the_fee(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.SECOND_PRESENTMENT, amount="800.00")

        arbitrage = await workflow.request_arbitrage(
            db, ids.litige, ids.acquirer, "Both sides maintain their positions"
        )

        assert arbitrage.status == ArbitrageStatus.DEMANDE
        assert arbitrage.cost == Decimal("100")
        assert arbitrage.requested_by_institution_id == ids.acquirer_bank
        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.ARBITRAGE_DEMANDE
        assert chargeback.estimated_arbitration_fee == Decimal("100")
        assert chargeback.can_escalate is False
        assert chargeback.deadline is None

    @pytest.mark.asyncio
    async def test_request_needs_second_presentment(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        with pytest.raises(ValidationError):
            await workflow.request_arbitrage(db, ids.litige, ids.issuer, "Skipping ahead")

    @pytest.mark.asyncio
    async def test_request_only_once(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.ARBITRAGE_DEMANDE)

        with pytest.raises(ValidationError):
            await workflow.request_arbitrage(db, ids.litige, ids.acquirer, "Again")

        assert len(await workflow.store.list_arbitrages(db, ids.litige)) == 1

    @pytest.mark.asyncio
    async def test_decision_closes_case(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.ARBITRAGE_DEMANDE)
        pending = await workflow.store.find_pending_arbitrage(db, ids.litige)

        arbitrage = await workflow.decide_arbitrage(
            db,
            pending.id,
            ArbitrageDecision.FAVORABLE_EMETTEUR,
            "Delivery evidence is inconclusive",
            FeeAllocation.PERDANT,
            ids.admin,
        )

        assert arbitrage.status == ArbitrageStatus.DECIDE
        assert arbitrage.decision == ArbitrageDecision.FAVORABLE_EMETTEUR
        assert arbitrage.arbitrator_id == ids.admin
        assert arbitrage.decided_at is not None

        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.ARBITRAGE_DECIDE
        assert chargeback.closed_at is not None
        litige = await db.get(Litige, ids.litige)
        assert litige.status == LitigeStatus.RESOLU

        history = await workflow.store.list_history(db, ids.litige)
        assert history[-1].exchange_type == ExchangeType.DECISION
        assert "issuing bank" in history[-1].content

    @pytest.mark.asyncio
    async def test_decision_is_final(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.ARBITRAGE_DEMANDE)
        pending = await workflow.store.find_pending_arbitrage(db, ids.litige)
        arbitrage_id = pending.id
        await workflow.decide_arbitrage(
            db, arbitrage_id, "FAVORABLE_ACQUEREUR", "Proof of delivery holds", "EMETTEUR", ids.admin
        )

        with pytest.raises(ValidationError):
            await workflow.decide_arbitrage(
                db, arbitrage_id, "FAVORABLE_EMETTEUR", "Changed my mind", "ACQUEREUR", ids.admin
            )

        arbitrage = await workflow.store.get_arbitrage(db, arbitrage_id)
        assert arbitrage.decision == ArbitrageDecision.FAVORABLE_ACQUEREUR

    @pytest.mark.asyncio
    async def test_parties_cannot_decide(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.ARBITRAGE_DEMANDE)
        pending = await workflow.store.find_pending_arbitrage(db, ids.litige)
        arbitrage_id = pending.id

        for user_id in (ids.issuer, ids.acquirer):
            with pytest.raises(AuthorizationError):
                await workflow.decide_arbitrage(
                    db, arbitrage_id, "FAVORABLE_EMETTEUR", "Grounds", "PERDANT", user_id
                )

        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.ARBITRAGE_DEMANDE

    @pytest.mark.asyncio
    async def test_unknown_arbitrage(self, db, workflow, ids) -> None:
        with pytest.raises(NotFoundError):
            await workflow.decide_arbitrage(
                db, uuid4(), "FAVORABLE_EMETTEUR", "Grounds", "PERDANT", ids.admin
            )


class TestCancel:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "phase",
        [
            ChargebackPhase.CHARGEBACK_INITIAL,
            ChargebackPhase.REPRESENTATION_RECUE,
            ChargebackPhase.SECOND_PRESENTMENT,
        ],
    )
    async def test_cancel_from_open_phase(self, db, workflow, ids, advance, phase) -> None:
        await advance(phase)

        assert await workflow.cancel_chargeback(db, ids.litige, ids.issuer, "Claim withdrawn")

        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.ANNULE
        assert chargeback.deadline is None
        assert chargeback.closed_at is not None
        litige = await db.get(Litige, ids.litige)
        assert litige.status == LitigeStatus.RESOLU

    @pytest.mark.asyncio
    async def test_cancel_withdraws_pending_arbitrage(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.ARBITRAGE_DEMANDE)

        assert await workflow.cancel_chargeback(db, ids.litige, ids.issuer, "Settled bilaterally")

        arbitrages = await workflow.store.list_arbitrages(db, ids.litige)
        assert [a.status for a in arbitrages] == [ArbitrageStatus.ANNULE]
        assert await workflow.store.find_pending_arbitrage(db, ids.litige) is None

    @pytest.mark.asyncio
    async def test_cancel_closed_case_is_a_no_op(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)
        assert await workflow.cancel_chargeback(db, ids.litige, ids.issuer, "First")
        history_count = await workflow.store.count_history(db, ids.litige)

        assert await workflow.cancel_chargeback(db, ids.litige, ids.issuer, "Second") is False

        assert await workflow.store.count_history(db, ids.litige) == history_count
        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.ANNULE

    @pytest.mark.asyncio
    async def test_acquirer_cannot_cancel(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        with pytest.raises(AuthorizationError):
            await workflow.cancel_chargeback(db, ids.litige, ids.acquirer, "Not mine to cancel")

    @pytest.mark.asyncio
    async def test_no_transition_after_cancel(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)
        await workflow.cancel_chargeback(db, ids.litige, ids.issuer, "Withdrawn")

        with pytest.raises(ValidationError):
            await workflow.process_representation(
                db, ids.litige, ids.acquirer, "CONTESTATION", ARGUMENTS
            )


class TestMessagesAndQueries:
    @pytest.mark.asyncio
    async def test_message_before_chargeback_has_no_phase(self, db, workflow, ids) -> None:
        echange = await workflow.post_message(db, ids.litige, ids.acquirer, "Any news?")

        assert echange.exchange_type == ExchangeType.MESSAGE
        assert echange.phase is None
        assert echange.institution_id == ids.acquirer_bank

    @pytest.mark.asyncio
    async def test_message_tagged_with_current_phase(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        echange = await workflow.post_message(db, ids.litige, ids.issuer, "Reviewing the receipt")

        assert echange.phase == ChargebackPhase.REPRESENTATION_RECUE

    @pytest.mark.asyncio
    async def test_outsider_cannot_post(self, db, workflow, ids) -> None:
        with pytest.raises(AuthorizationError):
            await workflow.post_message(db, ids.litige, ids.outsider, "Hello")

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, db, workflow, ids) -> None:
        with pytest.raises(ValidationError):
            await workflow.post_message(db, ids.litige, ids.issuer, "  ")

    @pytest.mark.asyncio
    async def test_can_progress_to(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        assert await workflow.can_progress_to(db, ids.litige, ChargebackPhase.REPRESENTATION_RECUE)
        assert await workflow.can_progress_to(db, ids.litige, "ANNULE")
        assert not await workflow.can_progress_to(db, ids.litige, "SECOND_PRESENTMENT")
        with pytest.raises(ValidationError):
            await workflow.can_progress_to(db, ids.litige, "UNKNOWN")

    @pytest.mark.asyncio
    async def test_can_progress_without_chargeback(self, db, workflow, ids) -> None:
        with pytest.raises(NotFoundError):
            await workflow.can_progress_to(db, ids.litige, "REPRESENTATION_RECUE")

    @pytest.mark.asyncio
    async def test_history_and_evidence_only_grow(self, db, workflow, ids, advance) -> None:
        counts = []
        for phase in (
            ChargebackPhase.CHARGEBACK_INITIAL,
            ChargebackPhase.REPRESENTATION_RECUE,
            ChargebackPhase.SECOND_PRESENTMENT,
        ):
            if phase == ChargebackPhase.CHARGEBACK_INITIAL:
                await advance(phase)
            elif phase == ChargebackPhase.REPRESENTATION_RECUE:
                await workflow.process_representation(
                    db, ids.litige, ids.acquirer, "CONTESTATION", ARGUMENTS, evidence=["r.pdf"]
                )
            else:
                await workflow.second_presentment(
                    db, ids.litige, ids.issuer, "Rebuttal", evidence=["n.pdf"]
                )
            counts.append(
                (
                    await workflow.store.count_history(db, ids.litige),
                    await workflow.store.count_evidence(db, ids.litige),
                )
            )

        assert counts == [(1, 1), (2, 2), (3, 3)]

        history = await workflow.get_history(db, ids.litige, ids.acquirer)
        assert [e.phase for e in history] == [
            ChargebackPhase.CHARGEBACK_INITIAL,
            ChargebackPhase.REPRESENTATION_RECUE,
            ChargebackPhase.SECOND_PRESENTMENT,
        ]

    @pytest.mark.asyncio
    async def test_both_parties_see_shared_evidence(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        for user_id in (ids.issuer, ids.acquirer, ids.admin):
            documents = await workflow.get_evidence(db, ids.litige, user_id)
            assert {doc.file_name for doc in documents} == {"statement.pdf", "receipt.pdf"}

        with pytest.raises(AuthorizationError):
            await workflow.get_evidence(db, ids.litige, ids.outsider)

    @pytest.mark.asyncio
    async def test_unshared_evidence_stays_on_its_side(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)
        colleague = Utilisateur(
            name="Second Acquirer Agent",
            email="acquirer2@test.ma",
            password_hash="$argon2id$placeholder",
            role=UserRole.USER,
            institution_id=ids.acquirer_bank,
            is_active=True,
        )
        db.add(colleague)
        await db.commit()
        colleague_id = colleague.id

        await workflow.process_representation(
            db,
            ids.litige,
            ids.acquirer,
            RepresentationResponse.CONTESTATION,
            ARGUMENTS,
            evidence=["internal-review.pdf"],
            share_evidence=False,
        )

        issuer_view = await workflow.get_evidence(db, ids.litige, ids.issuer)
        assert {doc.file_name for doc in issuer_view} == {"statement.pdf"}
        for user_id in (ids.acquirer, colleague_id, ids.admin):
            documents = await workflow.get_evidence(db, ids.litige, user_id)
            assert {doc.file_name for doc in documents} == {"statement.pdf", "internal-review.pdf"}

        stored = await workflow.store.list_evidence(db, ids.litige)
        private = next(doc for doc in stored if doc.file_name == "internal-review.pdf")
        assert private.visible_to_counterparty is False
        assert private.evidence_type == EvidenceType.DEFENSE_COMMERCANT

    @pytest.mark.asyncio
    async def test_get_case_requires_standing(self, db, workflow, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        chargeback = await workflow.get_case(db, ids.litige, ids.acquirer)
        assert chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL
        with pytest.raises(AuthorizationError):
            await workflow.get_case(db, ids.litige, ids.outsider)


class ExplodingNotifier(NotificationService):
    """Notifier whose delivery always fails."""

    async def notify_institution(self, db, institution_id, message, litige_id=None):
        raise RuntimeError("notification backend down")


class TestNotificationFailures:
    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_fail_transition(self, db, ids) -> None:
        workflow = ChargebackWorkflowService(notifier=ExplodingNotifier())

        chargeback = await workflow.initiate_chargeback(
            db, ids.litige, ids.issuer, "Unrecognised payment", "250"
        )

        assert chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL
        stored = await workflow.store.get_chargeback(db, ids.litige)
        assert stored.id == chargeback.id
        assert await notification_count(db, ids.acquirer_bank) == 0

    @pytest.mark.asyncio
    async def test_failed_transition_sends_nothing(self, db, workflow, ids) -> None:
        with pytest.raises(AuthorizationError):
            await workflow.initiate_chargeback(db, ids.litige, ids.acquirer, "Reason", "10")

        assert await notification_count(db, ids.issuer_bank) == 0
        assert await notification_count(db, ids.acquirer_bank) == 0

    @pytest.mark.asyncio
    async def test_arbitrage_row_survives_notifier_failure(self, db, ids, advance) -> None:
        await advance(ChargebackPhase.SECOND_PRESENTMENT)
        workflow = ChargebackWorkflowService(notifier=ExplodingNotifier())

        arbitrage = await workflow.request_arbitrage(db, ids.litige, ids.issuer, "Escalating")

        stored = await db.get(Arbitrage, arbitrage.id)
        assert stored.status == ArbitrageStatus.DEMANDE
