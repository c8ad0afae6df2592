"""
Pytest configuration and fixtures.

Every test gets its own file-backed SQLite database with all tables created
from the ORM metadata and a small world: an issuing bank, an acquiring bank,
an unrelated bank, one user per bank, an administrator, a transaction of
1000.00 MAD between the two banks and an open litige on it.
"""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import dms.models  # noqa: F401
from dms.core.immutability import register_immutability_enforcement
from dms.database import Base
from dms.domain.chargeback_state import ChargebackPhase, RepresentationResponse
from dms.domain.litige_state import LitigeStatus, LitigeType
from dms.models import (
    Institution,
    InstitutionType,
    Litige,
    LitigeChargeback,
    Transaction,
    UserRole,
    Utilisateur,
)
from dms.services.chargeback_workflow_service import ChargebackWorkflowService
from dms.services.notification_service import NotificationService

# Not a valid argon2 hash; fixture users never log in with a password
PLACEHOLDER_HASH = "$argon2id$placeholder"

CONTEST_ARGUMENTS = "Merchant holds a signed delivery receipt for this order."


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, Any]:
    """Create a test engine over a fresh SQLite file."""
    register_immutability_enforcement()
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, Any]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


# ==================== WORLD ====================


@pytest_asyncio.fixture
async def institutions(db: AsyncSession) -> dict[str, Institution]:
    banks = {
        "issuer": Institution(name="Banque Emettrice", type=InstitutionType.EMETTRICE, enabled=True),
        "acquirer": Institution(name="Banque Acquereuse", type=InstitutionType.ACQUEREUSE, enabled=True),
        "outsider": Institution(name="Banque Tierce", type=InstitutionType.EMETTRICE, enabled=True),
    }
    db.add_all(banks.values())
    await db.commit()
    return banks


def _user(name: str, email: str, role: UserRole, institution_id: UUID | None) -> Utilisateur:
    return Utilisateur(
        name=name,
        email=email,
        password_hash=PLACEHOLDER_HASH,
        role=role,
        institution_id=institution_id,
        is_active=True,
    )


@pytest_asyncio.fixture
async def users(db: AsyncSession, institutions) -> dict[str, Utilisateur]:
    people = {
        "issuer": _user("Issuer Agent", "issuer@test.ma", UserRole.USER, institutions["issuer"].id),
        "acquirer": _user(
            "Acquirer Agent", "acquirer@test.ma", UserRole.USER, institutions["acquirer"].id
        ),
        "outsider": _user(
            "Outsider Agent", "outsider@test.ma", UserRole.USER, institutions["outsider"].id
        ),
        "admin": _user("Centre Admin", "admin@test.ma", UserRole.ADMIN, None),
    }
    db.add_all(people.values())
    await db.commit()
    return people


@pytest_asyncio.fixture
async def transaction(db: AsyncSession, institutions) -> Transaction:
    txn = Transaction(
        reference="TXN-0001",
        amount=Decimal("1000.00"),
        currency="MAD",
        transaction_date=date(2026, 9, 1),
        issuer_institution_id=institutions["issuer"].id,
        acquirer_institution_id=institutions["acquirer"].id,
    )
    db.add(txn)
    await db.commit()
    return txn


@pytest_asyncio.fixture
async def litige(db: AsyncSession, users, transaction) -> Litige:
    case = Litige(
        transaction_id=transaction.id,
        type=LitigeType.PAIEMENT_NON_RECONNU,
        status=LitigeStatus.OUVERT,
        description="Cardholder does not recognise the payment",
        declared_by_id=users["issuer"].id,
        declaring_institution_id=users["issuer"].institution_id,
    )
    db.add(case)
    await db.commit()
    return case


# ==================== SERVICES ====================


@dataclass(frozen=True)
class CaseIds:
    """Plain ids of the fixture world.

    A failed operation rolls the session back and expires every loaded row;
    tests read ids from here instead of from the expired objects.
    """

    litige: UUID
    transaction: UUID
    issuer: UUID
    acquirer: UUID
    outsider: UUID
    admin: UUID
    issuer_bank: UUID
    acquirer_bank: UUID
    outsider_bank: UUID


@pytest.fixture
def ids(institutions, users, transaction, litige) -> CaseIds:
    return CaseIds(
        litige=litige.id,
        transaction=transaction.id,
        issuer=users["issuer"].id,
        acquirer=users["acquirer"].id,
        outsider=users["outsider"].id,
        admin=users["admin"].id,
        issuer_bank=institutions["issuer"].id,
        acquirer_bank=institutions["acquirer"].id,
        outsider_bank=institutions["outsider"].id,
    )


@pytest.fixture
def notifier() -> NotificationService:
    return NotificationService()


@pytest.fixture
def workflow(notifier) -> ChargebackWorkflowService:
    return ChargebackWorkflowService(notifier=notifier)


@pytest.fixture
def advance(
    db: AsyncSession, workflow: ChargebackWorkflowService, ids: CaseIds
) -> Callable[..., Awaitable[LitigeChargeback]]:
    """Drive the fixture litige forward to ``phase`` through the public operations."""

    async def _advance(phase: ChargebackPhase, amount: str = "500.00") -> LitigeChargeback:
        chargeback = await workflow.initiate_chargeback(
            db, ids.litige, ids.issuer, "Unrecognised payment", amount, ["statement.pdf"]
        )
        if phase == ChargebackPhase.CHARGEBACK_INITIAL:
            return chargeback
        chargeback = await workflow.process_representation(
            db,
            ids.litige,
            ids.acquirer,
            RepresentationResponse.CONTESTATION,
            CONTEST_ARGUMENTS,
            evidence=["receipt.pdf"],
        )
        if phase == ChargebackPhase.REPRESENTATION_RECUE:
            return chargeback
        chargeback = await workflow.second_presentment(
            db, ids.litige, ids.issuer, "Delivery address differs", ["address.pdf"]
        )
        if phase == ChargebackPhase.SECOND_PRESENTMENT:
            return chargeback
        await workflow.request_arbitrage(
            db, ids.litige, ids.issuer, "Both sides maintain their positions"
        )
        return await workflow.store.get_chargeback(db, ids.litige)

    return _advance
