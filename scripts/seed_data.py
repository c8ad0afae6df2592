#!/usr/bin/env python3
"""Seed a development database with two banks, their users and a transaction.

Usage:
    python scripts/seed_data.py
    python scripts/seed_data.py --password Test@1234
"""

import argparse
import asyncio
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from dms.core.security import get_password_hash
from dms.database import close_db, get_db_context
from dms.models import Institution, InstitutionType, Transaction, UserRole, Utilisateur

ISSUER_NAME = "Banque Emettrice Demo"
ACQUIRER_NAME = "Banque Acquereuse Demo"
ISSUER_EMAIL = "issuer@dms.local"
ACQUIRER_EMAIL = "acquirer@dms.local"
TRANSACTION_REFERENCE = "TXN-DEMO-0001"


async def _get_or_create_institution(session, name: str, type_: InstitutionType) -> Institution:
    result = await session.execute(select(Institution).where(Institution.name == name))
    institution = result.scalar_one_or_none()
    if institution is None:
        institution = Institution(name=name, type=type_, enabled=True)
        session.add(institution)
        await session.flush()
        print(f"Created institution: {name}")
    return institution


async def _get_or_create_user(session, email: str, name: str, password: str, institution_id) -> None:
    result = await session.execute(select(Utilisateur).where(Utilisateur.email == email))
    if result.scalar_one_or_none() is not None:
        print(f"User already exists: {email}")
        return
    session.add(
        Utilisateur(
            email=email,
            name=name,
            password_hash=get_password_hash(password),
            role=UserRole.USER,
            institution_id=institution_id,
        )
    )
    print(f"Created user: {email}")


async def seed(password: str) -> None:
    async with get_db_context() as session:
        issuer = await _get_or_create_institution(session, ISSUER_NAME, InstitutionType.EMETTRICE)
        acquirer = await _get_or_create_institution(
            session, ACQUIRER_NAME, InstitutionType.ACQUEREUSE
        )

        await _get_or_create_user(session, ISSUER_EMAIL, "Issuer Agent", password, issuer.id)
        await _get_or_create_user(session, ACQUIRER_EMAIL, "Acquirer Agent", password, acquirer.id)

        result = await session.execute(
            select(Transaction).where(Transaction.reference == TRANSACTION_REFERENCE)
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            transaction = Transaction(
                reference=TRANSACTION_REFERENCE,
                amount=Decimal("1000.00"),
                currency="MAD",
                transaction_date=date.today(),
                issuer_institution_id=issuer.id,
                acquirer_institution_id=acquirer.id,
            )
            session.add(transaction)
            await session.flush()
            print(f"Created transaction: {TRANSACTION_REFERENCE}")

        print(f"\nTransaction ID: {transaction.id}")

    await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed development data")
    parser.add_argument("--password", default="Test@1234", help="Password for seeded users")
    args = parser.parse_args()

    asyncio.run(seed(args.password))
