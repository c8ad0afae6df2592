#!/usr/bin/env python3
"""Create a platform admin with a properly hashed password.

Usage:
    python scripts/create_admin.py --email admin@dms.local --password Admin@1234
"""

import argparse
import asyncio

from sqlalchemy import select

from dms.core.security import get_password_hash
from dms.database import close_db, get_db_context
from dms.models import UserRole, Utilisateur


async def create_admin(email: str, password: str, name: str) -> None:
    """Create the admin account, or reset it if it already exists."""
    async with get_db_context() as session:
        result = await session.execute(select(Utilisateur).where(Utilisateur.email == email))
        existing = result.scalar_one_or_none()

        if existing:
            existing.password_hash = get_password_hash(password)
            existing.role = UserRole.ADMIN
            existing.institution_id = None
            existing.is_active = True
            existing.name = name
            print(f"Updated existing admin user: {email}")
        else:
            session.add(
                Utilisateur(
                    email=email,
                    name=name,
                    password_hash=get_password_hash(password),
                    role=UserRole.ADMIN,
                    institution_id=None,
                    is_active=True,
                )
            )
            print(f"Created admin user: {email}")

    await close_db()
    print(f"Email: {email}")
    print("Role: ADMIN")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", default="admin@dms.local", help="Admin email")
    parser.add_argument("--password", default="Admin@1234", help="Admin password")
    parser.add_argument("--name", default="Platform Admin", help="Display name")
    args = parser.parse_args()

    asyncio.run(create_admin(email=args.email, password=args.password, name=args.name))
