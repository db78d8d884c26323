# ============================================================================
# Create Admin User
# ============================================================================
"""
Script to create (or promote) a dashboard admin account.

Usage:
    python scripts/create_admin.py --name "Site Admin" --email admin@prepkart.com --password SecurePass123
"""

import asyncio
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

import portal.models  # noqa: F401
from portal.core.database import async_session_maker, engine, Base
from portal.core.security import get_password_hash
from portal.models.user import User, UserRole, AccountStatus

async def create_admin(name: str, email: str, password: str):
    """Create an admin user, or promote the existing account with that email"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as db:
        result = await db.execute(select(User).where(User.email == email.lower()))
        existing = result.scalar_one_or_none()

        if existing:
            print(f"User with email {email} already exists")
            existing.role = UserRole.ADMIN
            existing.status = AccountStatus.ACTIVE
            existing.password_hash = get_password_hash(password)
            await db.commit()
            print("Updated existing user to admin")
        else:
            user = User(
                name=name,
                email=email.lower(),
                password_hash=get_password_hash(password),
                role=UserRole.ADMIN,
                status=AccountStatus.ACTIVE
            )
            db.add(user)
            await db.commit()
            print(f"Created admin user: {email}")

    await engine.dispose()

def main():
    parser = argparse.ArgumentParser(description="Create admin user")
    parser.add_argument("--name", default="Administrator", help="Display name")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--password", required=True, help="Password")

    args = parser.parse_args()
    asyncio.run(create_admin(args.name, args.email, args.password))

if __name__ == "__main__":
    main()
