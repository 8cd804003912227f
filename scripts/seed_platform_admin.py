"""
Seed Platform Admin User

Creates the first reviewer account (role super_admin) so that applications
can be approved. Credentials come from the environment:

    SEED_ADMIN_EMAIL      required
    SEED_ADMIN_PASSWORD   required, at least 8 characters
    SEED_ADMIN_NAME       optional, defaults to "Platform Admin"

Usage:
    pip install -e .
    python scripts/seed_platform_admin.py
"""

import asyncio
import os
import sys

from edubeast.core.database import async_session_maker, close_db
from edubeast.core.security import hash_password
from edubeast.modules.users.models import UserRole
from edubeast.modules.users.repository import UserRepository


async def seed_platform_admin() -> int:
    """Create the platform admin user if it doesn't exist."""
    email = os.getenv("SEED_ADMIN_EMAIL", "").strip().lower()
    password = os.getenv("SEED_ADMIN_PASSWORD", "")
    full_name = os.getenv("SEED_ADMIN_NAME", "Platform Admin")

    if not email or len(password) < 8:
        print("SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD (8+ characters) must be set.")
        return 1

    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, email)

        if existing_user:
            print(f"Platform admin already exists: {email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Role: {existing_user.role.value}")
            return 0

        admin_user = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=UserRole.SUPER_ADMIN,
            must_change_password=False,
        )
        await db.commit()

        print("Platform admin created successfully!")
        print(f"  Email: {email}")
        print(f"  Name: {full_name}")
        print(f"  ID: {admin_user.id}")
        print(f"  Role: {admin_user.role.value}")

    await close_db()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_platform_admin()))
