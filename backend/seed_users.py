"""
Database seeding script for initial users.

Creates one ADMIN, FLEET_OWNER, CLIENT and DRIVER user for development.
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash
from sqlalchemy import select

SEED_USERS = [
    {
        "name": "Back Office Admin",
        "email": "admin@fleetbackoffice.com",
        "password": "admin123",
        "role": UserRole.ADMIN,
        "email_verified": True,
    },
    {
        "name": "Fleet Owner",
        "email": "fleetowner@fleetbackoffice.com",
        "password": "fleetowner123",
        "role": UserRole.FLEET_OWNER,
        "commission_rate": 10.0,
    },
    {
        "name": "Sample Client",
        "email": "client@fleetbackoffice.com",
        "password": "client123",
        "role": UserRole.CLIENT,
        "gst_number": "27ABCDE1234F1Z5",
        "credit_limit": 100000.0,
        "credit_terms": 30,
    },
    {
        "name": "Sample Driver",
        "email": "driver@fleetbackoffice.com",
        "password": "driver123",
        "role": UserRole.DRIVER,
        "phone": "9876543210",
        "license_number": "MH1220200001234",
    },
]


async def seed_users():
    """
    Seed initial users with different roles.

    Existing emails are skipped, so the script can be re-run safely.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting user seeding...")
        created = 0

        for entry in SEED_USERS:
            data = dict(entry)
            password = data.pop("password")
            result = await db.execute(select(User).where(User.email == data["email"]))
            if result.scalar_one_or_none():
                print(f"  {data['email']} already exists, skipping")
                continue
            db.add(User(hashed_password=get_password_hash(password), is_active=True, **data))
            created += 1
            print(f"  Created {data['role'].value} user ({data['email']} / {password})")

        await db.commit()
        print(f"\nUser seeding completed: {created} created")


if __name__ == "__main__":
    asyncio.run(seed_users())
