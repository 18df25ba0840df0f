import asyncio
import sys
from datetime import timedelta
from pathlib import Path

"""
Seed demo data (a login, the built-in patch types, a few applications).

This script can be run from either:
- backend/: `python scripts/seed_demo_data.py`
- repo root: `python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select

from db.database import async_session_maker, create_db_and_tables, utc_now
from db.users import User
from services.patch_store import PatchStore

from fastapi_users.password import PasswordHelper


password_helper = PasswordHelper()

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-password"

# (patch type, body location, hours ago)
DEMO_APPLICATIONS = [
    ("estradiol-2day", "Left abdomen", 30),
    ("estradiol-2day", "Right abdomen", 6),
    ("estradiol-week", "Left hip", 150),
]


async def get_or_create_user(session, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        email=email,
        hashed_password=password_helper.hash(password),
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    session.add(user)
    await session.commit()
    return user


async def main() -> None:
    await create_db_and_tables()
    async with async_session_maker() as db:
        await get_or_create_user(db, DEMO_EMAIL, DEMO_PASSWORD)

        store = PatchStore(db)
        seeded = await store.seed_defaults()
        print(f"Built-in patch types added: {seeded}")

        if await store.list_applications():
            print("Applications already present, leaving them alone")
            return

        now = utc_now()
        for patch_type_id, location, hours_ago in DEMO_APPLICATIONS:
            await store.apply_patch(patch_type_id, location, applied_at=now - timedelta(hours=hours_ago))

        for patch in await store.active_patches(now):
            state = "EXPIRED" if patch.is_expired else f"{patch.time_remaining} left"
            print(f"  {patch.patch_type_name:<20} {patch.application.location:<15} change at {patch.change_at:%Y-%m-%d %H:%M} ({state})")

        for entry in await store.list_inventory():
            print(f"  stock {entry.patch_type_id}: {entry.count}")


if __name__ == "__main__":
    asyncio.run(main())
