"""
Seed script to create demo staff accounts for local development.

Creates staff users with a few base permissions and no teams. Existing users
(matched by email) are left alone.

Usage:
    uv run python -m scripts.seed_staff
"""
import asyncio
from sqlalchemy import select

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.users.models import User, USER_TYPE_STAFF
from app.utils import get_logger


log = get_logger(__name__)


DEMO_STAFF = [
    # (email, name, base permissions)
    ("ops.lead@example.com", "Ops Lead", ["user_management", "view_audit_logs"]),
    ("finance.analyst@example.com", "Finance Analyst", ["user_management"]),
    ("support.agent@example.com", "Support Agent", []),
    ("moderator@example.com", "Content Moderator", []),
]


async def seed_staff() -> int:
    created = 0
    async with AsyncSessionLocal() as session:
        for email, name, base_permissions in DEMO_STAFF:
            result = await session.execute(select(User).where(User.email == email))
            if result.scalar_one_or_none() is not None:
                log.info("Staff user %s already exists", email)
                continue
            session.add(User(
                appwrite_id=f"seed-{email}",
                email=email,
                name=name,
                user_type=USER_TYPE_STAFF,
                base_permissions=sorted(base_permissions),
                teams=[],
                effective_permissions=sorted(base_permissions),
            ))
            created += 1
            log.info("Created staff user %s", email)
        await session.commit()
    return created


async def main():
    log.info("Initializing database...")
    await init_db()
    created = await seed_staff()
    log.info("Seeding complete: %d staff users created", created)


if __name__ == "__main__":
    asyncio.run(main())
