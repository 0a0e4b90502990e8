"""Startup seeding: make sure the configured admin account exists."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.config import settings
from resourcehub.models.user import User

logger = logging.getLogger(__name__)


async def _seed_admin(session: AsyncSession, email: str, name: str) -> None:
    """Create the admin user if missing, or promote an existing account."""
    email = email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        session.add(User(
            name=name,
            email=email,
            branch="OTHER",
            semester=1,
            role="admin",
            account_status="active",
        ))
        await session.flush()
        logger.info("Seeded admin account '%s'", email)
        return

    if user.role != "admin" or user.account_status != "active":
        user.role = "admin"
        user.account_status = "active"
        await session.flush()
        logger.info("Promoted existing account '%s' to admin", email)
    else:
        logger.info("Admin account '%s' already present", email)


async def seed_all_defaults(session: AsyncSession) -> None:
    """Idempotent entry point: seed all default data."""
    logger.info("Checking seed defaults...")
    if settings.ADMIN_EMAIL:
        await _seed_admin(session, settings.ADMIN_EMAIL, settings.ADMIN_NAME)
    await session.commit()
    logger.info("Seed defaults check complete")
