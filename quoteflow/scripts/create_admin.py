# quoteflow/scripts/create_admin.py
"""
Seed an admin account:

    python -m quoteflow.scripts.create_admin [username] [password]
"""
import asyncio
import logging
import sys

from sqlalchemy.future import select

from quoteflow.core.db import AsyncSessionLocal, init_models
from quoteflow.core.logging_config import setup_logging
from quoteflow.core.security import hash_password
from quoteflow.models.user_models import User, ROLE_ADMIN

logger = logging.getLogger(__name__)


async def create_admin(username: str = "admin", password: str = "admin123"):
    await init_models()
    async with AsyncSessionLocal() as session:
        existing = (await session.execute(select(User).where(User.username == username))).scalars().first()
        if existing:
            logger.info("User '%s' already exists", username)
            return existing

        admin = User(
            username=username,
            password_hash=hash_password(password),
            role=ROLE_ADMIN,
            is_active=True
        )
        session.add(admin)
        await session.commit()
        logger.info("Admin user '%s' created", username)
        return admin


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_admin(*sys.argv[1:3]))
