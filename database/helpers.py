"""
Database helper functions — schema bootstrap, connectivity checks and
the user lookups shared by the auth routes and dependencies.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Base, User
from database.session import engine

logger = logging.getLogger(__name__)


def parse_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    """Parse an id coming from a URL or token; ``None`` when malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


async def init_db() -> None:
    """Create all tables that do not exist yet (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured (%d tables)", len(Base.metadata.tables))


async def ping_database() -> None:
    """Round-trip a trivial query; raises if the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_user_by_id(session: AsyncSession, user_id: str | uuid.UUID) -> Optional[User]:
    uid = parse_uuid(user_id)
    if uid is None:
        return None
    return await session.get(User, uid)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_user_by_email_or_username(
    session: AsyncSession,
    email: str,
    username: str,
) -> Optional[User]:
    """Return any user already holding *email* or *username*."""
    result = await session.execute(
        select(User)
        .where(or_(User.email == email, User.username == username))
        .limit(1)
    )
    return result.scalar_one_or_none()
