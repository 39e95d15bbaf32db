import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from library_manager.db import SessionLocal

logger = logging.getLogger(__name__)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; anything left uncommitted by a failing request is rolled back."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.warning("Rolling back session after a failed request")
            await session.rollback()
            raise
