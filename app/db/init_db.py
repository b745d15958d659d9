import logging

from app.db.database import engine, Base
from app.models import *  # noqa: F401,F403  register every table on Base.metadata

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize database tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
