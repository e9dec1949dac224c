import asyncio

from helpdesk_rules.database.base import Base
from helpdesk_rules.database.session import engine
from helpdesk_rules.utils.logger import logger


async def init_db():
    if engine is None:
        raise RuntimeError("DATABASE_URI is not configured")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
