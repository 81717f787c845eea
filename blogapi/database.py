import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blogapi.config import settings
from blogapi.middleware import install_query_counter

logger = logging.getLogger(__name__)

# Module-level engine; tests swap in their own engine through get_db.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one session per request.  The request owns the transaction:
    commit after the handler returns, roll back if it raised.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request transaction")
            await session.rollback()
            raise
