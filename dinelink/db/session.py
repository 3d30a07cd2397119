import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from dinelink.core.config import settings
from dinelink.core.errors import StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = create_async_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
async_session = async_sessionmaker(engine, expire_on_commit=False)

async def get_db():
    async with async_session() as session:
        yield session

@asynccontextmanager
async def unit_of_work(db: AsyncSession, action: str):
    """
    Commit everything written inside the block once, or nothing at all.

    Storage failures are rolled back and re-raised as StorageError. Any other
    exception (domain errors included) rolls back and propagates unchanged.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to %s: %s", action, e)
        raise StorageError(f"Failed to {action}") from e
    except Exception:
        await db.rollback()
        raise
