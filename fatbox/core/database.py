"""
Database connection and session management

The engine is process-scoped: `init_db()` must run before serving and
`close_db()` on shutdown (see the lifespan in fatbox.main).
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from .config import settings
from ..models.database import Base

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_recycle=180,
    pool_pre_ping=True
)

# Session maker
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db():
    """Verify connectivity and create the cache table if missing"""
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database connection successful.")


async def close_db():
    """Release every pooled connection"""
    await engine.dispose()
    logger.info("🛑 Database connections closed")


async def get_db():
    """Dependency for getting database session"""
    async with async_session_maker() as session:
        yield session
