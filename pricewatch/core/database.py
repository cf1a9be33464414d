"""Database setup with async SQLAlchemy for the SQL alert repository."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from pricewatch.core.config import settings
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


# Mask password in database URL for logging
def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async engine.

    Connection pool sizing only applies to server databases; SQLite uses
    SQLAlchemy's default pool for its driver.
    """
    database_url = database_url or settings.database_url
    logger.info(f"Connecting to database: {mask_db_url(database_url)}")

    engine_args = {
        "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
        "pool_pre_ping": True,  # Verify connections before using
    }
    if not database_url.startswith("sqlite"):
        engine_args.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 3600,
        })
        logger.info(
            "Configuring connection pool: pool_size=10, max_overflow=20, "
            "pool_timeout=30s, pool_recycle=3600s"
        )

    engine = create_async_engine(database_url, **engine_args)
    logger.debug(f"Engine pool configuration: {engine.pool}")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async def init_db(engine: AsyncEngine):
    """Initialize database tables."""
    # Register models with Base.metadata
    from pricewatch.models import alert_record  # noqa: F401

    logger.info("Initializing database tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        raise
