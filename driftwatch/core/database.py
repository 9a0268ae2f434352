import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from driftwatch.core.config import async_database_url, settings
from driftwatch.models.audit import AuditEvent  # noqa: F401  registers the table

# Initialize logger
logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, switching sqlite URLs to the aiosqlite driver"""
    url = async_database_url(database_url)
    return create_async_engine(
        url,
        echo=False,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {}
    )


def build_session_factory(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Create async SQLAlchemy engine
engine = build_engine(settings.DATABASE_URL)

# Create async session factory
async_session = build_session_factory(engine)


async def create_db_and_tables(bind: AsyncEngine = None):
    """Create database and tables on startup"""
    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database and tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database and tables: {str(e)}")
        raise
