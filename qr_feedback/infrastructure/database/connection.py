"""Database connection and session management"""
import asyncio
import logging
from typing import Optional

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker

from qr_feedback.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - engine created on first use
_engine: Optional[AsyncEngine] = None
_async_session_maker: Optional[sessionmaker] = None


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver"""
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. "
            "Please configure it in your .env file."
        )

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = normalize_database_url(url)

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    # statement_cache_size=0 is required behind pgbouncer poolers
    connect_args = {
        "statement_cache_size": 0,
        "server_settings": {
            "application_name": "qr-feedback"
        }
    }
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args=connect_args,
    )


def make_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async engine (lazy initialization)"""
    global _engine

    if _engine is None:
        _engine = create_engine(settings.database_url, echo=settings.debug)

    return _engine


def get_session_maker() -> sessionmaker:
    """Get or create the session maker (lazy initialization)"""
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = make_session_maker(get_engine())

    return _async_session_maker


async def dispose_engine() -> None:
    global _engine, _async_session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_maker = None


async def init_db(engine: Optional[AsyncEngine] = None, max_retries: int = 5, retry_delay: float = 2) -> None:
    """Initialize database - create tables if not exist"""
    # Registers the tables on SQLModel.metadata
    from qr_feedback.domain.models import QRCode, Feedback  # noqa: F401

    engine = engine or get_engine()

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"Attempting to connect to database (attempt {attempt}/{max_retries})...")
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database initialized successfully")
            return
        except Exception as e:
            if attempt < max_retries:
                logger.warning(f"Database connection failed (attempt {attempt}/{max_retries}): {e}")
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.error(f"Failed to connect to database after {max_retries} attempts: {e}")
                raise

