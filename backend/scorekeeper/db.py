import logging
import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from .config import DEFAULT_DATABASE_URL

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[sessionmaker] = None
Base = declarative_base()


def database_url() -> str:
    """Return the configured database URL in its async-driver form."""
    url = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def get_engine() -> AsyncEngine:
    """Return a lazily created SQLAlchemy engine.

    The URL is read from ``DATABASE_URL`` on first use, so importing this
    module has no side effects and tests can point it elsewhere at runtime.
    Without ``DATABASE_URL`` a local SQLite file is used.
    """

    global engine, AsyncSessionLocal

    if engine is None:
        url = database_url()
        engine_kwargs = {"echo": False}

        if url.startswith("sqlite+aiosqlite://"):
            # In-memory SQLite must reuse the same connection to keep its data.
            if ":memory:" in url:
                engine_kwargs["poolclass"] = StaticPool
            else:
                engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        engine = create_async_engine(url, **engine_kwargs)
        AsyncSessionLocal = sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))

    return engine


async def init_models() -> None:
    """Create missing tables; used when migrations are not run separately."""
    from . import models  # noqa: F401  # register tables on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    """Provide a database session for FastAPI dependencies."""

    if AsyncSessionLocal is None:
        get_engine()

    assert AsyncSessionLocal is not None  # for type checkers
    async with AsyncSessionLocal() as session:
        yield session
