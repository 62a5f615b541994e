# meeting_patterns/db/session.py
import os
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from meeting_patterns.core.config import get_settings
from meeting_patterns.db.base import Base

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ

# SQLite connections are bound to the event loop that opened them; NullPool
# keeps them from leaking across loops (TestClient, CLI scripts).
_use_null_pool = IS_TEST or settings.DB_URL.startswith("sqlite")

engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    future=True,
    poolclass=NullPool if _use_null_pool else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db() -> None:
    """
    Create any missing tables.

    Safe to call on every startup. Typically you'd eventually replace this
    with Alembic migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
