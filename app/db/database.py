"""
Database Module

Async SQLAlchemy engine, session factory and declarative Base.

Usage in FastAPI endpoints:
    @router.get("/")
    async def my_endpoint(db: AsyncSession = Depends(get_db)):
        ...
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, declarative_base

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs() -> dict:
    """Pool options taken from settings when provided."""
    kwargs = {
        "echo": settings.SQLALCHEMY_ECHO,
        "pool_pre_ping": True,
    }
    if settings.DB_POOL_MIN_SIZE is not None:
        kwargs["pool_size"] = settings.DB_POOL_MIN_SIZE
    if settings.DB_POOL_MAX_SIZE is not None:
        min_size = settings.DB_POOL_MIN_SIZE or 5
        kwargs["max_overflow"] = max(0, settings.DB_POOL_MAX_SIZE - min_size)
    return kwargs


# ============================================================
# Engine & Session Factory
# ============================================================
engine = create_async_engine(str(settings.DATABASE_URL), **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


# ============================================================
# Row level security
# ============================================================

CURRENT_USER_KEY = "current_user_id"

# is_local = true: the value is dropped when the transaction ends
SET_CURRENT_USER_SQL = "SELECT set_config('app.current_user_id', :user_id, true)"


@event.listens_for(Session, "after_begin")
def _apply_current_user(session: Session, transaction: Any, connection: Any) -> None:
    """Hand the bound user to the RLS policies at the start of every transaction."""
    user_id = session.info.get(CURRENT_USER_KEY)
    if user_id is None or connection.dialect.name != "postgresql":
        return
    connection.execute(text(SET_CURRENT_USER_SQL), {"user_id": user_id})


async def bind_session_user(session: AsyncSession, user_id: Any) -> None:
    """
    Run every later transaction of `session` as `user_id`.

    The row level security policies compare rows against
    app.current_user_id; without it they match nothing.
    """
    session.info[CURRENT_USER_KEY] = str(user_id)

    # A transaction that is already open missed after_begin
    if session.in_transaction() and session.bind.dialect.name == "postgresql":
        await session.execute(text(SET_CURRENT_USER_SQL), {"user_id": str(user_id)})


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a session and closes it after the request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_db_connection() -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
