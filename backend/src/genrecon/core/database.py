"""Database engine and session factory setup."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool


def create_engine(db_url: str, pool_size: int = 20) -> AsyncEngine:
    """Create async engine for the generation store.

    SQLite URLs (used by tests and local tooling) get a single shared connection,
    because pool sizing arguments are not accepted by the SQLite dialect.

    Args:
        db_url: Database URL (postgresql+psycopg://... or sqlite+aiosqlite://...)
        pool_size: Maximum number of pooled connections for PostgreSQL

    Returns:
        Configured AsyncEngine
    """
    if db_url.startswith("sqlite"):
        # Settings limits RECONCILE_CONCURRENCY to 1 for these URLs
        return create_async_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=0,  # No overflow beyond pool_size
        pool_pre_ping=True,  # Verify connections before using
        echo=False,  # SQL is not logged; structlog covers application events
    )


def setup_db_session(db_url: str, pool_size: int = 20) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    Args:
        db_url: Database connection URL
        pool_size: Maximum number of connections in the pool (default: 20)

    Returns:
        Async session factory for creating database sessions
    """
    engine = create_engine(db_url, pool_size=pool_size)

    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )
