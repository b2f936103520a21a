"""Async database engine and session configuration."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from listing_parser.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    engine_kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        # SQLite doesn't support pool_size / max_overflow; in-memory databases
        # need one shared connection to stay alive
        if ":memory:" in database_url:
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine_kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
    return create_async_engine(database_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = build_session_factory(engine)
