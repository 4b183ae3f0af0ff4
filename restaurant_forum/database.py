from sqlalchemy import URL, event, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from .config import settings
from .models import Base


def _build_engine(raw_url: str) -> AsyncEngine:
    url = make_url(raw_url)
    if url.drivername.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        async_engine = create_async_engine(
            url.set(drivername="sqlite+aiosqlite"),
            echo=settings.debug,
            poolclass=NullPool,
        )

        @event.listens_for(async_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return async_engine

    # Anything else is PostgreSQL through asyncpg; query options such as sslmode are kept
    pg_url = URL.create(
        drivername="postgresql+asyncpg",
        username=url.username,
        password=url.password,
        host=url.host,
        port=url.port,
        database=url.database,
        query=url.query,
    )
    return create_async_engine(pg_url, echo=settings.debug, pool_pre_ping=True)


engine = _build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """Request-scoped database session."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
