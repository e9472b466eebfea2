from collections.abc import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    metadata = metadata


# Determine engine kwargs based on database type
_db_url = settings.effective_database_url
_engine_kwargs: dict = {
    "echo": settings.app_debug,
}

if _db_url.startswith("sqlite"):
    # SQLite dev mode - no pool size settings
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    # PostgreSQL / Supabase production mode
    # Supabase uses PgBouncer on port 6543 (transaction pooling mode).
    # asyncpg's prepared statement cache conflicts with PgBouncer, so we disable it.
    # Each entity in a batch takes its own connection, so size the pool for a full batch.
    _engine_kwargs["pool_size"] = max(5, settings.enrichment_batch_size)
    _engine_kwargs["max_overflow"] = 5
    _engine_kwargs["connect_args"] = {"statement_cache_size": 0}
    _engine_kwargs["pool_pre_ping"] = True

engine = create_async_engine(_db_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_all_tables():
    """Create the enrichment tables (enrichment_jobs, enriched_entities, request_tracker).

    Uses checkfirst so an existing Supabase schema is left untouched.
    """
    async with engine.begin() as conn:
        from app.models.enrichment import EnrichmentJob, EnrichedEntity, RequestTracker
        tables = [
            EnrichmentJob.__table__,
            EnrichedEntity.__table__,
            RequestTracker.__table__,
        ]
        for table in tables:
            await conn.run_sync(lambda sync_conn, t=table: t.create(sync_conn, checkfirst=True))


def create_worker_engine():
    """Engine for one-shot event loops (Celery worker tasks).

    Pooled connections are bound to the loop that opened them, so workers
    running asyncio.run() per task must not share the module-level pool.
    """
    from sqlalchemy.pool import NullPool

    connect_args = _engine_kwargs.get("connect_args", {})
    return create_async_engine(_db_url, poolclass=NullPool, connect_args=connect_args)
