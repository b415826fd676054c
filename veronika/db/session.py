from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from veronika.config import Settings, get_settings
from veronika.db.base import Base
from veronika.db import models  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    url = settings.database_url
    if not url.startswith('sqlite'):
        return create_async_engine(url, pool_pre_ping=True)
    kwargs = {'connect_args': {'check_same_thread': False}}
    if ':memory:' in url:
        kwargs['poolclass'] = StaticPool
    engine = create_async_engine(url, **kwargs)
    # ondelete rules are ignored by SQLite unless enabled per connection
    event.listen(engine.sync_engine, 'connect', _enable_sqlite_foreign_keys)
    return engine


def create_sessionmaker(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    engine = engine or create_engine()
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
