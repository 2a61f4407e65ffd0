"""Database engines, sessions and declarative base."""

from collections.abc import AsyncIterator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from scoreflow.config import settings


class Base(DeclarativeBase):
    pass


# Async engine for read-only admin endpoints
engine = create_async_engine(settings.database_url, pool_pre_ping=True)
async_session = async_sessionmaker(engine, expire_on_commit=False)

# Sync engine for pipeline endpoints and RQ workers (RQ tasks are synchronous)
sync_engine = create_engine(settings.database_url_sync, pool_size=5, max_overflow=2, pool_pre_ping=True)
SyncSession = sessionmaker(bind=sync_engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_sync_db() -> Iterator[Session]:
    session = SyncSession()
    try:
        yield session
    finally:
        session.close()
