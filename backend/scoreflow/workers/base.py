"""Base worker utilities for RQ tasks."""

import asyncio
import uuid

from sqlalchemy.orm import Session

from scoreflow.database import SyncSession
from scoreflow.logging_config import configure_logging
from scoreflow.store import SqlStore

import structlog

configure_logging()
logger = structlog.get_logger()


def run_async(coro):
    """Run an async coroutine from sync RQ worker context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_sync_session() -> Session:
    return SyncSession()


def open_store() -> SqlStore:
    return SqlStore(get_sync_session())


def parse_id(value: str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(value)
