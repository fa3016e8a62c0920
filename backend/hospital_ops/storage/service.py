"""Key-value storage backend abstraction for persisted service state."""

import logging
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hospital_ops.storage.models import StorageEntry

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol defining the durable key-value storage interface."""

    async def get_item(self, key: str) -> str | None:
        """Return the stored value for key, or None if it was never written."""
        ...

    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...


class SqlKeyValueStore:
    """Key-value store backed by the storage_entries table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_item(self, key: str) -> str | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(StorageEntry.value).where(StorageEntry.key == key)
            )
            return result.scalar_one_or_none()

    async def set_item(self, key: str, value: str) -> None:
        async with self._session_factory() as db:
            await db.execute(_upsert(db.get_bind().dialect.name, key, value))
            await db.commit()


def _upsert(dialect_name: str, key: str, value: str):
    """Insert-or-replace of one key as a single statement."""
    insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert
    stmt = insert(StorageEntry).values(key=key, value=value)
    return stmt.on_conflict_do_update(
        index_elements=[StorageEntry.key],
        set_={"value": stmt.excluded.value, "updated_at": func.now()},
    )


async def read_item(store: KeyValueStore, key: str) -> str | None:
    """Read key from store, logging and returning None on failure."""
    try:
        return await store.get_item(key)
    except Exception:
        logger.exception("Failed to read %s from storage", key)
        return None


async def write_item(store: KeyValueStore, key: str, serialize: Callable[[], str]) -> bool:
    """Serialize and store a value. Failures are logged, never raised.

    Returns whether the value was written.
    """
    try:
        await store.set_item(key, serialize())
    except Exception:
        logger.exception("Failed to persist %s", key)
        return False
    return True
