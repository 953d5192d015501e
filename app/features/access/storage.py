"""
Key/value persistence substrate for access configuration.

The engine only needs load(key) and save(key, value) with JSON text payloads.
Each save is its own transaction; callers get no atomicity across keys.
"""
from typing import Dict, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.access.models import AccessConfigEntry
from app.utils import get_logger


log = get_logger(__name__)


class KeyValueStore(Protocol):
    async def load(self, key: str) -> Optional[str]:
        ...

    async def save(self, key: str, value: str) -> None:
        ...


class SqlKeyValueStore:
    """Stores blobs in the access_config_entries table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            entry = await session.get(AccessConfigEntry, key)
            return entry.value if entry is not None else None

    async def save(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            try:
                entry = await session.get(AccessConfigEntry, key)
                if entry is None:
                    session.add(AccessConfigEntry(key=key, value=value))
                else:
                    entry.value = value
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        log.debug(f"Saved access configuration key {key!r} ({len(value)} bytes)")


class MemoryKeyValueStore:
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.entries: Dict[str, str] = dict(initial or {})

    async def load(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    async def save(self, key: str, value: str) -> None:
        self.entries[key] = value
