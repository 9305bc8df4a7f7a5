"""Key/value storage backends.

A backend exposes ``get_item``, ``set_item`` and ``remove_item``.  Each may
return its result directly or an awaitable; :class:`PersistedStore` awaits
whichever it gets, so synchronous and asynchronous backends are
interchangeable.
"""

from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any, Awaitable, Optional, Protocol, Union

import aiosqlite

logger = logging.getLogger("fhevm_sdk.storage.backends")


class BaseStorage(Protocol):
    def get_item(self, key: str) -> Union[Optional[str], Awaitable[Optional[str]]]: ...

    def set_item(self, key: str, value: str) -> Union[None, Awaitable[None]]: ...

    def remove_item(self, key: str) -> Union[None, Awaitable[None]]: ...


class NoopStorage:
    """Backend for environments without durable storage."""

    def get_item(self, key: str) -> None:
        return None

    def set_item(self, key: str, value: str) -> None:
        return None

    def remove_item(self, key: str) -> None:
        return None


noop_storage = NoopStorage()


class MemoryStorage:
    """Synchronous in-process backend, lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteStorage:
    """Async key/value backend stored in an SQLite file.

    Parameters
    ----------
    db_path:
        Filesystem path to the SQLite database file.  The file (and any
        intermediate directories) are created on first use.

    Every operation opens its own ``aiosqlite`` connection, so the backend
    is not tied to the event loop that happened to create it.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    async def _connect(self) -> aiosqlite.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self.db_path))
        await conn.execute("PRAGMA journal_mode=WAL;")
        await conn.execute(
            """\
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        return conn

    async def get_item(self, key: str) -> Optional[str]:
        conn = await self._connect()
        try:
            cursor = await conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
        finally:
            await conn.close()
        if row is None:
            return None
        return row[0]

    async def set_item(self, key: str, value: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )
            await conn.commit()
        finally:
            await conn.close()

    async def remove_item(self, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await conn.commit()
        finally:
            await conn.close()


class GuardedStorage:
    """Wraps a backend so that failed writes are logged and dropped.

    Persistence is best-effort: a full disk or a read-only location must not
    break the caller.  Reads are passed through untouched.
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner

    def get_item(self, key: str) -> Any:
        return self.inner.get_item(key)

    def set_item(self, key: str, value: str) -> Any:
        return self._guard("set_item", key, value)

    def remove_item(self, key: str) -> Any:
        return self._guard("remove_item", key)

    def _guard(self, method: str, key: str, *args: str) -> Any:
        try:
            result = getattr(self.inner, method)(key, *args)
        except Exception as e:
            logger.debug(f"Storage {method} failed for '{key}': {e}")
            return None
        if inspect.isawaitable(result):
            return self._swallow(result, method, key)
        return None

    @staticmethod
    async def _swallow(awaitable: Awaitable[Any], method: str, key: str) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.debug(f"Storage {method} failed for '{key}': {e}")


def get_default_storage(db_path: Path | None = None) -> GuardedStorage:
    """Pick the best available backend for this environment.

    With a *db_path* whose directory can be created, returns an SQLite
    backend; otherwise falls back to :data:`noop_storage`.  Either way the
    result swallows write failures.
    """
    if db_path is None:
        return GuardedStorage(noop_storage)
    db_path = Path(db_path)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Durable storage unavailable at {db_path}: {e}")
        return GuardedStorage(noop_storage)
    return GuardedStorage(SqliteStorage(db_path))
