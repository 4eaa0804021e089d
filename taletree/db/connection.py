"""Async SQLite connection wrapper for the dialogue store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from taletree.db.schema import SCHEMA_SQL


class Database:
    """aiosqlite connection with WAL mode, auto-schema and batched commits.

    Statements commit immediately unless they run inside `transaction()`,
    where the whole block commits (or rolls back) once.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection
        self._in_transaction = False

    @classmethod
    async def connect(cls, path: str = "taletree.db") -> "Database":
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA busy_timeout=5000")
        db = cls(conn)
        await db._conn.executescript(SCHEMA_SQL)
        await db._conn.commit()
        return db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Database"]:
        """Group several writes into one commit."""
        if self._in_transaction:
            yield self
            return
        self._in_transaction = True
        try:
            yield self
        except Exception:
            await self._conn.rollback()
            raise
        else:
            await self._conn.commit()
        finally:
            self._in_transaction = False

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        cursor = await self._conn.execute(sql, params or ())
        if not self._in_transaction:
            await self._conn.commit()
        return cursor

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params or ())
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | None = None) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params or ())
        return list(await cursor.fetchall())

    async def close(self) -> None:
        await self._conn.close()
