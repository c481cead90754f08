from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import AsyncIterator, Iterator, Sequence

import aiosqlite
from loguru import logger

from cmdblite.config import Config
from cmdblite.errors import StorageError
from cmdblite.rows import fetch_rows
from cmdblite.types import GenericRow, SqlValue

Params = Sequence[SqlValue]


@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise engine level errors as `StorageError`, keeping the engine message"""
    try:
        yield
    except sqlite3.Error as e:
        raise StorageError(str(e)) from e


class Database:
    """Owns the single aiosqlite connection.

    Every statement and every transaction holds `lock`, so concurrent callers
    never interleave on the connection and one caller's commit or rollback
    cannot end another caller's transaction.
    """

    def __init__(self, config: Config):
        self.config = config
        self.db_path: Path = config.db_path
        self.lock = asyncio.Lock()
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self):
        """Open the connection and apply the configured pragmas"""
        async with self.lock:
            conn = await self.get_connection()
            async with conn.execute("PRAGMA journal_mode") as cursor:
                row = await cursor.fetchone()

        logger.opt(colors=True).info(
            f"<e>database opened at {self.db_path} (journal_mode={row[0] if row else 'unknown'})</e>"
        )

    async def get_connection(self) -> aiosqlite.Connection:
        """Return the open connection, connecting on first use. Callers hold `lock`"""
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(self.db_path)
            try:
                # foreign_keys is a no-op inside a transaction, so pragmas go first
                for name, value in self.config.sqlite_params.items():
                    await conn.execute(f"PRAGMA {name}={value}")
            except BaseException:
                await conn.close()
                raise
            self._connection = conn
        return self._connection

    async def close(self):
        async with self.lock:
            if self._connection is None:
                return
            await self._connection.close()
            self._connection = None

    async def ping(self) -> bool:
        try:
            async with self.lock:
                conn = await self.get_connection()
                async with conn.execute("SELECT 1") as cursor:
                    await cursor.fetchone()
            return True
        except sqlite3.Error:
            logger.exception("Database ping failed")
            return False

    async def fetch_all(self, sql: str, params: Params = ()) -> list[GenericRow]:
        async with self.lock:
            conn = await self.get_connection()
            with storage_errors():
                async with conn.execute(sql, params) as cursor:
                    return await fetch_rows(cursor)

    async def fetch_one(self, sql: str, params: Params = ()) -> GenericRow | None:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def execute(self, sql: str, params: Params = ()) -> int:
        """Run a single write statement in its own transaction, returning the affected row count"""
        async with self.lock:
            conn = await self.get_connection()
            with storage_errors():
                try:
                    cursor = await conn.execute(sql, params)
                    rowcount = cursor.rowcount
                    await cursor.close()
                    await conn.commit()
                except BaseException:
                    await conn.rollback()
                    raise
        return rowcount

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the connection from BEGIN to COMMIT.

        Statements inside the block go through the yielded connection; calling
        back into this `Database` from inside would wait on `lock` forever.
        """
        async with self.lock:
            conn = await self.get_connection()
            with storage_errors():
                await conn.execute("BEGIN")
                try:
                    yield conn
                except BaseException:
                    await conn.rollback()
                    raise
                await conn.commit()

    async def get_tables(self) -> list[GenericRow]:
        return await self.fetch_all(
            "SELECT name, sql FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
