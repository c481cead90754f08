from __future__ import annotations

import sqlite3
from importlib import resources
from pathlib import Path
from typing import Protocol

import aiosqlite
from loguru import logger

from cmdblite.config import Config
from cmdblite.database import Database
from cmdblite.errors import MigrationError
from cmdblite.types import MigrationRecord

SCRIPT_EXTENSION = ".sql"

LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS migrations (
    name TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


class ScriptSource(Protocol):
    def list_names(self) -> list[str]: ...

    def read(self, name: str) -> str: ...


class DirectoryScriptSource:
    """Migration scripts stored as files in a directory"""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def list_names(self) -> list[str]:
        if not self.path.is_dir():
            raise FileNotFoundError(f"Migration directory not found: {self.path}")
        return [
            p.name for p in self.path.iterdir() if p.is_file() and p.suffix == SCRIPT_EXTENSION
        ]

    def read(self, name: str) -> str:
        return (self.path / name).read_text(encoding="utf-8")


class PackageScriptSource:
    """Migration scripts bundled as package data"""

    def __init__(self, package: str = "cmdblite", subdir: str = "sql"):
        self.package = package
        self.subdir = subdir

    def _root(self):
        return resources.files(self.package).joinpath(self.subdir)

    def list_names(self) -> list[str]:
        return [
            entry.name
            for entry in self._root().iterdir()
            if entry.is_file() and entry.name.endswith(SCRIPT_EXTENSION)
        ]

    def read(self, name: str) -> str:
        return self._root().joinpath(name).read_text(encoding="utf-8")


def default_script_source(config: Config) -> ScriptSource:
    if config.migrations_dir is not None:
        return DirectoryScriptSource(config.migrations_dir)
    return PackageScriptSource()


class MigrationRunner:
    """Applies pending SQL scripts in lexical name order, each exactly once.

    Every script runs in its own transaction together with its ledger insert.
    A failing script is rolled back and stops the run; scripts committed
    before it stay applied, and the next run picks up from the failed one.
    No cross-process lock is taken, only one runner may target a database at
    a time.
    """

    def __init__(self, db: Database, source: ScriptSource):
        self.db = db
        self.source = source

    async def ensure_ledger(self):
        await self.db.execute(LEDGER_DDL)

    async def _ledger_exists(self) -> bool:
        row = await self.db.fetch_one(
            "SELECT 1 AS found FROM sqlite_master WHERE type = 'table' AND name = 'migrations'"
        )
        return row is not None

    async def get_applied_names(self) -> set[str]:
        rows = await self.db.fetch_all("SELECT name FROM migrations")
        return {row["name"] for row in rows}

    async def get_pending(self) -> list[str]:
        applied = await self.get_applied_names()
        # Lexical order is the application order, callers encode it in file names
        return sorted(name for name in self.source.list_names() if name not in applied)

    async def _apply_script(self, conn: aiosqlite.Connection, name: str, body: str):
        try:
            # executescript commits anything pending first, then runs the text verbatim;
            # the leading BEGIN keeps the script and its ledger row in one transaction
            await conn.executescript(f"BEGIN;\n{body}")
            await conn.execute("INSERT INTO migrations (name) VALUES (?)", (name,))
            await conn.commit()
        except BaseException:
            if conn.in_transaction:
                await conn.rollback()
            raise

    async def apply_pending(self) -> list[str]:
        """Apply all pending migrations, returning the names applied in this run"""
        await self.ensure_ledger()

        pending = await self.get_pending()
        if not pending:
            logger.info("No pending migrations")
            return []

        applied: list[str] = []
        for idx, name in enumerate(pending, start=1):
            logger.info(f"Applying migration {name} ({idx}/{len(pending)})")
            try:
                body = self.source.read(name)
                async with self.db.lock:
                    conn = await self.db.get_connection()
                    await self._apply_script(conn, name, body)
            except (sqlite3.Error, OSError, UnicodeDecodeError) as e:
                logger.error(
                    f"Migration {name} failed, {len(pending) - idx} later migration(s) not attempted: {e}"
                )
                raise MigrationError(name, e) from e

            applied.append(name)
            logger.opt(colors=True).info(f"<g>Applied migration {name}</g>")

        return applied

    async def status(self) -> list[MigrationRecord]:
        """Ledger records ordered by name. Never creates the ledger"""
        if not await self._ledger_exists():
            return []

        rows = await self.db.fetch_all("SELECT name, applied_at FROM migrations ORDER BY name")
        return [{"name": row["name"], "applied_at": row["applied_at"]} for row in rows]
