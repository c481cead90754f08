import pytest
import pytest_asyncio
from pathlib import Path
from typing import AsyncIterator

from cmdblite.config import Config
from cmdblite.database import Database
from cmdblite.migrations import MigrationRunner, PackageScriptSource


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Provides a test Config object using a temporary database path."""
    return Config(
        db_path=tmp_path / "cmdb.db",
        sqlite_params={
            "journal_mode": "WAL",
            "foreign_keys": "ON",
        },
    )


@pytest_asyncio.fixture
async def db(test_config: Config) -> AsyncIterator[Database]:
    """Provides an initialized Database without any schema applied."""
    db = Database(test_config)
    await db.initialize()
    try:
        yield db
    finally:
        await db.close()


@pytest_asyncio.fixture
async def migrated_db(db: Database) -> AsyncIterator[Database]:
    """Provides a Database with the bundled schema migrations applied."""
    applied = await MigrationRunner(db, PackageScriptSource()).apply_pending()
    assert applied
    yield db
