import pytest
from pathlib import Path

from cmdblite.config import Config
from cmdblite.database import Database
from cmdblite.errors import MigrationError
from cmdblite.migrations import (
    DirectoryScriptSource,
    MigrationRunner,
    PackageScriptSource,
    default_script_source,
)
from tests.utils import write_scripts


# --- Test Configuration ---

INIT_SQL = """
CREATE TABLE hosts (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL
);
INSERT INTO hosts (name) VALUES ('seed-01');
"""

ADD_INDEX_SQL = "CREATE INDEX idx_hosts_name ON hosts (name);"

ADD_COLUMN_SQL = "ALTER TABLE hosts ADD COLUMN ip TEXT;"

# First statement is valid, the second is not; the whole script must roll back
BROKEN_SQL = """
CREATE TABLE half_done (id INTEGER);
THIS IS NOT VALID SQL;
"""


async def _table_exists(db: Database, name: str) -> bool:
    row = await db.fetch_one(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    )
    return row is not None


# --- Test Cases ---


@pytest.mark.asyncio
async def test_apply_in_lexical_order(db: Database, tmp_path: Path):
    # Written in reverse to make sure discovery order does not matter
    scripts = write_scripts(
        tmp_path / "sql",
        {"002_add_index.sql": ADD_INDEX_SQL, "001_init.sql": INIT_SQL},
    )
    runner = MigrationRunner(db, DirectoryScriptSource(scripts))

    applied = await runner.apply_pending()
    assert applied == ["001_init.sql", "002_add_index.sql"]

    records = await runner.status()
    assert [r["name"] for r in records] == ["001_init.sql", "002_add_index.sql"]
    assert records[1]["applied_at"] >= records[0]["applied_at"]

    rows = await db.fetch_all("SELECT name FROM hosts")
    assert rows == [{"name": "seed-01"}]


@pytest.mark.asyncio
async def test_second_run_applies_nothing(db: Database, tmp_path: Path):
    scripts = write_scripts(
        tmp_path / "sql",
        {"001_init.sql": INIT_SQL, "002_add_index.sql": ADD_INDEX_SQL},
    )
    runner = MigrationRunner(db, DirectoryScriptSource(scripts))

    assert len(await runner.apply_pending()) == 2
    before = await runner.status()

    assert await runner.apply_pending() == []
    assert await runner.get_pending() == []
    assert await runner.status() == before

    # Seed rows are not inserted twice
    rows = await db.fetch_all("SELECT name FROM hosts")
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_new_script_is_picked_up(db: Database, tmp_path: Path):
    scripts = write_scripts(tmp_path / "sql", {"001_init.sql": INIT_SQL})
    runner = MigrationRunner(db, DirectoryScriptSource(scripts))
    assert await runner.apply_pending() == ["001_init.sql"]

    write_scripts(scripts, {"002_add_column.sql": ADD_COLUMN_SQL})
    assert await runner.get_pending() == ["002_add_column.sql"]
    assert await runner.apply_pending() == ["002_add_column.sql"]

    await db.execute("UPDATE hosts SET ip = ?", ("10.0.0.1",))
    assert await db.fetch_one("SELECT ip FROM hosts") == {"ip": "10.0.0.1"}


@pytest.mark.asyncio
async def test_partial_failure_then_retry(db: Database, tmp_path: Path):
    scripts = write_scripts(
        tmp_path / "sql",
        {
            "001_init.sql": INIT_SQL,
            "002_broken.sql": BROKEN_SQL,
            "003_add_column.sql": ADD_COLUMN_SQL,
        },
    )
    runner = MigrationRunner(db, DirectoryScriptSource(scripts))

    with pytest.raises(MigrationError) as exc_info:
        await runner.apply_pending()
    assert exc_info.value.script == "002_broken.sql"

    # The first script stays applied, the failed one left nothing behind
    assert [r["name"] for r in await runner.status()] == ["001_init.sql"]
    assert await _table_exists(db, "hosts")
    assert not await _table_exists(db, "half_done")
    assert await runner.get_pending() == ["002_broken.sql", "003_add_column.sql"]

    # The failure was transient: fix the script and run again
    write_scripts(scripts, {"002_broken.sql": "CREATE TABLE half_done (id INTEGER);"})
    assert await runner.apply_pending() == ["002_broken.sql", "003_add_column.sql"]
    assert [r["name"] for r in await runner.status()] == [
        "001_init.sql",
        "002_broken.sql",
        "003_add_column.sql",
    ]
    assert await _table_exists(db, "half_done")


@pytest.mark.asyncio
async def test_failing_ledger_insert_rolls_back_script(db: Database, tmp_path: Path):
    # A script that records itself makes the runner's own ledger insert collide
    scripts = write_scripts(
        tmp_path / "sql",
        {
            "001_self_recording.sql": """
            CREATE TABLE sneaky (id INTEGER);
            INSERT INTO migrations (name) VALUES ('001_self_recording.sql');
            """
        },
    )
    runner = MigrationRunner(db, DirectoryScriptSource(scripts))

    with pytest.raises(MigrationError, match="001_self_recording.sql"):
        await runner.apply_pending()

    assert await runner.status() == []
    assert not await _table_exists(db, "sneaky")


@pytest.mark.asyncio
async def test_non_script_files_are_ignored(db: Database, tmp_path: Path):
    scripts = write_scripts(
        tmp_path / "sql",
        {"001_init.sql": INIT_SQL, "README.md": "# notes", "002_draft.sql.bak": "nope"},
    )
    (scripts / "subdir.sql").mkdir()

    source = DirectoryScriptSource(scripts)
    assert sorted(source.list_names()) == ["001_init.sql"]
    assert await MigrationRunner(db, source).apply_pending() == ["001_init.sql"]


@pytest.mark.asyncio
async def test_empty_source_has_no_side_effects_beyond_ledger(db: Database, tmp_path: Path):
    runner = MigrationRunner(db, DirectoryScriptSource(write_scripts(tmp_path / "sql", {})))
    assert await runner.apply_pending() == []
    assert await runner.status() == []


@pytest.mark.asyncio
async def test_status_does_not_create_ledger(db: Database, tmp_path: Path):
    runner = MigrationRunner(db, DirectoryScriptSource(tmp_path))
    assert await runner.status() == []
    assert not await _table_exists(db, "migrations")


@pytest.mark.asyncio
async def test_missing_directory(db: Database, tmp_path: Path):
    runner = MigrationRunner(db, DirectoryScriptSource(tmp_path / "missing"))
    with pytest.raises(FileNotFoundError):
        await runner.apply_pending()


@pytest.mark.asyncio
async def test_bundled_scripts(db: Database):
    source = PackageScriptSource()
    names = sorted(source.list_names())
    assert names[0] == "001_initial_schema.sql"
    assert all(name.endswith(".sql") for name in names)

    runner = MigrationRunner(db, source)
    assert await runner.apply_pending() == names
    for table in ["portfolios", "assets", "workloads", "component_workloads"]:
        assert await _table_exists(db, table)


def test_default_script_source(tmp_path: Path):
    assert isinstance(default_script_source(Config(db_path=tmp_path / "a.db")), PackageScriptSource)

    config = Config(db_path=tmp_path / "a.db", migrations_dir=tmp_path)
    source = default_script_source(config)
    assert isinstance(source, DirectoryScriptSource)
    assert source.path == tmp_path
