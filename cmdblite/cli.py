import asyncio
import signal
from typing import Optional

from loguru import logger
from typer import Context, Exit, Option, Typer, echo

from cmdblite.config import Config
from cmdblite.database import Database
from cmdblite.errors import CmdbError
from cmdblite.migrations import MigrationRunner, default_script_source
from cmdblite.server import CmdbServer
from cmdblite.types import MigrationRecord


server_app = Typer()
migration_app = Typer()

app = Typer()
app.add_typer(server_app, name="server")
app.add_typer(migration_app, name="migrate")

CONFIG_HELP = "Path to a YAML config file, the CMDB_* environment variables are used when omitted"


async def _shutdown(signal, loop):
    """Shutdown the server gracefully"""
    logger.info(f"Received exit signal {signal.name}...")
    logger.info("Shutting down...")

    tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]

    for task in tasks:
        task.cancel()

    await asyncio.gather(*tasks, return_exceptions=True)
    loop.stop()


async def _run_server(config_path: Optional[str]):
    config = Config.load(config_path)
    server = CmdbServer(config)
    await server.setup()

    # Handle shutdown signals
    loop = asyncio.get_event_loop()
    signals = (signal.SIGHUP, signal.SIGTERM, signal.SIGINT)
    for s in signals:
        loop.add_signal_handler(s, lambda s=s: asyncio.create_task(_shutdown(s, loop)))

    runner, _ = await server.start()

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()


async def _migrate(config_path: Optional[str]) -> bool:
    try:
        config = Config.load(config_path)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        return False

    db = Database(config)
    try:
        await db.initialize()
        runner = MigrationRunner(db, default_script_source(config))
        logger.info("Running migrations...")
        applied = await runner.apply_pending()
    except (CmdbError, OSError) as e:
        logger.error(f"Migration failed: {e}")
        return False
    finally:
        await db.close()

    logger.info(f"Done. {len(applied)} migration(s) applied")
    return True


async def _status(config_path: Optional[str]) -> list[MigrationRecord]:
    config = Config.load(config_path)
    # Reading status must not create the database file
    if not config.db_path.exists():
        return []

    db = Database(config)
    try:
        return await MigrationRunner(db, default_script_source(config)).status()
    finally:
        await db.close()


def _print_status(records: list[MigrationRecord]):
    if not records:
        echo("No migrations applied.")
        return

    echo(f"{'MIGRATION':<40} APPLIED AT")
    echo(f"{'─────────':<40} ──────────")
    for record in records:
        echo(f"{record['name']:<40} {record['applied_at']}")


@server_app.command()
def run(config: Optional[str] = Option(None, "--config", "-c", help=CONFIG_HELP)):
    asyncio.run(_run_server(config))


@migration_app.callback(invoke_without_command=True)
def migrate(
    ctx: Context,
    config: Optional[str] = Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Apply pending migrations when no subcommand is given"""
    # Subcommands fall back to the group level --config
    ctx.obj = config
    if ctx.invoked_subcommand is None:
        _up(config)


def _up(config: Optional[str]):
    if not asyncio.run(_migrate(config)):
        raise Exit(code=1)


@migration_app.command()
def up(
    ctx: Context,
    config: Optional[str] = Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Apply pending migrations"""
    _up(config or ctx.obj)


@migration_app.command()
def status(
    ctx: Context,
    config: Optional[str] = Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Show applied migrations"""
    try:
        records = asyncio.run(_status(config or ctx.obj))
    except (CmdbError, OSError, ValueError) as e:
        logger.error(f"Failed to read migration status: {e}")
        raise Exit(code=1)
    _print_status(records)
