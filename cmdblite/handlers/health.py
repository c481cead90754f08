from typing import Any

from aiohttp import web

from cmdblite.database import Database
from cmdblite.handlers import RequestHandler


class HealthCheckHandler(RequestHandler[Any]):
    description = "check health"

    def __init__(self, db: Database, verbose: bool = False):
        super().__init__(verbose)
        self.db = db

    async def handle(self, request: web.Request, data: Any) -> web.Response:
        if not await self.db.ping():
            return self.response_ok({"status": "error", "error": "database unreachable"}, status=503)
        return self.response_ok({"status": "ok", "db_path": str(self.db.db_path)})


class SchemaHandler(RequestHandler[Any]):
    description = "describe schema"

    def __init__(self, db: Database, verbose: bool = False):
        super().__init__(verbose)
        self.db = db

    async def handle(self, request: web.Request, data: Any) -> web.Response:
        return self.response_ok({"tables": await self.db.get_tables()})
