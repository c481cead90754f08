from aiohttp import web
import aiohttp_cors
from loguru import logger

from cmdblite.config import Config
from cmdblite.database import Database
from cmdblite.migrations import MigrationRunner, default_script_source
from cmdblite.repository import Repository
from cmdblite.schemas import ENTITIES
from cmdblite.workloads import WorkloadService
from cmdblite.handlers import RequestHandler, crud
from cmdblite.handlers import workloads as workload_handlers
from cmdblite.handlers.health import HealthCheckHandler, SchemaHandler

API_PREFIX = "/v1/cmdb"


def _route(method: str, path: str, handler: RequestHandler) -> web.RouteDef:
    return web.route(method, f"{API_PREFIX}{path}", handler.dispatch)


class CmdbServer:
    def __init__(self, config: Config):
        self.config = config
        self.db = Database(config)
        self.migration_runner = MigrationRunner(self.db, default_script_source(config))
        self.workload_service = WorkloadService(self.db)
        self.app = web.Application()
        self.app.on_cleanup.append(self._close_db)

    async def _close_db(self, app: web.Application):
        await self.db.close()

    def _entity_routes(self) -> list[web.RouteDef]:
        verbose = self.config.verbose
        routes = []
        # Routes sharing a path stay adjacent so the router keeps them on one resource
        for path, schema in ENTITIES.items():
            repo = Repository(self.db, schema)
            routes.append(_route("GET", f"/{path}", crud.ListHandler(repo, verbose)))
            if schema.writable:
                routes.append(_route("POST", f"/{path}", crud.CreateHandler(repo, verbose)))

            routes.append(_route("GET", f"/{path}/{{id}}", crud.GetHandler(repo, verbose)))
            if schema.writable:
                routes.append(_route("PUT", f"/{path}/{{id}}", crud.UpdateHandler(repo, verbose)))
                routes.append(
                    _route("DELETE", f"/{path}/{{id}}", crud.DeleteHandler(repo, verbose))
                )
        return routes

    def _workload_routes(self) -> list[web.RouteDef]:
        verbose = self.config.verbose
        service = self.workload_service
        return [
            _route("GET", "/workloads/lookup", workload_handlers.LookupHandler(service, verbose)),
            _route("POST", "/workloads/bulk", workload_handlers.BulkUpsertHandler(service, verbose)),
            _route(
                "GET",
                "/components/{id}/workloads",
                workload_handlers.ComponentWorkloadsHandler(service, verbose),
            ),
            _route(
                "POST",
                "/components/{id}/workloads",
                workload_handlers.LinkWorkloadHandler(service, verbose),
            ),
            _route(
                "DELETE",
                "/components/{id}/workloads/{workload_id}",
                workload_handlers.UnlinkWorkloadHandler(service, verbose),
            ),
        ]

    async def setup(self):
        """Set up the server"""
        # Initialize database
        await self.db.initialize()

        # Apply migrations, a failure here aborts startup
        await self.migration_runner.apply_pending()

        # Set up routes. Fixed workload paths must be registered before `/workloads/{id}`
        self.app.add_routes(
            [
                _route("GET", "/health", HealthCheckHandler(self.db, self.config.verbose)),
                _route("GET", "/schema", SchemaHandler(self.db, self.config.verbose)),
                *self._workload_routes(),
                *self._entity_routes(),
            ]
        )

        # Set up CORS
        cors = aiohttp_cors.setup(
            self.app,
            defaults={
                self.config.allow_origin: aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )

        # Apply CORS to all routes
        for route in list(self.app.router.routes()):
            cors.add(route)

    async def start(self):
        """Start the server"""
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()

        logger.opt(colors=True).info(
            f"<g>CMDB server started at http://{self.config.host}:{self.config.port}{API_PREFIX}</g>"
        )

        return runner, site
