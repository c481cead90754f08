from typing import Any

from aiohttp import web

from cmdblite.errors import RequestValidationError
from cmdblite.handlers import RequestHandler
from cmdblite.workloads import WorkloadService


class WorkloadHandler(RequestHandler[Any]):
    def __init__(self, service: WorkloadService, verbose: bool = False):
        super().__init__(verbose)
        self.service = service


class BulkUpsertHandler(WorkloadHandler):
    description = "bulk upsert workloads"

    async def validate_request(self, request: web.Request) -> list:
        body = await self.read_json(request)
        if not isinstance(body, dict) or "workloads" not in body:
            raise RequestValidationError("Missing required field 'workloads'")
        if not isinstance(body["workloads"], list):
            raise RequestValidationError("'workloads' must be a list")
        return body["workloads"]

    async def handle(self, request: web.Request, data: list) -> web.Response:
        return self.response_ok(await self.service.bulk_upsert(data))


class LookupHandler(WorkloadHandler):
    description = "look up workload"

    async def validate_request(self, request: web.Request) -> tuple[str, str]:
        hostname = request.query.get("hostname", "")
        ip = request.query.get("ip", "")
        if not hostname and not ip:
            raise RequestValidationError("hostname or ip required")
        return hostname, ip

    async def handle(self, request: web.Request, data: tuple[str, str]) -> web.Response:
        hostname, ip = data
        return self.response_ok(await self.service.lookup(hostname=hostname, ip=ip))


class ComponentWorkloadsHandler(WorkloadHandler):
    description = "list component workloads"

    async def validate_request(self, request: web.Request) -> str:
        return self.path_id(request)

    async def handle(self, request: web.Request, data: str) -> web.Response:
        return self.response_ok(await self.service.list_component_workloads(data))


class LinkWorkloadHandler(WorkloadHandler):
    description = "link workload"

    async def validate_request(self, request: web.Request) -> tuple[str, Any]:
        component_id = self.path_id(request)
        body = await self.read_json(request)
        if not isinstance(body, dict):
            raise RequestValidationError("Request body must be a JSON object")
        return component_id, body.get("workload_id")

    async def handle(self, request: web.Request, data: tuple[str, Any]) -> web.Response:
        component_id, workload_id = data
        await self.service.link(component_id, workload_id)
        return self.response_ok({"linked": True}, status=201)


class UnlinkWorkloadHandler(WorkloadHandler):
    description = "unlink workload"

    async def validate_request(self, request: web.Request) -> tuple[str, str]:
        return self.path_id(request), self.path_id(request, "workload_id")

    async def handle(self, request: web.Request, data: tuple[str, str]) -> web.Response:
        component_id, workload_id = data
        await self.service.unlink(component_id, workload_id)
        return self.response_ok({"deleted": True})
