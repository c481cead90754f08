from typing import Any

from aiohttp import web

from cmdblite.handlers import RequestHandler
from cmdblite.repository import Repository


class EntityHandler(RequestHandler[Any]):
    action = "access"

    def __init__(self, repo: Repository, verbose: bool = False):
        super().__init__(verbose)
        self.repo = repo
        self.description = f"{self.action} {repo.schema.table}"


class ListHandler(EntityHandler):
    action = "list"

    async def handle(self, request: web.Request, data: Any) -> web.Response:
        result = await self.repo.list(request.query)
        return self.response_ok(result)


class GetHandler(EntityHandler):
    action = "get"

    async def validate_request(self, request: web.Request) -> str:
        return self.path_id(request)

    async def handle(self, request: web.Request, data: str) -> web.Response:
        return self.response_ok(await self.repo.get(data))


class CreateHandler(EntityHandler):
    action = "create"

    async def validate_request(self, request: web.Request) -> Any:
        return await self.read_json(request)

    async def handle(self, request: web.Request, data: Any) -> web.Response:
        row = await self.repo.create(data)
        return self.response_ok(row, status=201)


class UpdateHandler(EntityHandler):
    action = "update"

    async def validate_request(self, request: web.Request) -> tuple[str, Any]:
        return self.path_id(request), await self.read_json(request)

    async def handle(self, request: web.Request, data: tuple[str, Any]) -> web.Response:
        pk, patch = data
        return self.response_ok(await self.repo.update(pk, patch))


class DeleteHandler(EntityHandler):
    action = "delete"

    async def validate_request(self, request: web.Request) -> str:
        return self.path_id(request)

    async def handle(self, request: web.Request, data: str) -> web.Response:
        await self.repo.delete(data)
        return self.response_ok({"deleted": True})
