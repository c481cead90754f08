from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import orjson
from aiohttp import web
from loguru import logger

from cmdblite.errors import NotFoundError, RequestValidationError, StorageError
from cmdblite.utils import json_dumps

T = TypeVar("T")


class RequestHandler(ABC, Generic[T]):
    description: str = "handle request"

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    async def validate_request(self, request: web.Request) -> T:
        return None  # type: ignore[return-value]

    @abstractmethod
    async def handle(self, request: web.Request, data: T) -> web.Response: ...

    async def dispatch(self, request: web.Request) -> web.Response:
        try:
            data = await self.validate_request(request)
            if self.verbose:
                logger.info(f"{request.method} {request.path} ({self.description})")
            return await self.handle(request, data)
        except RequestValidationError as e:
            return self.response_fail(str(e), status=400)
        except NotFoundError as e:
            return self.response_fail(str(e), status=404)
        except StorageError as e:
            logger.error(f"Failed to {self.description}: {e}")
            return self.response_fail(str(e), status=500)
        except Exception as e:
            logger.exception(f"Unexpected error while trying to {self.description}")
            return self.response_fail(str(e), status=500)

    @staticmethod
    async def read_json(request: web.Request) -> Any:
        body = await request.read()
        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise RequestValidationError(f"Invalid JSON body: {e}") from e

    @staticmethod
    def path_id(request: web.Request, key: str = "id") -> str:
        value = request.match_info.get(key, "")
        if not value:
            raise RequestValidationError("invalid id")
        return value

    @staticmethod
    def response_ok(data: Any, status: int = 200) -> web.Response:
        return web.Response(
            status=status,
            body=json_dumps(data),
            content_type="application/json",
        )

    @staticmethod
    def response_fail(message: str, status: int = 400) -> web.Response:
        return web.Response(
            status=status,
            body=json_dumps({"error": message}),
            content_type="application/json",
        )
