import base64
import uuid
from typing import Any

import orjson


def new_id() -> str:
    return str(uuid.uuid4())


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def json_dumps(data: Any) -> bytes:
    return orjson.dumps(data, default=_json_default)
