from typing import Any

from cmdblite.types import SqlValue

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def paginate(limit: Any = None, offset: Any = None) -> tuple[int, int]:
    """Clamp raw limit/offset input, falling back to the defaults when out of range"""
    _limit = _to_int(limit)
    if _limit is None or not 1 <= _limit <= MAX_LIMIT:
        _limit = DEFAULT_LIMIT

    _offset = _to_int(offset)
    if _offset is None or _offset < 0:
        _offset = 0

    return _limit, _offset


class QueryBuilder:
    """Accumulates AND-ed WHERE predicates and their bound values.

    Column names are interpolated as-is and must come from code, never from
    request input. Every value goes through a `?` placeholder.
    """

    def __init__(self, limit: Any = None, offset: Any = None):
        self.predicates: list[str] = []
        self.params: list[SqlValue] = []
        self.limit, self.offset = paginate(limit, offset)

    def add_filter(self, clause: str, value: SqlValue) -> "QueryBuilder":
        self.predicates.append(clause)
        self.params.append(value)
        return self

    def add_like(self, column: str, value: str) -> "QueryBuilder":
        return self.add_filter(f"{column} LIKE ?", f"%{value}%")

    def where_clause(self) -> str:
        if not self.predicates:
            return ""
        return " WHERE " + " AND ".join(self.predicates)

    def page_params(self) -> list[SqlValue]:
        return [*self.params, self.limit, self.offset]
