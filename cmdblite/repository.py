from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from loguru import logger

from cmdblite.database import Database
from cmdblite.errors import NotFoundError, RequestValidationError
from cmdblite.query import QueryBuilder
from cmdblite.schemas import EntitySchema, Field
from cmdblite.types import GenericRow, ListResult, SqlValue
from cmdblite.utils import new_id

FilterHook = Callable[[Mapping[str, Any]], QueryBuilder]


def _check_id(pk: Any) -> str:
    if not isinstance(pk, str) or not pk.strip():
        raise RequestValidationError("invalid id")
    return pk


def _check_type(f: Field, value: Any) -> SqlValue:
    if value is None:
        return None
    # bool is an int subclass but never a valid column value here
    if isinstance(value, bool) or not isinstance(value, f.value_type):
        raise RequestValidationError(
            f"Field '{f.name}' must be of type {f.value_type.__name__}, got {type(value).__name__}"
        )
    return value


def _check_payload(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise RequestValidationError("Request body must be a JSON object")
    return payload


class Repository:
    """Generic CRUD operations for one table, driven by its `EntitySchema`"""

    def __init__(
        self,
        db: Database,
        schema: EntitySchema,
        filter_hook: Optional[FilterHook] = None,
    ):
        self.db = db
        self.schema = schema
        self.filter_hook: FilterHook = filter_hook or self.build_query

    def build_query(self, params: Mapping[str, Any]) -> QueryBuilder:
        qb = QueryBuilder(params.get("limit"), params.get("offset"))

        if self.schema.search_column and (q := params.get("q")):
            qb.add_like(self.schema.search_column, str(q))

        for param, column in self.schema.filters.items():
            if value := params.get(param):
                qb.add_filter(f"{column} = ?", value)

        return qb

    async def list(self, params: Optional[Mapping[str, Any]] = None) -> ListResult:
        qb = self.filter_hook(params or {})
        sql = (
            f"SELECT * FROM {self.schema.table}{qb.where_clause()} "
            f"ORDER BY {self.schema.order_by} LIMIT ? OFFSET ?"
        )
        rows = await self.db.fetch_all(sql, qb.page_params())
        # `count` is the size of this page, not the number of matching rows
        return {"data": rows, "count": len(rows)}

    async def find(self, pk: str) -> GenericRow | None:
        return await self.db.fetch_one(
            f"SELECT * FROM {self.schema.table} WHERE {self.schema.pk} = ?",
            (_check_id(pk),),
        )

    async def get(self, pk: str) -> GenericRow:
        row = await self.find(pk)
        if row is None:
            raise NotFoundError()
        return row

    async def delete(self, pk: str):
        affected = await self.db.execute(
            f"DELETE FROM {self.schema.table} WHERE {self.schema.pk} = ?",
            (_check_id(pk),),
        )
        if affected == 0:
            raise NotFoundError()

    async def create(self, payload: Any) -> GenericRow:
        payload = _check_payload(payload)

        values: list[SqlValue] = []
        for f in self.schema.fields:
            value = _check_type(f, payload.get(f.name))
            if f.required and (value is None or value == ""):
                raise RequestValidationError(f"Missing required field '{f.name}'")
            values.append(value)

        pk = new_id()
        columns = [self.schema.pk, *self.schema.field_names]
        placeholders = ", ".join("?" for _ in columns)
        await self.db.execute(
            f"INSERT INTO {self.schema.table} ({', '.join(columns)}) VALUES ({placeholders})",
            (pk, *values),
        )

        logger.debug(f"created {self.schema.table} {pk}")
        return await self.get(pk)

    async def update(self, pk: str, patch: Any) -> GenericRow:
        """Apply a sparse patch.

        Fields that are absent or null keep their stored value, so a nullable
        column cannot be reset to null through this operation.
        """
        pk = _check_id(pk)
        patch = _check_payload(patch)

        assignments = [f"{name}=COALESCE(?,{name})" for name in self.schema.field_names]
        if self.schema.timestamps:
            assignments.append("updated_at=datetime('now')")
        values = [_check_type(f, patch.get(f.name)) for f in self.schema.fields]

        await self.db.execute(
            f"UPDATE {self.schema.table} SET {', '.join(assignments)} WHERE {self.schema.pk}=?",
            (*values, pk),
        )

        # The row may have been removed between the write and this read
        return await self.get(pk)
