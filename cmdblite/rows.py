from typing import Any, Iterable, Optional, Sequence

import aiosqlite

from cmdblite.types import GenericRow

Description = Optional[Sequence[Sequence[Any]]]


def column_names(description: Description) -> list[str]:
    return [col[0] for col in description or ()]


def materialize(description: Description, rows: Iterable[Sequence[Any]]) -> list[GenericRow]:
    """Turn raw result tuples into column-ordered dicts.

    The engine does not know entity shapes, so column names are taken from the
    cursor description. An empty result set always yields an empty list.
    """
    columns = column_names(description)
    return [dict(zip(columns, row)) for row in rows]


async def fetch_rows(cursor: aiosqlite.Cursor) -> list[GenericRow]:
    rows = await cursor.fetchall()
    return materialize(cursor.description, rows)
