from typing import TypedDict, Union

SqlValue = Union[None, int, float, str, bytes]

# Column order of the underlying result set is preserved by dict insertion order
GenericRow = dict[str, SqlValue]


class MigrationRecord(TypedDict):
    name: str
    applied_at: str


class ListResult(TypedDict):
    data: list[GenericRow]
    count: int


class BulkUpsertResult(TypedDict):
    created: int
    updated: int
    errors: int
    total: int


class LookupResult(TypedDict, total=False):
    workload: GenericRow | None
    hierarchy: list[GenericRow]

