import sqlite3
from typing import Any, Mapping

from loguru import logger

from cmdblite.database import Database
from cmdblite.errors import NotFoundError, RequestValidationError
from cmdblite.rows import fetch_rows
from cmdblite.types import BulkUpsertResult, GenericRow, ListResult, LookupResult
from cmdblite.utils import new_id

# Every column except the identifiers takes the incoming value only when one was supplied
UPSERT_COLUMNS = [
    "ip_address",
    "fqdn",
    "os",
    "environment",
    "location",
    "class_type",
    "is_virtual",
    "description",
]

UPSERT_SQL = f"""
INSERT INTO workloads (workload_id, hostname, {", ".join(UPSERT_COLUMNS)})
VALUES (?, ?, {", ".join("?" for _ in UPSERT_COLUMNS)})
ON CONFLICT(hostname) DO UPDATE SET
    {", ".join(f"{col}=COALESCE(excluded.{col}, {col})" for col in UPSERT_COLUMNS)},
    updated_at=datetime('now')
"""

HIERARCHY_SQL = """
SELECT c.component_id, c.name AS component_name, c.description AS component_description,
       ct.label AS component_type, ct.color AS component_color,
       a.application_id, a.name AS application_name,
       ag.app_grouping_id, ag.name AS app_grouping_name,
       ast.asset_id, ast.name AS asset_name, ast.criticality, ast.environment AS asset_environment,
       p.portfolio_id, p.name AS portfolio_name
FROM component_workloads cw
JOIN components c ON c.component_id = cw.component_id
LEFT JOIN component_types ct ON ct.component_type_id = c.component_type_id
JOIN applications a ON a.application_id = c.application_id
JOIN app_groupings ag ON ag.app_grouping_id = a.app_grouping_id
JOIN assets ast ON ast.asset_id = ag.asset_id
JOIN portfolios p ON p.portfolio_id = ast.portfolio_id
WHERE cw.workload_id = ?
ORDER BY p.name, ast.name, a.name, c.name
"""


class WorkloadService:
    """Workload operations that go beyond single-table CRUD"""

    def __init__(self, db: Database):
        self.db = db

    async def bulk_upsert(self, records: Any) -> BulkUpsertResult:
        """Insert or merge a batch of hosts keyed by hostname.

        A record counts as updated when its hostname already existed, either in
        the table or earlier in the same batch. Invalid records and failed
        statements count as errors without aborting the batch.
        """
        if not isinstance(records, list):
            raise RequestValidationError("'workloads' must be a list")

        created, updated, errors = 0, 0, 0
        async with self.db.transaction() as conn:
            async with conn.execute("SELECT hostname FROM workloads") as cursor:
                existing = {row["hostname"] for row in await fetch_rows(cursor)}

            for record in records:
                hostname = record.get("hostname") if isinstance(record, Mapping) else None
                if not isinstance(hostname, str) or not hostname:
                    errors += 1
                    continue

                values = [record.get(col) for col in UPSERT_COLUMNS]
                try:
                    await conn.execute(UPSERT_SQL, (new_id(), hostname, *values))
                except sqlite3.Error as e:
                    logger.warning(f"Failed to upsert workload {hostname}: {e}")
                    errors += 1
                    continue

                if hostname in existing:
                    updated += 1
                else:
                    created += 1
                    existing.add(hostname)

        logger.info(f"Bulk upsert: created={created}, updated={updated}, errors={errors}")
        return {"created": created, "updated": updated, "errors": errors, "total": len(records)}

    async def lookup(self, hostname: str | None = None, ip: str | None = None) -> LookupResult:
        """Find a workload by hostname (preferred) or IP along with its full hierarchy"""
        if hostname:
            workload = await self.db.fetch_one(
                "SELECT * FROM workloads WHERE hostname = ?", (hostname,)
            )
        elif ip:
            workload = await self.db.fetch_one(
                "SELECT * FROM workloads WHERE ip_address = ?", (ip,)
            )
        else:
            raise RequestValidationError("hostname or ip required")

        if workload is None:
            return {"workload": None}

        hierarchy = await self.db.fetch_all(HIERARCHY_SQL, (workload["workload_id"],))
        return {"workload": workload, "hierarchy": hierarchy}

    async def list_component_workloads(self, component_id: str) -> ListResult:
        rows: list[GenericRow] = await self.db.fetch_all(
            """
            SELECT w.*
            FROM workloads w
            JOIN component_workloads cw ON cw.workload_id = w.workload_id
            WHERE cw.component_id = ?
            ORDER BY w.hostname
            """,
            (component_id,),
        )
        return {"data": rows, "count": len(rows)}

    async def link(self, component_id: str, workload_id: Any):
        if not isinstance(workload_id, str) or not workload_id:
            raise RequestValidationError("Missing required field 'workload_id'")

        await self.db.execute(
            "INSERT OR IGNORE INTO component_workloads (component_id, workload_id) VALUES (?, ?)",
            (component_id, workload_id),
        )

    async def unlink(self, component_id: str, workload_id: str):
        if not component_id or not workload_id:
            raise RequestValidationError("component_id and workload_id required")

        affected = await self.db.execute(
            "DELETE FROM component_workloads WHERE component_id = ? AND workload_id = ?",
            (component_id, workload_id),
        )
        if affected == 0:
            raise NotFoundError("link not found")
