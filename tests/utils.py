from pathlib import Path

from cmdblite.database import Database
from cmdblite.repository import Repository
from cmdblite.schemas import APP_GROUPINGS, APPLICATIONS, ASSETS, COMPONENTS, PORTFOLIOS

SERVER_ASSIGNED = {"created_at", "updated_at"}


def write_scripts(directory: Path, scripts: dict[str, str]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, body in scripts.items():
        (directory / name).write_text(body)
    return directory


def strip_server_fields(row: dict, pk: str) -> dict:
    return {k: v for k, v in row.items() if k not in SERVER_ASSIGNED and k != pk}


async def make_hierarchy(db: Database, prefix: str = "") -> dict[str, str]:
    """Create one portfolio -> asset -> app grouping -> application -> component chain"""
    portfolio = await Repository(db, PORTFOLIOS).create({"name": f"{prefix}Retail"})
    asset = await Repository(db, ASSETS).create(
        {
            "name": f"{prefix}Checkout",
            "portfolio_id": portfolio["portfolio_id"],
            "criticality": "high",
            "environment": "production",
        }
    )
    grouping = await Repository(db, APP_GROUPINGS).create(
        {"name": f"{prefix}Payments", "asset_id": asset["asset_id"]}
    )
    application = await Repository(db, APPLICATIONS).create(
        {"name": f"{prefix}payment-api", "app_grouping_id": grouping["app_grouping_id"]}
    )
    component = await Repository(db, COMPONENTS).create(
        {
            "name": f"{prefix}payment-api-tomcat",
            "application_id": application["application_id"],
            "component_class_id": "cc-app-server",
            "component_type_id": "ct-tomcat",
        }
    )
    return {
        "portfolio_id": portfolio["portfolio_id"],
        "asset_id": asset["asset_id"],
        "app_grouping_id": grouping["app_grouping_id"],
        "application_id": application["application_id"],
        "component_id": component["component_id"],
    }
