"""
Declarative descriptors for the inventory tables.

Every table is served by the same generic repository; these descriptors hold
everything that differs between them. Column names here are the only
identifiers ever interpolated into SQL.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Field:
    name: str
    value_type: type = str
    required: bool = False


@dataclass(frozen=True)
class EntitySchema:
    table: str
    pk: str
    order_by: str
    fields: tuple[Field, ...]
    # Column matched by the free-text `q` parameter
    search_column: str | None = None
    # Query parameter name -> column, exact match
    filters: dict[str, str] = field(default_factory=dict)
    writable: bool = True
    timestamps: bool = True

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


PORTFOLIOS = EntitySchema(
    table="portfolios",
    pk="portfolio_id",
    order_by="name",
    search_column="name",
    filters={"name": "name"},
    fields=(
        Field("name", required=True),
        Field("snow_sys_id"),
        Field("state"),
        Field("description"),
    ),
)

ASSETS = EntitySchema(
    table="assets",
    pk="asset_id",
    order_by="name",
    search_column="name",
    filters={"portfolio_id": "portfolio_id", "name": "name"},
    fields=(
        Field("name", required=True),
        Field("portfolio_id", required=True),
        Field("snow_sys_id"),
        Field("full_name"),
        Field("description"),
        Field("criticality"),
        Field("environment"),
        Field("category"),
        Field("infrastructure"),
    ),
)

APP_GROUPINGS = EntitySchema(
    table="app_groupings",
    pk="app_grouping_id",
    order_by="name",
    search_column="name",
    filters={"asset_id": "asset_id", "name": "name"},
    fields=(
        Field("name", required=True),
        Field("asset_id", required=True),
        Field("description"),
    ),
)

APPLICATIONS = EntitySchema(
    table="applications",
    pk="application_id",
    order_by="name",
    search_column="name",
    filters={"app_grouping_id": "app_grouping_id", "name": "name"},
    fields=(
        Field("name", required=True),
        Field("app_grouping_id", required=True),
        Field("description"),
    ),
)

COMPONENTS = EntitySchema(
    table="components",
    pk="component_id",
    order_by="created_at",
    search_column="name",
    filters={
        "application_id": "application_id",
        "type_id": "component_type_id",
        "class_id": "component_class_id",
        "name": "name",
    },
    fields=(
        Field("name"),
        Field("application_id", required=True),
        Field("component_class_id"),
        Field("component_type_id"),
        Field("snow_sys_id"),
        Field("description"),
    ),
)

WORKLOADS = EntitySchema(
    table="workloads",
    pk="workload_id",
    order_by="hostname",
    search_column="hostname",
    filters={"hostname": "hostname", "ip": "ip_address"},
    fields=(
        Field("hostname", required=True),
        Field("snow_sys_id"),
        Field("ip_address"),
        Field("fqdn"),
        Field("os"),
        Field("environment"),
        Field("location"),
        Field("class_type"),
        Field("is_virtual", value_type=int),
        Field("description"),
    ),
)

COMPONENT_CLASSES = EntitySchema(
    table="component_classes",
    pk="component_class_id",
    order_by="label",
    search_column="label",
    writable=False,
    timestamps=False,
    fields=(
        Field("name", required=True),
        Field("label", required=True),
        Field("color", required=True),
    ),
)

COMPONENT_TYPES = EntitySchema(
    table="component_types",
    pk="component_type_id",
    order_by="label",
    search_column="label",
    filters={"class_id": "component_class_id"},
    writable=False,
    timestamps=False,
    fields=(
        Field("class_name", required=True),
        Field("label", required=True),
        Field("color", required=True),
        Field("component_class_id"),
    ),
)

ENTITIES: dict[str, EntitySchema] = {
    "portfolios": PORTFOLIOS,
    "assets": ASSETS,
    "app-groupings": APP_GROUPINGS,
    "applications": APPLICATIONS,
    "components": COMPONENTS,
    "workloads": WORKLOADS,
    "component-classes": COMPONENT_CLASSES,
    "component-types": COMPONENT_TYPES,
}
