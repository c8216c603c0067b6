"""
Entity Declarations.

The :class:`EntitySpec` for every synchronised entity, in the order a full
sync downloads them (parents before the records that reference them), and
the factory that builds their repositories.
"""

from __future__ import annotations

from retailsync.api_client import ApiClient
from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger
from retailsync.models.entities import (
    CATEGORY_CODEC,
    CUSTOMER_CODEC,
    PRODUCT_CODEC,
    ROUTE_CODEC,
    SALESMAN_CODEC,
    SUB_CATEGORY_CODEC,
    SUPPLIER_CODEC,
    UNIT_CODEC,
)
from retailsync.models.enums import UserType
from retailsync.repositories.entity_repository import (
    EndpointSet,
    EntityRepository,
    EntitySpec,
)

__all__ = [
    "CATEGORY_SPEC",
    "CUSTOMER_SPEC",
    "ENTITY_SPECS",
    "PRODUCT_SPEC",
    "ROUTE_SPEC",
    "SALESMAN_SPEC",
    "SUB_CATEGORY_SPEC",
    "SUPPLIER_SPEC",
    "UNIT_SPEC",
    "create_repositories",
]


def _endpoints(download: str, write_prefix: str) -> EndpointSet:
    return EndpointSet(
        download=download,
        create=f"{write_prefix}/add",
        update=f"{write_prefix}/update",
        flag=f"{write_prefix}/update_flag",
    )


# Supplier accounts only see their own catalogue.
_SUPPLIER_ACCOUNT = frozenset({int(UserType.SUPPLIER)})


CATEGORY_SPEC = EntitySpec(
    name="Category",
    table="categories",
    alias="cat",
    codec=CATEGORY_CODEC,
    endpoints=_endpoints("api/category/download", "api/category"),
    natural_key="name",
    natural_key_case_insensitive=True,
    natural_key_active_only=True,
    search_columns=("cat.name", "cat.remark"),
)

SUB_CATEGORY_SPEC = EntitySpec(
    name="SubCategory",
    table="sub_categories",
    alias="sc",
    codec=SUB_CATEGORY_CODEC,
    endpoints=_endpoints("api/sub_category/download", "api/sub_category"),
    natural_key="name",
    natural_key_case_insensitive=True,
    natural_key_active_only=True,
    search_columns=("sc.name", "cat.name"),
    joins=("LEFT JOIN categories AS cat ON cat.category_id = sc.parent_id",),
    join_columns=("cat.name AS category_name",),
    filter_columns={"parent_id": "sc.parent_id"},
)

UNIT_SPEC = EntitySpec(
    name="Unit",
    table="units",
    alias="u",
    codec=UNIT_CODEC,
    endpoints=_endpoints("api/units/download", "api/unit"),
    natural_key="name",
    natural_key_case_insensitive=True,
    natural_key_active_only=True,
    search_columns=("u.name", "u.code", "u.display_name"),
    filter_columns={"type": "u.type", "base_id": "u.base_id"},
)

PRODUCT_SPEC = EntitySpec(
    name="Product",
    table="products",
    alias="p",
    codec=PRODUCT_CODEC,
    endpoints=_endpoints("api/products/download", "api/products"),
    natural_key="code",
    search_columns=("p.name", "p.code", "p.barcode", "p.brand", "cat.name"),
    joins=(
        "LEFT JOIN categories AS cat ON cat.category_id = p.category_id",
        "LEFT JOIN sub_categories AS sc ON sc.sub_category_id = p.sub_category_id",
        "LEFT JOIN units AS u ON u.unit_id = p.default_unit_id",
    ),
    join_columns=(
        "cat.name AS category_name",
        "sc.name AS sub_category_name",
        "u.name AS unit_name",
    ),
    filter_columns={
        "category_id": "p.category_id",
        "sub_category_id": "p.sub_category_id",
        "default_supplier_id": "p.default_supplier_id",
    },
    record_member="product",
)

ROUTE_SPEC = EntitySpec(
    name="Route",
    table="routes",
    alias="r",
    codec=ROUTE_CODEC,
    endpoints=_endpoints("api/routes/download", "api/route"),
    natural_key="name",
    natural_key_case_insensitive=True,
    natural_key_active_only=True,
    search_columns=("r.name", "r.code", "s.name"),
    joins=("LEFT JOIN salesmen AS s ON s.user_id = r.salesman_id",),
    join_columns=("s.name AS salesman_name",),
    filter_columns={"salesman_id": "r.salesman_id"},
)

SALESMAN_SPEC = EntitySpec(
    name="SalesMan",
    table="salesmen",
    alias="s",
    codec=SALESMAN_CODEC,
    endpoints=_endpoints("api/sales_man/download", "api/sales_man"),
    natural_key="code",
    search_columns=("s.name", "s.code"),
    filter_columns={"user_id": "s.user_id"},
    excluded_user_types=_SUPPLIER_ACCOUNT,
)

SUPPLIER_SPEC = EntitySpec(
    name="Supplier",
    table="suppliers",
    alias="sp",
    codec=SUPPLIER_CODEC,
    endpoints=_endpoints("api/suppliers/download", "api/suppliers"),
    natural_key="code",
    search_columns=("sp.name", "sp.code"),
    filter_columns={"user_id": "sp.user_id"},
    excluded_user_types=_SUPPLIER_ACCOUNT,
)

CUSTOMER_SPEC = EntitySpec(
    name="Customer",
    table="customers",
    alias="c",
    codec=CUSTOMER_CODEC,
    endpoints=_endpoints("api/customer/download", "api/customer"),
    natural_key="code",
    search_columns=("c.name", "c.code", "s.name", "r.name"),
    joins=(
        "LEFT JOIN salesmen AS s ON s.user_id = c.salesman_id",
        "LEFT JOIN routes AS r ON r.route_id = c.route_id",
    ),
    join_columns=("s.name AS salesman_name", "r.name AS route_name"),
    filter_columns={"route_id": "c.route_id", "salesman_id": "c.salesman_id"},
    excluded_user_types=_SUPPLIER_ACCOUNT,
)

# Download order for a full sync.
ENTITY_SPECS: tuple[EntitySpec, ...] = (
    CATEGORY_SPEC,
    SUB_CATEGORY_SPEC,
    UNIT_SPEC,
    PRODUCT_SPEC,
    ROUTE_SPEC,
    SALESMAN_SPEC,
    SUPPLIER_SPEC,
    CUSTOMER_SPEC,
)


def create_repositories(
    db: DatabaseManager,
    api: ApiClient,
    logger: StructuredLogger,
) -> dict[str, EntityRepository]:
    """Build one repository per entity, keyed by table name, in sync order."""
    return {
        spec.table: EntityRepository(spec, db, api, logger)
        for spec in ENTITY_SPECS
    }
