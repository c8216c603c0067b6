"""
Entity Records and their Codecs.

One pydantic value object per synchronised entity type, each paired with the
:class:`~retailsync.models.codec.EntityCodec` that maps it to the wire and to
its SQLite row.  Field defaults mirror the decode policy: ``-1`` for ids and
foreign keys, ``1`` for ``flag``, ``""`` for text, ``0.0`` for prices and
quantities.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from retailsync.models.codec import EntityCodec, FieldMap
from retailsync.models.enums import FieldKind

__all__ = [
    "CATEGORY_CODEC",
    "CUSTOMER_CODEC",
    "Category",
    "Customer",
    "EntityRecord",
    "PRODUCT_CODEC",
    "Product",
    "ROUTE_CODEC",
    "Route",
    "SALESMAN_CODEC",
    "SUB_CATEGORY_CODEC",
    "SUPPLIER_CODEC",
    "SalesMan",
    "SubCategory",
    "Supplier",
    "UNIT_CODEC",
    "Unit",
]


class EntityRecord(BaseModel):
    """Fields shared by every synchronised entity."""

    model_config = ConfigDict(from_attributes=True)

    local_id: Optional[int] = None
    flag: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.flag == 1


class Category(EntityRecord):
    category_id: int = -1
    name: str = ""
    remark: str = ""


class SubCategory(EntityRecord):
    sub_category_id: int = -1
    parent_id: int = -1
    name: str = ""
    remark: str = ""

    # Joined from categories at read time
    category_name: Optional[str] = None


class Unit(EntityRecord):
    """Unit of measure.

    Base units have ``type`` 0 and no ``base_id``.  A derived unit is
    ``base_qty`` of the base unit ``base_id`` (a box of 12 pieces).
    """

    unit_id: int = -1
    code: str = ""
    name: str = ""
    display_name: str = ""
    type: int = 0
    base_id: int = -1
    base_qty: float = 0.0
    comment: str = ""

    @property
    def is_base_unit(self) -> bool:
        return self.type == 0


class Product(EntityRecord):
    product_id: int = -1
    code: str = ""
    barcode: str = ""
    name: str = ""
    sub_name: str = ""
    brand: str = ""
    sub_brand: str = ""
    category_id: int = -1
    sub_category_id: int = -1
    default_supplier_id: int = -1
    auto_send_flag: int = -1
    base_unit_id: int = -1
    default_unit_id: int = -1
    price: float = 0.0
    mrp: float = 0.0
    retail_price: float = 0.0
    fitting_charge: float = 0.0
    note: str = ""
    photo: str = ""

    category_name: Optional[str] = None
    sub_category_name: Optional[str] = None
    unit_name: Optional[str] = None


class Route(EntityRecord):
    route_id: int = -1
    code: str = ""
    name: str = ""
    salesman_id: int = -1

    salesman_name: Optional[str] = None


class SalesMan(EntityRecord):
    """Field salesman.  ``user_id`` is the login account other tables reference."""

    salesman_id: int = -1
    user_id: int = -1
    code: str = ""
    name: str = ""
    phone: str = ""
    address: str = ""
    device_token: str = ""


class Supplier(EntityRecord):
    supplier_id: int = -1
    user_id: int = -1
    code: str = ""
    name: str = ""
    phone: str = ""
    address: str = ""
    device_token: str = ""


class Customer(EntityRecord):
    """Retail outlet served on a route.

    ``rating`` arrives as int, float or numeric string depending on the
    server build; anything unparseable becomes ``-1``.
    """

    customer_id: int = -1
    code: str = ""
    name: str = ""
    phone: str = ""
    address: str = ""
    route_id: int = -1
    salesman_id: int = -1
    rating: int = -1
    device_token: str = ""

    route_name: Optional[str] = None
    salesman_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Field declarations
# ---------------------------------------------------------------------------

_INT = FieldKind.INT
_TEXT = FieldKind.TEXT
_FLOAT = FieldKind.FLOAT


def _common_fields() -> list[FieldMap]:
    return [
        FieldMap("local_id", None, "id", FieldKind.OPTIONAL_INT, read_only=True),
        FieldMap("flag", "flag", "flag", _INT, 1),
        FieldMap("created_at", "created_at", "created_at", FieldKind.OPTIONAL_TEXT),
        FieldMap("updated_at", "updated_at", "updated_at", FieldKind.OPTIONAL_TEXT),
    ]


def _joined(attr: str) -> FieldMap:
    """Display name selected by a join under the alias *attr*."""
    return FieldMap(attr, None, attr, FieldKind.OPTIONAL_TEXT, read_only=True)


CATEGORY_CODEC: EntityCodec[Category] = EntityCodec(
    Category,
    "category_id",
    [
        FieldMap("category_id", "id", "category_id", _INT, -1),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("remark", "remark", "remark", _TEXT, ""),
        *_common_fields(),
    ],
)

SUB_CATEGORY_CODEC: EntityCodec[SubCategory] = EntityCodec(
    SubCategory,
    "sub_category_id",
    [
        FieldMap("sub_category_id", "id", "sub_category_id", _INT, -1),
        FieldMap("parent_id", "cat_id", "parent_id", _INT, -1),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("remark", "remark", "remark", _TEXT, ""),
        *_common_fields(),
        _joined("category_name"),
    ],
)

UNIT_CODEC: EntityCodec[Unit] = EntityCodec(
    Unit,
    "unit_id",
    [
        FieldMap("unit_id", "id", "unit_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("display_name", "display_name", "display_name", _TEXT, ""),
        FieldMap("type", "type", "type", _INT, 0),
        FieldMap("base_id", "base_id", "base_id", _INT, -1),
        FieldMap("base_qty", "base_qty", "base_qty", _FLOAT, 0.0),
        FieldMap("comment", "comment", "comment", _TEXT, ""),
        *_common_fields(),
    ],
)

PRODUCT_CODEC: EntityCodec[Product] = EntityCodec(
    Product,
    "product_id",
    [
        FieldMap("product_id", "id", "product_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("barcode", "barcode", "barcode", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("sub_name", "sub_name", "sub_name", _TEXT, ""),
        FieldMap("brand", "brand", "brand", _TEXT, ""),
        FieldMap("sub_brand", "sub_brand", "sub_brand", _TEXT, ""),
        FieldMap("category_id", "category_id", "category_id", _INT, -1),
        FieldMap("sub_category_id", "sub_category_id", "sub_category_id", _INT, -1),
        FieldMap("default_supplier_id", "default_supp_id", "default_supplier_id", _INT, -1),
        FieldMap("auto_send_flag", "auto_sendto_supplier_flag", "auto_send_flag", _INT, -1),
        FieldMap("base_unit_id", "base_unit_id", "base_unit_id", _INT, -1),
        FieldMap("default_unit_id", "default_unit_id", "default_unit_id", _INT, -1),
        FieldMap("price", "price", "price", _FLOAT, 0.0),
        FieldMap("mrp", "mrp", "mrp", _FLOAT, 0.0),
        FieldMap("retail_price", "retail_price", "retail_price", _FLOAT, 0.0),
        FieldMap("fitting_charge", "fitting_charge", "fitting_charge", _FLOAT, 0.0),
        FieldMap("note", "note", "note", _TEXT, ""),
        FieldMap("photo", "photo", "photo_url", _TEXT, ""),
        *_common_fields(),
        _joined("category_name"),
        _joined("sub_category_name"),
        _joined("unit_name"),
    ],
)

ROUTE_CODEC: EntityCodec[Route] = EntityCodec(
    Route,
    "route_id",
    [
        FieldMap("route_id", "id", "route_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("salesman_id", "salesman_id", "salesman_id", _INT, -1),
        *_common_fields(),
        _joined("salesman_name"),
    ],
)

SALESMAN_CODEC: EntityCodec[SalesMan] = EntityCodec(
    SalesMan,
    "salesman_id",
    [
        FieldMap("salesman_id", "id", "salesman_id", _INT, -1),
        FieldMap("user_id", "user_id", "user_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("phone", "phone_no", "phone", _TEXT, ""),
        FieldMap("address", "address", "address", _TEXT, ""),
        # Local-only: never sent by the server, kept across updates.
        FieldMap("device_token", None, "device_token", _TEXT, ""),
        *_common_fields(),
    ],
)

SUPPLIER_CODEC: EntityCodec[Supplier] = EntityCodec(
    Supplier,
    "supplier_id",
    [
        FieldMap("supplier_id", "id", "supplier_id", _INT, -1),
        FieldMap("user_id", "user_id", "user_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("phone", "phone_no", "phone", _TEXT, ""),
        FieldMap("address", "address", "address", _TEXT, ""),
        FieldMap("device_token", None, "device_token", _TEXT, ""),
        *_common_fields(),
    ],
)

CUSTOMER_CODEC: EntityCodec[Customer] = EntityCodec(
    Customer,
    "customer_id",
    [
        FieldMap("customer_id", "id", "customer_id", _INT, -1),
        FieldMap("code", "code", "code", _TEXT, ""),
        FieldMap("name", "name", "name", _TEXT, ""),
        FieldMap("phone", "phone_no", "phone", _TEXT, ""),
        FieldMap("address", "address", "address", _TEXT, ""),
        FieldMap("route_id", "rout_id", "route_id", _INT, -1),
        FieldMap("salesman_id", "sales_man_id", "salesman_id", _INT, -1),
        FieldMap("rating", "rating", "rating", _INT, -1),
        FieldMap("device_token", None, "device_token", _TEXT, ""),
        *_common_fields(),
        _joined("route_name"),
        _joined("salesman_name"),
    ],
)
