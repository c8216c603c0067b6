"""
Data Models Package.

Re-exports the record, codec, envelope and result types:
    from retailsync.models import Customer, CUSTOMER_CODEC, Result, Failure
"""

from retailsync.models.codec import EntityCodec, FieldMap
from retailsync.models.entities import (
    CATEGORY_CODEC,
    CUSTOMER_CODEC,
    PRODUCT_CODEC,
    ROUTE_CODEC,
    SALESMAN_CODEC,
    SUB_CATEGORY_CODEC,
    SUPPLIER_CODEC,
    UNIT_CODEC,
    Category,
    Customer,
    EntityRecord,
    Product,
    Route,
    SalesMan,
    SubCategory,
    Supplier,
    Unit,
)
from retailsync.models.enums import DataShape, FailureKind, FieldKind, UserType
from retailsync.models.envelope import (
    ApiEnvelope,
    ApiListEnvelope,
    decode_list_envelope,
    decode_record_envelope,
)
from retailsync.models.results import Failure, Result
from retailsync.models.sync_models import (
    EntitySyncReport,
    FailedSync,
    RetryReport,
    SyncCursor,
    SyncReport,
)

__all__ = [
    "ApiEnvelope",
    "ApiListEnvelope",
    "CATEGORY_CODEC",
    "CUSTOMER_CODEC",
    "Category",
    "Customer",
    "DataShape",
    "EntityCodec",
    "EntityRecord",
    "EntitySyncReport",
    "FailedSync",
    "Failure",
    "FailureKind",
    "FieldKind",
    "FieldMap",
    "PRODUCT_CODEC",
    "Product",
    "ROUTE_CODEC",
    "Result",
    "RetryReport",
    "Route",
    "SALESMAN_CODEC",
    "SUB_CATEGORY_CODEC",
    "SUPPLIER_CODEC",
    "SalesMan",
    "SubCategory",
    "Supplier",
    "SyncCursor",
    "SyncReport",
    "UNIT_CODEC",
    "Unit",
    "UserType",
    "decode_list_envelope",
    "decode_record_envelope",
]
