"""
Base entity model shared by every stored record.

This module defines the EntityKind enumeration, the explicit kind-to-table
mapping and the StorageEntity base class carrying the two-part key and the
opaque concurrency token.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Mapping

from pydantic import BaseModel

from retail_storage.utils.datetime import ensure_aware, to_utc_naive
from retail_storage.utils.validators import format_price


class EntityKind(str, Enum):
    """Kinds of entity the storage layer persists.

    The value doubles as the fixed partition key of the kind.
    """

    CUSTOMER = "Customer"
    PRODUCT = "Product"
    ORDER = "Order"


TABLE_NAMES: dict[EntityKind, str] = {
    EntityKind.CUSTOMER: "Customers",
    EntityKind.PRODUCT: "Products",
    EntityKind.ORDER: "Orders",
}


def table_name_for(kind: EntityKind | str) -> str:
    """
    Resolve the physical table name of an entity kind.

    Known kinds come from TABLE_NAMES; any other kind name falls back to
    "<kind>s".

    Examples:
        >>> table_name_for(EntityKind.ORDER)
        'Orders'
        >>> table_name_for("Invoice")
        'Invoices'
    """
    try:
        return TABLE_NAMES[EntityKind(kind)]
    except (ValueError, KeyError):
        return f"{kind}s"


class StorageEntity(BaseModel):
    """
    Base class for partition/row-keyed entities.

    Attributes:
        partition_key: Fixed per kind, selects the collection
        row_key: Unique within the partition; assigned on create when blank
        etag: Opaque concurrency token assigned by the backend
        timestamp: Last modification time reported by the store
    """

    kind: ClassVar[EntityKind]

    # Entity attribute -> stored property name
    TABLE_FIELDS: ClassVar[dict[str, str]] = {}

    partition_key: str = ""
    row_key: str = ""
    etag: str | None = None
    timestamp: datetime | None = None

    def to_properties(self) -> dict[str, Any]:
        """Flatten the type-specific fields into a JSON-safe property bag."""
        properties: dict[str, Any] = {}
        for field_name, property_name in self.TABLE_FIELDS.items():
            value = getattr(self, field_name)
            if isinstance(value, Decimal):
                # Stored as text to keep exact decimal digits
                value = format_price(value)
            elif isinstance(value, datetime):
                value = ensure_aware(value).isoformat()
            properties[property_name] = value
        return properties

    @classmethod
    def from_properties(
        cls,
        partition_key: str,
        row_key: str,
        properties: Mapping[str, Any],
        etag: str | None = None,
        timestamp: datetime | None = None,
    ) -> "StorageEntity":
        """Build an entity from a stored property bag.

        Properties missing from the bag keep their field defaults.
        """
        values = {
            field_name: properties[property_name]
            for field_name, property_name in cls.TABLE_FIELDS.items()
            if properties.get(property_name) is not None
        }
        return cls(
            partition_key=partition_key,
            row_key=row_key,
            etag=etag,
            timestamp=to_utc_naive(timestamp),
            **values,
        )
