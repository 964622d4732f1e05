"""
Order entity model.

Status is an open-ended string: the storage layer stores whatever value it
is given and does not enforce a transition table.
"""
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import Field, field_validator, model_validator

from retail_storage.models.base import EntityKind, StorageEntity
from retail_storage.models.customer import Customer
from retail_storage.models.product import Product
from retail_storage.utils.datetime import to_utc_naive, utc_now
from retail_storage.utils.validators import parse_price


class OrderStatus:
    """Well-known order status values."""

    SUBMITTED = "Submitted"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class Order(StorageEntity):
    """
    Order record stored in the Orders table.

    Attributes:
        customer_id: Row key of the ordering customer
        customer_display_name: Customer name captured at order time
        product_id: Row key of the ordered product
        product_name: Product name captured at order time
        order_date: UTC instant (naive)
        quantity: Units ordered, always positive
        unit_price: Product price captured at order time
        total_price: unit_price * quantity
        status: Workflow status, see OrderStatus
    """

    kind: ClassVar[EntityKind] = EntityKind.ORDER
    TABLE_FIELDS: ClassVar[dict[str, str]] = {
        "customer_id": "CustomerId",
        "customer_display_name": "CustomerDisplayName",
        "product_id": "ProductId",
        "product_name": "ProductName",
        "order_date": "OrderDate",
        "quantity": "Quantity",
        "unit_price": "UnitPrice",
        "total_price": "TotalPrice",
        "status": "Status",
    }

    partition_key: str = EntityKind.ORDER.value
    customer_id: str = ""
    customer_display_name: str = ""
    product_id: str = ""
    product_name: str = ""
    order_date: datetime = Field(default_factory=utc_now)
    quantity: int = Field(default=1, gt=0)
    unit_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    status: str = OrderStatus.SUBMITTED

    @model_validator(mode="before")
    @classmethod
    def default_total_price(cls, data):
        # Remote order resources do not carry a total
        if (
            isinstance(data, dict)
            and data.get("total_price") is None
            and data.get("unit_price") is not None
        ):
            data = dict(data)
            data["total_price"] = parse_price(data["unit_price"]) * int(
                data.get("quantity", 1)
            )
        return data

    @field_validator("unit_price", "total_price", mode="before")
    @classmethod
    def validate_price(cls, value):
        return parse_price(value)

    @field_validator("order_date", mode="after")
    @classmethod
    def normalize_order_date(cls, value: datetime) -> datetime:
        return to_utc_naive(value)

    @property
    def order_id(self) -> str:
        return self.row_key

    @classmethod
    def place(
        cls,
        customer: Customer,
        product: Product,
        quantity: int,
        order_date: datetime | None = None,
    ) -> "Order":
        """
        Build a new Submitted order priced from the product.

        Args:
            customer: Ordering customer
            product: Ordered product
            quantity: Units ordered
            order_date: Order instant (default: now, UTC)

        Returns:
            Unsaved Order with total_price = product.price * quantity
        """
        return cls(
            customer_id=customer.row_key,
            customer_display_name=customer.display_name,
            product_id=product.row_key,
            product_name=product.name,
            order_date=order_date or utc_now(),
            quantity=quantity,
            unit_price=product.price,
            total_price=product.price * quantity,
            status=OrderStatus.SUBMITTED,
        )
