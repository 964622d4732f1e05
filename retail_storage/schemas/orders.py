"""
Order resource DTOs.

The remote API reports order dates as timezone-aware instants; the entity
model holds UTC-naive datetimes.
"""
from datetime import datetime
from decimal import Decimal

from retail_storage.models import EntityKind, Order
from retail_storage.schemas.common import WireModel
from retail_storage.utils.datetime import ensure_aware, to_utc_naive


class OrderDto(WireModel):
    """Order resource as returned by the remote API."""

    id: str
    customer_id: str = ""
    customer_display_name: str | None = None
    product_id: str = ""
    product_name: str = ""
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    total_price: Decimal | None = None
    order_date_utc: datetime
    status: str = ""
    etag: str | None = None

    def to_entity(self) -> Order:
        return Order(
            partition_key=EntityKind.ORDER.value,
            row_key=self.id,
            etag=self.etag,
            customer_id=self.customer_id,
            customer_display_name=self.customer_display_name or "",
            product_id=self.product_id,
            product_name=self.product_name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
            order_date=to_utc_naive(self.order_date_utc),
            status=self.status,
        )

    @classmethod
    def from_entity(cls, order: Order) -> "OrderDto":
        return cls(
            id=order.row_key,
            customer_id=order.customer_id,
            customer_display_name=order.customer_display_name or None,
            product_id=order.product_id,
            product_name=order.product_name,
            quantity=order.quantity,
            unit_price=order.unit_price,
            total_price=order.total_price,
            order_date_utc=ensure_aware(order.order_date),
            status=order.status,
            etag=order.etag,
        )


class OrderCreateRequest(WireModel):
    """JSON body of order create requests; the remote API prices the order."""

    customer_id: str
    product_id: str
    quantity: int


class OrderStatusRequest(WireModel):
    """JSON body of the partial status-change request."""

    status: str
