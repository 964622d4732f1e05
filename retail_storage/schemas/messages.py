"""
Queue message payloads.

Messages are JSON documents with PascalCase keys, consumed by the order
processing functions.
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from pydantic.alias_generators import to_pascal


class QueueMessage(BaseModel):
    model_config = {"alias_generator": to_pascal, "populate_by_name": True}

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)


class OrderPlacedMessage(QueueMessage):
    """Sent to the order notifications queue when an order is created."""

    order_id: str
    customer_id: str
    customer_name: str
    product_name: str
    quantity: int
    total_price: Decimal
    order_date: datetime
    status: str


class StockUpdateMessage(QueueMessage):
    """Sent to the stock updates queue when an order reserves stock."""

    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    update_by: str = "Order System"
    update_date: datetime


class OrderStatusMessage(QueueMessage):
    """Sent to the order notifications queue when an order changes status."""

    order_id: str
    customer_id: str
    customer_name: str
    product_name: str
    previous_status: str
    new_status: str
    updated_date: datetime
    updated_by: str = "System"
