"""
Order placement and status workflow.

This module drives the storage contract for the two order operations the
shop exposes: placing an order (which reserves product stock) and changing
an order's status. Both publish a notification message when the backend
offers queues.
"""
from datetime import datetime

from retail_storage.config import settings
from retail_storage.logging_config import setup_logging
from retail_storage.models import Customer, EntityKind, Order, Product
from retail_storage.schemas.messages import (
    OrderPlacedMessage,
    OrderStatusMessage,
    QueueMessage,
    StockUpdateMessage,
)
from retail_storage.storage.base import StorageBackend
from retail_storage.storage.exceptions import StorageError
from retail_storage.storage.provisioning import Capability
from retail_storage.utils.datetime import utc_now

logger = setup_logging()


class EntityNotFoundError(Exception):
    """Raised when an order refers to a customer, product or order that does not exist."""

    def __init__(self, kind: EntityKind, row_key: str):
        self.kind = kind
        self.row_key = row_key
        super().__init__(f"{kind.value} not found: {row_key}")


class InsufficientStockError(Exception):
    """Raised when a product has fewer units available than ordered."""

    def __init__(self, product: Product, requested: int):
        self.product_id = product.row_key
        self.available = product.stock_available
        self.requested = requested
        super().__init__(f"Insufficient stock. Available: {product.stock_available}")


async def _notify(storage: StorageBackend, queue: str, message: QueueMessage) -> None:
    report = await storage.initialize()
    if not report.is_available(Capability.QUEUES):
        logger.info(f"Queues unavailable - {type(message).__name__} not sent to {queue}")
        return

    try:
        await storage.send_message(queue, message.to_payload())
    except StorageError as e:
        logger.error(f"Failed to send {type(message).__name__} to {queue}: {e}")
        raise


async def _release_stock(storage: StorageBackend, reserved: Product, quantity: int) -> None:
    """Return reserved units after the order write failed."""
    try:
        restored = await storage.update(
            reserved.model_copy(update={"stock_available": reserved.stock_available + quantity})
        )
    except StorageError as e:
        logger.error(
            f"Could not return {quantity} reserved units to product {reserved.product_id}: {e}"
        )
        return
    logger.warning(
        f"Order write failed - returned {quantity} units to product "
        f"{reserved.product_id} (stock {restored.stock_available})"
    )


async def place_order(
    storage: StorageBackend,
    customer_id: str,
    product_id: str,
    quantity: int,
    order_date: datetime | None = None,
) -> Order:
    """
    Place an order and reserve the ordered stock.

    Stock is reserved with a conditional product update before the order is
    written, so two concurrent orders cannot both take the last units: the
    loser gets ConcurrencyConflictError and nothing is created for it. If
    the order write then fails, the reserved units are returned with a
    conditional update before the error is re-raised.

    Args:
        storage: Storage backend
        customer_id: Row key of the ordering customer
        product_id: Row key of the ordered product
        quantity: Units ordered, must be positive
        order_date: Order instant (default: now, UTC)

    Returns:
        The created order (status Submitted, total = unit price * quantity)

    Raises:
        ValueError: If quantity is not positive
        EntityNotFoundError: If the customer or product does not exist
        InsufficientStockError: If the product has too few units
        ConcurrencyConflictError: If the product changed while reserving stock
    """
    if quantity <= 0:
        raise ValueError("Quantity must be greater than zero")

    customer: Customer | None = await storage.get(
        EntityKind.CUSTOMER, EntityKind.CUSTOMER.value, customer_id
    )
    if customer is None:
        raise EntityNotFoundError(EntityKind.CUSTOMER, customer_id)

    product: Product | None = await storage.get(
        EntityKind.PRODUCT, EntityKind.PRODUCT.value, product_id
    )
    if product is None:
        raise EntityNotFoundError(EntityKind.PRODUCT, product_id)

    if product.stock_available < quantity:
        raise InsufficientStockError(product, quantity)

    previous_stock = product.stock_available
    reserved = await storage.update(
        product.model_copy(update={"stock_available": previous_stock - quantity})
    )

    try:
        order = await storage.create(Order.place(customer, product, quantity, order_date))
    except StorageError:
        await _release_stock(storage, reserved, quantity)
        raise

    logger.info(
        f"Order {order.order_id} placed: {quantity} x {product.name} for {customer.display_name}"
    )

    await _notify(
        storage,
        settings.ORDER_NOTIFICATIONS_QUEUE,
        OrderPlacedMessage(
            order_id=order.order_id,
            customer_id=customer.customer_id,
            customer_name=customer.display_name,
            product_name=order.product_name,
            quantity=order.quantity,
            total_price=order.total_price,
            order_date=order.order_date,
            status=order.status,
        ),
    )
    await _notify(
        storage,
        settings.STOCK_UPDATES_QUEUE,
        StockUpdateMessage(
            product_id=reserved.product_id,
            product_name=reserved.name,
            previous_stock=previous_stock,
            new_stock=reserved.stock_available,
            update_date=utc_now(),
        ),
    )
    return order


async def change_order_status(
    storage: StorageBackend,
    order_id: str,
    new_status: str,
    etag: str | None = None,
) -> Order:
    """
    Move an order to a new status and announce the change.

    Args:
        storage: Storage backend
        order_id: Row key of the order
        new_status: Status value (not validated against a transition table)
        etag: Token the order was read with (default: the current token)

    Returns:
        The updated order

    Raises:
        ValueError: If new_status is blank
        EntityNotFoundError: If the order does not exist
        ConcurrencyConflictError: If etag is stale
    """
    if not new_status or not new_status.strip():
        raise ValueError("New status must not be empty")

    order: Order | None = await storage.get(EntityKind.ORDER, EntityKind.ORDER.value, order_id)
    if order is None:
        raise EntityNotFoundError(EntityKind.ORDER, order_id)

    previous_status = order.status
    updated = await storage.update_order_status(order_id, new_status, etag or order.etag)
    if updated is None:
        raise EntityNotFoundError(EntityKind.ORDER, order_id)

    logger.info(f"Order {order_id} status changed: {previous_status} -> {new_status}")

    await _notify(
        storage,
        settings.ORDER_NOTIFICATIONS_QUEUE,
        OrderStatusMessage(
            order_id=updated.order_id,
            customer_id=updated.customer_id,
            customer_name=updated.customer_display_name,
            product_name=updated.product_name,
            previous_status=previous_status,
            new_status=new_status,
            updated_date=utc_now(),
        ),
    )
    return updated
