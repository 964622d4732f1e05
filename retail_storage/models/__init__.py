from retail_storage.models.base import EntityKind, StorageEntity, TABLE_NAMES, table_name_for
from retail_storage.models.customer import Customer
from retail_storage.models.file_source import FileSource
from retail_storage.models.order import Order, OrderStatus
from retail_storage.models.product import Product

ENTITY_TYPES: dict[EntityKind, type[StorageEntity]] = {
    EntityKind.CUSTOMER: Customer,
    EntityKind.PRODUCT: Product,
    EntityKind.ORDER: Order,
}

__all__ = [
    "Customer",
    "ENTITY_TYPES",
    "EntityKind",
    "FileSource",
    "Order",
    "OrderStatus",
    "Product",
    "StorageEntity",
    "TABLE_NAMES",
    "table_name_for",
]
