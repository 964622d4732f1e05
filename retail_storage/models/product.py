"""
Product entity model.

Prices are validated once, when the model is built, and held as Decimal.
"""
from decimal import Decimal
from typing import ClassVar

from pydantic import Field, field_validator

from retail_storage.models.base import EntityKind, StorageEntity
from retail_storage.utils.validators import parse_price


class Product(StorageEntity):
    """
    Product record stored in the Products table.

    Attributes:
        name: Product name
        description: Free-form description
        price: Unit price (invariant format, see parse_price)
        stock_available: Units in stock, never negative
        image_url: Locator of the product image, empty when none
    """

    kind: ClassVar[EntityKind] = EntityKind.PRODUCT
    TABLE_FIELDS: ClassVar[dict[str, str]] = {
        "name": "ProductName",
        "description": "Description",
        "price": "Price",
        "stock_available": "StockAvailable",
        "image_url": "ImageUrl",
    }

    partition_key: str = EntityKind.PRODUCT.value
    name: str = ""
    description: str = ""
    price: Decimal = Decimal("0")
    stock_available: int = Field(default=0, ge=0)
    image_url: str = ""

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, value):
        return parse_price(value)

    @property
    def product_id(self) -> str:
        return self.row_key
