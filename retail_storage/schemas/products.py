"""
Product resource DTOs and multipart form encoding.
"""
from decimal import Decimal

from retail_storage.models import EntityKind, Product
from retail_storage.schemas.common import WireModel
from retail_storage.utils.validators import format_price


class ProductDto(WireModel):
    """Product resource as returned by the remote API.

    price arrives as a JSON number; responses are decoded with Decimal floats
    so no binary rounding happens on the way in.
    """

    id: str
    product_name: str = ""
    description: str = ""
    price: Decimal = Decimal("0")
    stock_available: int = 0
    image_url: str | None = None
    etag: str | None = None

    def to_entity(self) -> Product:
        return Product(
            partition_key=EntityKind.PRODUCT.value,
            row_key=self.id,
            etag=self.etag,
            name=self.product_name,
            description=self.description or "",
            price=self.price,
            stock_available=self.stock_available,
            image_url=self.image_url or "",
        )

    @classmethod
    def from_entity(cls, product: Product) -> "ProductDto":
        return cls(
            id=product.row_key,
            product_name=product.name,
            description=product.description,
            price=product.price,
            stock_available=product.stock_available,
            image_url=product.image_url or None,
            etag=product.etag,
        )


def product_form_fields(product: Product) -> dict[str, str]:
    """
    Encode a product as multipart form fields.

    Every scalar is sent as a string in the invariant format, so the remote
    API never sees a locale-specific decimal separator.

    Returns:
        Field name -> string value
    """
    fields = {
        "ProductName": product.name,
        "Description": product.description or "",
        "Price": format_price(product.price),
        "StockAvailable": str(product.stock_available),
    }
    if product.image_url and product.image_url.strip():
        fields["ImageUrl"] = product.image_url
    return fields
