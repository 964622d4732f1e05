"""
Customer resource DTOs.
"""
from retail_storage.models import Customer, EntityKind
from retail_storage.schemas.common import WireModel


class CustomerDto(WireModel):
    """Customer resource as returned by the remote API."""

    id: str
    name: str = ""
    surname: str = ""
    username: str = ""
    email: str = ""
    shipping_address: str = ""
    etag: str | None = None

    def to_entity(self) -> Customer:
        return Customer(
            partition_key=EntityKind.CUSTOMER.value,
            row_key=self.id,
            etag=self.etag,
            name=self.name,
            surname=self.surname,
            username=self.username,
            email=self.email,
            shipping_address=self.shipping_address,
        )

    @classmethod
    def from_entity(cls, customer: Customer) -> "CustomerDto":
        return cls(
            id=customer.row_key,
            name=customer.name,
            surname=customer.surname,
            username=customer.username,
            email=customer.email,
            shipping_address=customer.shipping_address,
            etag=customer.etag,
        )


class CustomerWriteRequest(WireModel):
    """JSON body of customer create/replace requests."""

    name: str
    surname: str
    username: str
    email: str
    shipping_address: str

    @classmethod
    def from_entity(cls, customer: Customer) -> "CustomerWriteRequest":
        return cls(
            name=customer.name,
            surname=customer.surname,
            username=customer.username,
            email=customer.email,
            shipping_address=customer.shipping_address,
        )
