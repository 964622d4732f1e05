"""
Customer entity model.
"""
from typing import ClassVar

from retail_storage.models.base import EntityKind, StorageEntity


class Customer(StorageEntity):
    """
    Customer record stored in the Customers table.

    Attributes:
        name: First name
        surname: Last name
        username: Login / display handle
        email: Contact address
        shipping_address: Free-form postal address
    """

    kind: ClassVar[EntityKind] = EntityKind.CUSTOMER
    TABLE_FIELDS: ClassVar[dict[str, str]] = {
        "name": "Name",
        "surname": "Surname",
        "username": "Username",
        "email": "Email",
        "shipping_address": "ShippingAddress",
    }

    partition_key: str = EntityKind.CUSTOMER.value
    name: str = ""
    surname: str = ""
    username: str = ""
    email: str = ""
    shipping_address: str = ""

    @property
    def customer_id(self) -> str:
        return self.row_key

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.surname}".strip()
