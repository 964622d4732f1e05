"""
Shared base for remote API wire models.

The Functions API speaks camelCase JSON; attributes stay snake_case here.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model for DTOs exchanged with the remote API."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
    }
