"""
Proof-of-payment upload response DTO.
"""
from retail_storage.schemas.common import WireModel


class UploadResponse(WireModel):
    """Response of the proof-of-payment upload resource."""

    file_name: str | None = None
