"""
File content source accepted by upload operations.

fastapi.UploadFile satisfies this protocol, so request handlers can pass
uploaded files straight through. The storage layer never validates the
content type or size.
"""
from typing import Protocol, runtime_checkable


@runtime_checkable
class FileSource(Protocol):
    """Readable uploaded file."""

    filename: str | None
    content_type: str | None
    size: int | None

    async def read(self, size: int = -1) -> bytes:
        ...
