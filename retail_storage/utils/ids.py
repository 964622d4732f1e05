"""
Utility functions for generating row keys and blob names.

Row keys are server-generated UUIDs. Blob names are never taken verbatim
from user input: images get a random name, documents get a timestamp prefix.
"""
import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath, PureWindowsPath


DOCUMENT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def generate_row_key() -> str:
    """
    Generate a new, unique row key for an entity.

    Returns:
        Canonical UUID4 string (36 characters)
    """
    return str(uuid.uuid4())


def _basename(filename: str) -> str:
    """Strip any directory component, whichever separator the client used."""
    return PurePosixPath(PureWindowsPath(filename).name).name


def image_blob_name(filename: str | None) -> str:
    """
    Build a collision-free blob name for an uploaded image.

    The original extension is preserved (lower-cased); the rest of the
    user-supplied name is discarded.

    Args:
        filename: Original client-side file name (may be None)

    Returns:
        Random name such as '3f2b...9c.png'

    Examples:
        >>> image_blob_name("../../etc/Widget.PNG").endswith(".png")
        True
    """
    suffix = PurePosixPath(_basename(filename or "")).suffix.lower()
    return f"{uuid.uuid4().hex}{suffix}"


def document_blob_name(filename: str | None, now: datetime | None = None) -> str:
    """
    Build a traceable blob name for an uploaded document.

    Structure: <YYYYMMDD_HHMMSS>_<original base name>

    Notes:
        Two uploads of the same file name within the same second map to the
        same name and the later one overwrites the earlier one.

    Args:
        filename: Original client-side file name
        now: Timestamp to use (default: current UTC time)

    Returns:
        Timestamp-prefixed file name
    """
    now = now or datetime.now(timezone.utc)
    name = _basename(filename or "") or "upload"
    return f"{now.strftime(DOCUMENT_TIMESTAMP_FORMAT)}_{name}"
