"""
Storage-specific exceptions.

Every failure a backend surfaces is one of these types, so callers can
branch on the kind of failure instead of catching a generic Exception.
A missing entity is not an error: lookups return None.
"""


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class DuplicateKeyError(StorageError):
    """Raised when create collides with an existing (partition, row) key."""

    def __init__(self, table: str, partition_key: str, row_key: str):
        self.table = table
        self.partition_key = partition_key
        self.row_key = row_key
        super().__init__(
            f"An entity with PartitionKey '{partition_key}' and RowKey '{row_key}' "
            f"already exists in {table}"
        )


class ConcurrencyConflictError(StorageError):
    """Raised when an update presents a stale concurrency token."""

    def __init__(self, table: str, row_key: str):
        self.table = table
        self.row_key = row_key
        super().__init__(
            "The entity was modified by another process. Please refresh and try again."
        )


class CapabilityUnavailableError(StorageError):
    """Raised when a capability was not provisioned or is not offered by the backend."""

    def __init__(self, capability: str, reason: str):
        self.capability = capability
        self.reason = reason
        super().__init__(f"{capability} is not available: {reason}")


class BackendUnavailableError(StorageError):
    """Raised when the underlying store or remote API fails or cannot be reached."""

    def __init__(self, operation: str, target: str, detail: str):
        self.operation = operation
        self.target = target
        self.detail = detail
        super().__init__(f"{operation} on {target} failed: {detail}")


class RemoteApiError(BackendUnavailableError):
    """Raised when the remote API answers with an unexpected status or an unreadable body."""

    def __init__(self, operation: str, target: str, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(operation, target, f"HTTP {status_code}: {body}")


class FileNotFoundError(StorageError):
    """Raised when a requested file is not found in the file share."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        super().__init__(f"File not found: {file_id}")
