"""
Storage abstraction layer for entities, blobs, queues and file shares.

This package provides one storage contract with two implementations:
the direct backend talking to the stores, and the remote backend calling
the Functions API. The backend is picked by configuration.
"""

from retail_storage.storage.base import StorageBackend
from retail_storage.storage.direct import DirectStorageBackend, is_development_storage
from retail_storage.storage.functions import FunctionsApiBackend
from retail_storage.storage.provisioning import Capability, ProvisioningReport
from retail_storage.storage.exceptions import (
    BackendUnavailableError,
    CapabilityUnavailableError,
    ConcurrencyConflictError,
    DuplicateKeyError,
    FileNotFoundError,
    RemoteApiError,
    StorageError,
)

__all__ = [
    "StorageBackend",
    "DirectStorageBackend",
    "FunctionsApiBackend",
    "Capability",
    "ProvisioningReport",
    "is_development_storage",
    "BackendUnavailableError",
    "CapabilityUnavailableError",
    "ConcurrencyConflictError",
    "DuplicateKeyError",
    "FileNotFoundError",
    "RemoteApiError",
    "StorageError",
]
