"""
Abstract base class for storage backends.

This module defines the interface that all storage backends must implement.
Request handlers depend on this contract only, so the direct storage account
backend and the remote Functions API backend can be swapped by configuration.
"""
from abc import ABC, abstractmethod

from retail_storage.models import EntityKind, FileSource, Order, StorageEntity
from retail_storage.storage.provisioning import ProvisioningReport


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All implementations must implement these methods. Every method that
    touches the network is a coroutine, and every failure is raised as a
    StorageError subclass (see retail_storage.storage.exceptions).
    """

    async def __aenter__(self) -> "StorageBackend":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @staticmethod
    def _check_partition_key(entity: StorageEntity) -> None:
        """Reject entities whose partition key is not their kind's partition."""
        if entity.partition_key != entity.kind.value:
            raise ValueError(
                f"{entity.kind.value} entities must use partition key "
                f"'{entity.kind.value}', got '{entity.partition_key}'"
            )

    # Lifecycle

    @abstractmethod
    async def initialize(self) -> ProvisioningReport:
        """
        Provision the resources the backend needs.

        Safe to call more than once; only the first call does any work.
        Provisioning failures are logged and recorded, never raised.

        Returns:
            Per-capability provisioning results
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network clients held by the backend."""
        pass

    # Entity operations

    @abstractmethod
    async def list_all(self, kind: EntityKind) -> list[StorageEntity]:
        """
        Return every entity of a kind.

        Args:
            kind: Entity kind to list

        Returns:
            List of entities, order unspecified

        Raises:
            BackendUnavailableError: If the store cannot be queried
        """
        pass

    @abstractmethod
    async def get(
        self,
        kind: EntityKind,
        partition_key: str,
        row_key: str,
    ) -> StorageEntity | None:
        """
        Fetch a single entity.

        Args:
            kind: Entity kind
            partition_key: Partition key
            row_key: Row key

        Returns:
            The entity with its current concurrency token, or None when a key
            is blank or no entity matches

        Raises:
            BackendUnavailableError: If the store cannot be queried
        """
        pass

    @abstractmethod
    async def create(
        self,
        entity: StorageEntity,
        attachment: FileSource | None = None,
    ) -> StorageEntity:
        """
        Persist a new entity.

        The partition key must be the entity kind's fixed partition.
        A blank row key is replaced by a generated one. An attachment is
        stored before the entity (product image) and its locator recorded on
        the entity.

        Args:
            entity: Entity to create
            attachment: Optional accompanying file

        Returns:
            The stored entity carrying its assigned concurrency token

        Raises:
            ValueError: If the partition key is not the kind's partition
            DuplicateKeyError: If the key already exists
            BackendUnavailableError: If the write fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        entity: StorageEntity,
        attachment: FileSource | None = None,
    ) -> StorageEntity:
        """
        Replace an existing entity, conditional on its concurrency token.

        The caller must read the entity first and present its token
        unchanged. A mismatch is never retried or merged.

        Args:
            entity: Entity carrying the token it was read with
            attachment: Optional accompanying file

        Returns:
            The stored entity carrying its new concurrency token

        Raises:
            ValueError: If the entity carries no concurrency token
            ConcurrencyConflictError: If the stored token differs
            BackendUnavailableError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, partition_key: str, row_key: str) -> None:
        """
        Delete an entity permanently.

        Deleting an entity that does not exist is not an error.

        Raises:
            BackendUnavailableError: If the delete fails
        """
        pass

    @abstractmethod
    async def update_order_status(
        self,
        order_id: str,
        status: str,
        etag: str | None = None,
    ) -> Order | None:
        """
        Change only the status of an order.

        Args:
            order_id: Row key of the order
            status: New status value (not validated)
            etag: Token the order was read with; when omitted the current
                stored token is used, so the last write wins

        Returns:
            The updated order, or None if the order does not exist

        Raises:
            ConcurrencyConflictError: If etag is stale
            BackendUnavailableError: If the write fails
        """
        pass

    # Blob operations

    @abstractmethod
    async def upload_blob(self, file: FileSource, container: str) -> str:
        """
        Store binary content in a container.

        Args:
            file: Uploaded file
            container: Target container name

        Returns:
            Locator of the stored blob: a URL for public containers, the blob
            name for private ones

        Raises:
            CapabilityUnavailableError: If the backend offers no blob storage
            BackendUnavailableError: If the upload fails
        """
        pass

    @abstractmethod
    async def delete_blob(self, blob_name: str, container: str) -> None:
        """
        Delete a blob. Deleting a missing blob is not an error.

        Raises:
            CapabilityUnavailableError: If the backend offers no blob storage
            BackendUnavailableError: If the delete fails
        """
        pass

    # Queue operations

    @abstractmethod
    async def send_message(self, queue: str, payload: str) -> None:
        """
        Enqueue a message.

        Raises:
            CapabilityUnavailableError: If the backend offers no queues
            BackendUnavailableError: If the send fails
        """
        pass

    @abstractmethod
    async def receive_message(self, queue: str) -> str | None:
        """
        Receive and acknowledge a single message.

        The message is deleted once received.

        Returns:
            Message text, or None when the queue is empty

        Raises:
            CapabilityUnavailableError: If the backend offers no queues
            BackendUnavailableError: If the receive fails
        """
        pass

    # File share operations

    @abstractmethod
    def is_file_share_available(self) -> bool:
        """
        Check whether the hierarchical file store can be used.

        Returns:
            True if the file share was provisioned, False otherwise
        """
        pass

    @abstractmethod
    async def upload_to_file_share(
        self,
        file: FileSource,
        share: str,
        directory: str = "",
    ) -> str:
        """
        Store a file in the hierarchical file store.

        Args:
            file: Uploaded file
            share: Share name
            directory: Directory path inside the share ("" for the root)

        Returns:
            Name of the stored file

        Raises:
            CapabilityUnavailableError: If the file share is not available
            BackendUnavailableError: If the upload fails
        """
        pass

    @abstractmethod
    async def download_from_file_share(
        self,
        share: str,
        file_name: str,
        directory: str = "",
    ) -> bytes:
        """
        Read a file from the hierarchical file store.

        Returns:
            File content

        Raises:
            CapabilityUnavailableError: If the file share is not available
            BackendUnavailableError: If the download fails
        """
        pass
