"""
Direct storage backend.

This module implements the storage contract against its own sub-stores:
SQL entity tables, SQL message queues, Azure Blob containers and an
optional mounted file share. Updates use ETags for optimistic concurrency.
"""
import asyncio
from contextlib import contextmanager
from typing import Iterator
from urllib.parse import unquote, urlsplit

from azure.core.exceptions import AzureError
from azure.storage.blob.aio import BlobServiceClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from retail_storage.config import settings
from retail_storage.database import create_engine, create_session_factory
from retail_storage.logging_config import setup_logging
from retail_storage.models import (
    EntityKind,
    FileSource,
    Order,
    Product,
    StorageEntity,
    TABLE_NAMES,
    table_name_for,
)
from retail_storage.storage.base import StorageBackend
from retail_storage.storage.blobs import PUBLIC_BLOB_ACCESS, BlobStore
from retail_storage.storage.exceptions import (
    BackendUnavailableError,
    CapabilityUnavailableError,
    ConcurrencyConflictError,
    StorageError,
)
from retail_storage.storage.fileshare import LocalFileShare
from retail_storage.storage.provisioning import Capability, ProvisioningReport
from retail_storage.storage.queues import QueueStore
from retail_storage.storage.tables import EntityTableStore

logger = setup_logging()

# Connection strings for Azurite / the storage emulator carry this setting.
# Development setups have no file share mounted.
DEVELOPMENT_STORAGE_SENTINEL = "usedevelopmentstorage=true"


def is_development_storage(connection_string: str | None) -> bool:
    """Return True if the connection string targets the storage emulator."""
    if not connection_string:
        return False
    return DEVELOPMENT_STORAGE_SENTINEL in connection_string.replace(" ", "").lower()


class DirectStorageBackend(StorageBackend):
    """
    Storage backend talking to the stores directly.

    Construction performs no I/O. initialize() provisions every table,
    container, queue and the file share; each data operation awaits it first
    if it has not run yet, so early requests cannot race provisioning.

    Containers:
    - product images: public-readable, random blob names, URL locators
    - payment proofs: private, timestamp-prefixed names, name locators
    """

    def __init__(
        self,
        database_url: str | None = None,
        connection_string: str | None = None,
        file_share_root: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        blob_service: BlobServiceClient | None = None,
        product_images_container: str | None = None,
        payment_proofs_container: str | None = None,
        queues: list[str] | None = None,
        contracts_share: str | None = None,
        payments_directory: str | None = None,
    ):
        """
        Initialize the direct storage backend.

        Args:
            database_url: Async SQLAlchemy URL for tables and queues (default from config)
            connection_string: Blob storage connection string (default from config)
            file_share_root: Mount point of the file share (default from config)
            engine: Pre-built engine (overrides database_url)
            blob_service: Pre-built Blob client (overrides connection_string)
            product_images_container: Public image container name
            payment_proofs_container: Private document container name
            queues: Queue names to provision
            contracts_share: File share name
            payments_directory: Directory created inside the file share
        """
        self.connection_string = connection_string or settings.AZURE_STORAGE_CONNECTION_STRING
        self.product_images_container = product_images_container or settings.PRODUCT_IMAGES_CONTAINER
        self.payment_proofs_container = payment_proofs_container or settings.PAYMENT_PROOFS_CONTAINER
        self.queues = queues or [settings.ORDER_NOTIFICATIONS_QUEUE, settings.STOCK_UPDATES_QUEUE]
        self.contracts_share = contracts_share or settings.CONTRACTS_SHARE
        self.payments_directory = payments_directory or settings.PAYMENTS_DIRECTORY
        self.development_storage = is_development_storage(self.connection_string)

        self._owns_engine = engine is None
        self._engine = engine or create_engine(database_url or settings.DATABASE_URL)
        session_factory = create_session_factory(self._engine)
        self._tables = EntityTableStore(self._engine, session_factory)
        self._queues = QueueStore(self._engine, session_factory)

        self._blobs = BlobStore(
            blob_service or BlobServiceClient.from_connection_string(self.connection_string),
            {
                self.product_images_container: PUBLIC_BLOB_ACCESS,
                self.payment_proofs_container: None,
            },
        )

        if self.development_storage:
            logger.info("Development storage detected - file share service disabled")
            self._file_share = None
        else:
            self._file_share = LocalFileShare(file_share_root or settings.FILE_SHARE_ROOT)

        self._report: ProvisioningReport | None = None
        self._init_lock = asyncio.Lock()

    # Lifecycle

    async def initialize(self) -> ProvisioningReport:
        """
        Provision all tables, containers, queues and the file share.

        Only the first call does any work; concurrent callers wait for it.

        Returns:
            Per-capability provisioning results
        """
        async with self._init_lock:
            if self._report is None:
                self._report = await self._provision()
        return self._report

    async def _provision(self) -> ProvisioningReport:
        report = ProvisioningReport()
        logger.info("Starting storage provisioning...")

        await self._provision_step(
            report,
            Capability.TABLES,
            ", ".join(TABLE_NAMES.values()),
            self._tables.create_tables,
        )

        for container in (self.product_images_container, self.payment_proofs_container):
            await self._provision_step(
                report,
                Capability.BLOBS,
                container,
                lambda container=container: self._blobs.create_container(container),
            )

        await self._provision_step(
            report,
            Capability.QUEUES,
            ", ".join(self.queues),
            lambda: self._queues.create_queues(self.queues),
        )

        if self._file_share is None:
            logger.info("File share service not available - skipping file share provisioning")
            report.record_skipped(
                Capability.FILE_SHARE, "not supported in development storage mode"
            )
        else:
            await self._provision_step(
                report,
                Capability.FILE_SHARE,
                f"{self.contracts_share}/{self.payments_directory}",
                lambda: self._file_share.create_directory(
                    self.contracts_share, self.payments_directory
                ),
            )

        if report.ok:
            logger.info("Storage provisioning completed successfully")
        else:
            logger.error(f"Storage provisioning completed with failures: {report.failures}")
        return report

    async def _provision_step(
        self,
        report: ProvisioningReport,
        capability: str,
        resource: str,
        create,
    ) -> None:
        """Run one idempotent create call, recording the outcome."""
        try:
            await create()
        except Exception as e:
            # Provisioning is best-effort: record and keep going
            logger.error(
                f"Failed to provision {capability} resource '{resource}': {e}",
                exc_info=True,
            )
            report.record_failure(capability, resource, str(e))
            return
        report.record_success(capability, resource)

    async def close(self) -> None:
        await self._blobs.close()
        if self._owns_engine:
            await self._engine.dispose()

    async def _require(self, capability: str) -> None:
        """Provision on first use and fail if the capability is unavailable."""
        report = await self.initialize()
        if report.is_available(capability):
            return

        if capability in report.skipped:
            reason = report.skipped[capability]
        elif capability in report.failures:
            reason = "provisioning failed: " + "; ".join(report.failures[capability])
        else:
            reason = "not provisioned"
        raise CapabilityUnavailableError(capability, reason)

    @contextmanager
    def _store_errors(self, operation: str, target: str) -> Iterator[None]:
        """Translate store failures into BackendUnavailableError."""
        try:
            yield
        except StorageError:
            raise
        except (SQLAlchemyError, AzureError, OSError) as e:
            logger.error(f"Storage {operation} on {target} failed: {e}")
            raise BackendUnavailableError(operation, target, str(e)) from e

    # Entity operations

    async def list_all(self, kind: EntityKind) -> list[StorageEntity]:
        await self._require(Capability.TABLES)
        with self._store_errors("list_all", table_name_for(kind)):
            return await self._tables.query(kind)

    async def get(
        self,
        kind: EntityKind,
        partition_key: str,
        row_key: str,
    ) -> StorageEntity | None:
        if not partition_key or not partition_key.strip() or not row_key or not row_key.strip():
            logger.warning(
                f"get called with invalid keys for {kind.value}. "
                "PartitionKey or RowKey was null/empty."
            )
            return None

        await self._require(Capability.TABLES)
        with self._store_errors("get", f"{table_name_for(kind)}/{partition_key}/{row_key}"):
            return await self._tables.get(kind, partition_key, row_key)

    async def create(
        self,
        entity: StorageEntity,
        attachment: FileSource | None = None,
    ) -> StorageEntity:
        self._check_partition_key(entity)
        await self._require(Capability.TABLES)
        if attachment is not None:
            entity = await self._attach_image(entity, attachment)

        with self._store_errors("create", table_name_for(entity.kind)):
            created = await self._tables.insert(entity)

        logger.info(f"Created {created.kind.value} {created.row_key}")
        return created

    async def update(
        self,
        entity: StorageEntity,
        attachment: FileSource | None = None,
    ) -> StorageEntity:
        if not entity.etag:
            raise ValueError(
                f"Cannot update {entity.kind.value} {entity.row_key}: "
                "read the entity first and pass its concurrency token"
            )

        await self._require(Capability.TABLES)
        if attachment is not None:
            entity = await self._attach_image(entity, attachment)

        try:
            with self._store_errors("update", f"{table_name_for(entity.kind)}/{entity.row_key}"):
                try:
                    return await self._tables.replace(entity)
                except ConcurrencyConflictError:
                    logger.warning(
                        f"Entity update failed due to ETag mismatch for "
                        f"{entity.kind.value} with RowKey {entity.row_key}"
                    )
                    raise
        except StorageError:
            if attachment is not None:
                await self._discard_image(entity)
            raise

    async def delete(self, kind: EntityKind, partition_key: str, row_key: str) -> None:
        await self._require(Capability.TABLES)
        with self._store_errors("delete", f"{table_name_for(kind)}/{partition_key}/{row_key}"):
            await self._tables.delete(kind, partition_key, row_key)

    async def update_order_status(
        self,
        order_id: str,
        status: str,
        etag: str | None = None,
    ) -> Order | None:
        order = await self.get(EntityKind.ORDER, EntityKind.ORDER.value, order_id)
        if order is None:
            return None

        changed = order.model_copy(update={"status": status, "etag": etag or order.etag})
        return await self.update(changed)

    async def _attach_image(self, entity: StorageEntity, attachment: FileSource) -> StorageEntity:
        if not isinstance(entity, Product):
            raise ValueError(f"Attachments are not supported for {entity.kind.value} entities")

        image_url = await self.upload_blob(attachment, self.product_images_container)
        return entity.model_copy(update={"image_url": image_url})

    async def _discard_image(self, product: Product) -> None:
        """Remove an image uploaded for a write that did not go through."""
        blob_name = unquote(urlsplit(product.image_url).path.rsplit("/", 1)[-1])
        try:
            await self._blobs.delete(blob_name, self.product_images_container)
        except AzureError as e:
            logger.error(f"Could not remove orphaned image {blob_name}: {e}")
            return
        logger.info(f"Removed orphaned image {blob_name}")

    # Blob operations

    async def upload_blob(self, file: FileSource, container: str) -> str:
        """
        Upload a file to a blob container.

        Public containers get a random blob name and return the blob URL;
        private containers get a timestamp-prefixed name and return that name.
        """
        await self._require(Capability.BLOBS)
        with self._store_errors("upload_blob", container):
            locator = await self._blobs.upload(file, container)

        logger.info(f"Uploaded {file.filename} to container {container}")
        return locator

    async def delete_blob(self, blob_name: str, container: str) -> None:
        await self._require(Capability.BLOBS)
        with self._store_errors("delete_blob", f"{container}/{blob_name}"):
            await self._blobs.delete(blob_name, container)

    # Queue operations

    async def send_message(self, queue: str, payload: str) -> None:
        await self._require(Capability.QUEUES)
        with self._store_errors("send_message", queue):
            await self._queues.send(queue, payload)

    async def receive_message(self, queue: str) -> str | None:
        await self._require(Capability.QUEUES)
        with self._store_errors("receive_message", queue):
            return await self._queues.receive(queue)

    # File share operations

    def is_file_share_available(self) -> bool:
        """
        Check whether file share operations can be used.

        Before initialize() has run this reflects only whether a share is
        configured; afterwards it also reflects the provisioning outcome.
        """
        if self._file_share is None:
            return False
        if self._report is None:
            return True
        return self._report.is_available(Capability.FILE_SHARE)

    async def _require_file_share(self) -> LocalFileShare:
        if self._file_share is None:
            raise CapabilityUnavailableError(
                Capability.FILE_SHARE,
                "File Share service is not available. This feature is not "
                "supported in development storage mode.",
            )
        await self._require(Capability.FILE_SHARE)
        return self._file_share

    async def upload_to_file_share(
        self,
        file: FileSource,
        share: str,
        directory: str = "",
    ) -> str:
        file_share = await self._require_file_share()
        with self._store_errors("upload_to_file_share", f"{share}/{directory}"):
            file_name = await file_share.upload(file, share, directory)

        logger.info(f"Uploaded {file.filename} to file share {share}/{directory} as {file_name}")
        return file_name

    async def download_from_file_share(
        self,
        share: str,
        file_name: str,
        directory: str = "",
    ) -> bytes:
        file_share = await self._require_file_share()
        with self._store_errors("download_from_file_share", f"{share}/{directory}/{file_name}"):
            return await file_share.download(share, file_name, directory)
