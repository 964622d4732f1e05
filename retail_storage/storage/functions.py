"""
Remote Functions API storage backend.

This module implements the storage contract over HTTP: every operation is
one request against a fixed resource route, and responses are camelCase
DTOs mapped onto the domain entities.
"""
from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx

from retail_storage.config import settings
from retail_storage.logging_config import setup_logging
from retail_storage.models import (
    Customer,
    EntityKind,
    FileSource,
    Order,
    Product,
    StorageEntity,
)
from retail_storage.schemas.customers import CustomerDto, CustomerWriteRequest
from retail_storage.schemas.orders import OrderCreateRequest, OrderDto, OrderStatusRequest
from retail_storage.schemas.products import ProductDto, product_form_fields
from retail_storage.schemas.uploads import UploadResponse
from retail_storage.storage.base import StorageBackend
from retail_storage.storage.blobs import DEFAULT_CONTENT_TYPE
from retail_storage.storage.exceptions import (
    BackendUnavailableError,
    CapabilityUnavailableError,
    ConcurrencyConflictError,
    DuplicateKeyError,
    RemoteApiError,
)
from retail_storage.storage.provisioning import Capability, ProvisioningReport

logger = setup_logging()

CUSTOMERS_ROUTE = "customers"
PRODUCTS_ROUTE = "products"
ORDERS_ROUTE = "orders"
UPLOADS_ROUTE = "uploads/proof-of-payment"

ROUTES: dict[EntityKind, str] = {
    EntityKind.CUSTOMER: CUSTOMERS_ROUTE,
    EntityKind.PRODUCT: PRODUCTS_ROUTE,
    EntityKind.ORDER: ORDERS_ROUTE,
}

DTO_TYPES = {
    EntityKind.CUSTOMER: CustomerDto,
    EntityKind.PRODUCT: ProductDto,
    EntityKind.ORDER: OrderDto,
}

FUNCTIONS_KEY_HEADER = "x-functions-key"

# Token used when the API reports none: the write is unconditional
ANY_ETAG = "*"


class FunctionsApiBackend(StorageBackend):
    """
    Storage backend calling the retail Functions API.

    Offers entities and proof-of-payment uploads. The API has no queue or
    file share resources, so those operations raise
    CapabilityUnavailableError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        *,
        payment_proofs_container: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the remote backend.

        Args:
            base_url: Base address of the Functions app (default from config)
            api_key: Optional function key sent with every request
            timeout: Request timeout in seconds
            payment_proofs_container: Container served by the uploads route
            client: Pre-built HTTP client (overrides the other settings)
        """
        self.base_url = base_url or settings.FUNCTIONS_BASE_URL
        if not self.base_url and client is None:
            raise ValueError("FUNCTIONS_BASE_URL must be set for the functions backend")

        self.payment_proofs_container = payment_proofs_container or settings.PAYMENT_PROOFS_CONTAINER

        if client is None:
            headers = {"Accept": "application/json"}
            key = api_key or settings.FUNCTIONS_API_KEY
            if key:
                headers[FUNCTIONS_KEY_HEADER] = key
            client = httpx.AsyncClient(
                base_url=self.base_url.rstrip("/") + "/",
                headers=headers,
                timeout=timeout or settings.FUNCTIONS_TIMEOUT_SECONDS,
            )
        self._client = client
        self._report: ProvisioningReport | None = None

    # Lifecycle

    async def initialize(self) -> ProvisioningReport:
        """
        Describe what the API offers; nothing is created remotely.
        """
        if self._report is None:
            report = ProvisioningReport()
            for route in ROUTES.values():
                report.record_success(Capability.TABLES, route)
            report.record_success(Capability.BLOBS, self.payment_proofs_container)
            report.record_skipped(Capability.QUEUES, "not offered by the Functions API")
            report.record_skipped(Capability.FILE_SHARE, "not offered by the Functions API")
            self._report = report
            logger.info(f"Functions API backend ready at {self.base_url}")
        return self._report

    async def close(self) -> None:
        await self._client.aclose()

    # HTTP helpers

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Functions API {operation} {method} {path} failed: {e}")
            raise BackendUnavailableError(operation, path, str(e)) from e

    def _raise_for_status(
        self,
        response: httpx.Response,
        operation: str,
        path: str,
        kind: EntityKind | None = None,
        row_key: str = "",
    ) -> None:
        if response.is_success:
            return

        status = response.status_code
        if status == httpx.codes.PRECONDITION_FAILED:
            raise ConcurrencyConflictError(path, row_key)
        if status == httpx.codes.CONFLICT and kind is not None:
            raise DuplicateKeyError(path, kind.value, row_key)

        logger.error(f"Functions API {operation} {path} returned HTTP {status}")
        raise RemoteApiError(operation, path, status, response.text)

    @staticmethod
    def _unreadable(
        response: httpx.Response,
        operation: str,
        path: str,
        reason: object,
    ) -> RemoteApiError:
        logger.error(f"Functions API {operation} {path} returned an unreadable body: {reason}")
        return RemoteApiError(operation, path, response.status_code, response.text)

    def _json(self, response: httpx.Response, operation: str, path: str) -> Any:
        try:
            # Decimal floats keep prices exact
            return response.json(parse_float=Decimal)
        except ValueError as e:
            raise self._unreadable(response, operation, path, e) from e

    @staticmethod
    def _entity_path(kind: EntityKind, row_key: str) -> str:
        return f"{ROUTES[kind]}/{quote(row_key, safe='')}"

    def _to_entity(
        self,
        kind: EntityKind,
        data: Any,
        response: httpx.Response,
        operation: str,
        path: str,
    ) -> StorageEntity:
        """Map one DTO onto its entity; a body that does not fit raises RemoteApiError."""
        try:
            dto = DTO_TYPES[kind].model_validate(data)
            entity = dto.to_entity()
        except ValueError as e:
            raise self._unreadable(response, operation, path, e) from e

        etag = dto.etag or response.headers.get("ETag") or ANY_ETAG
        return entity.model_copy(update={"etag": etag})

    @staticmethod
    def _if_match(entity: StorageEntity) -> dict[str, str]:
        if entity.etag and entity.etag != ANY_ETAG:
            return {"If-Match": entity.etag}
        return {}

    async def _product_files(
        self,
        product: Product,
        attachment: FileSource | None,
    ) -> list[tuple[str, tuple]]:
        """Build multipart parts; scalar fields become parts without a filename."""
        parts: list[tuple[str, tuple]] = [
            (name, (None, value)) for name, value in product_form_fields(product).items()
        ]
        if attachment is not None:
            data = await attachment.read()
            if data:
                parts.append(
                    (
                        "ImageFile",
                        (
                            attachment.filename or "upload",
                            data,
                            attachment.content_type or DEFAULT_CONTENT_TYPE,
                        ),
                    )
                )
        return parts

    # Entity operations

    async def list_all(self, kind: EntityKind) -> list[StorageEntity]:
        path = ROUTES[kind]
        response = await self._request("list_all", "GET", path)
        self._raise_for_status(response, "list_all", path)
        items = self._json(response, "list_all", path)
        if not isinstance(items, list):
            raise self._unreadable(response, "list_all", path, "expected a JSON array")
        return [self._to_entity(kind, item, response, "list_all", path) for item in items]

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

        path = self._entity_path(kind, row_key)
        response = await self._request("get", "GET", path)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status(response, "get", path)
        return self._to_entity(kind, self._json(response, "get", path), response, "get", path)

    async def create(
        self,
        entity: StorageEntity,
        attachment: FileSource | None = None,
    ) -> StorageEntity:
        self._check_partition_key(entity)
        kind = entity.kind
        path = ROUTES[kind]
        if attachment is not None and not isinstance(entity, Product):
            raise ValueError(f"Attachments are not supported for {kind.value} entities")

        if isinstance(entity, Customer):
            response = await self._request(
                "create", "POST", path,
                json=CustomerWriteRequest.from_entity(entity).model_dump(by_alias=True),
            )
        elif isinstance(entity, Product):
            response = await self._request(
                "create", "POST", path, files=await self._product_files(entity, attachment)
            )
        elif isinstance(entity, Order):
            body = OrderCreateRequest(
                customer_id=entity.customer_id,
                product_id=entity.product_id,
                quantity=entity.quantity,
            )
            response = await self._request(
                "create", "POST", path, json=body.model_dump(by_alias=True)
            )
        else:
            raise ValueError(f"Unsupported entity kind: {kind}")

        self._raise_for_status(response, "create", path, kind, entity.row_key)
        created = self._to_entity(
            kind, self._json(response, "create", path), response, "create", path
        )
        logger.info(f"Created {kind.value} {created.row_key} via Functions API")
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
        if attachment is not None and not isinstance(entity, Product):
            raise ValueError(f"Attachments are not supported for {entity.kind.value} entities")

        if isinstance(entity, Order):
            # Orders are only writable through the status resource
            updated = await self.update_order_status(entity.row_key, entity.status, entity.etag)
            if updated is None:
                raise ConcurrencyConflictError(ORDERS_ROUTE, entity.row_key)
            return updated

        path = self._entity_path(entity.kind, entity.row_key)
        if isinstance(entity, Customer):
            response = await self._request(
                "update", "PUT", path,
                json=CustomerWriteRequest.from_entity(entity).model_dump(by_alias=True),
                headers=self._if_match(entity),
            )
        else:
            response = await self._request(
                "update", "PUT", path,
                files=await self._product_files(entity, attachment),
                headers=self._if_match(entity),
            )

        if response.status_code == httpx.codes.NOT_FOUND:
            # The entity vanished since it was read
            raise ConcurrencyConflictError(path, entity.row_key)
        try:
            self._raise_for_status(response, "update", path, row_key=entity.row_key)
        except ConcurrencyConflictError:
            logger.warning(
                f"Entity update failed due to ETag mismatch for "
                f"{entity.kind.value} with RowKey {entity.row_key}"
            )
            raise
        return self._to_entity(
            entity.kind, self._json(response, "update", path), response, "update", path
        )

    async def delete(self, kind: EntityKind, partition_key: str, row_key: str) -> None:
        path = self._entity_path(kind, row_key)
        response = await self._request("delete", "DELETE", path)
        if response.status_code == httpx.codes.NOT_FOUND:
            return
        self._raise_for_status(response, "delete", path)

    async def update_order_status(
        self,
        order_id: str,
        status: str,
        etag: str | None = None,
    ) -> Order | None:
        """
        Send a partial status change, then read the order back.

        The API owns the rest of the order, so no other field is sent.
        """
        path = f"{self._entity_path(EntityKind.ORDER, order_id)}/status"
        headers = {"If-Match": etag} if etag and etag != ANY_ETAG else {}
        response = await self._request(
            "update_order_status", "PATCH", path,
            json=OrderStatusRequest(status=status).model_dump(by_alias=True),
            headers=headers,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status(response, "update_order_status", path, row_key=order_id)

        return await self.get(EntityKind.ORDER, EntityKind.ORDER.value, order_id)

    # Blob operations

    async def upload_blob(self, file: FileSource, container: str) -> str:
        if container != self.payment_proofs_container:
            raise CapabilityUnavailableError(
                Capability.BLOBS,
                f"the Functions API only accepts uploads to '{self.payment_proofs_container}'",
            )
        return await self.upload_proof_of_payment(file)

    async def upload_proof_of_payment(
        self,
        file: FileSource,
        order_id: str | None = None,
        customer_name: str | None = None,
    ) -> str:
        """
        Upload a proof-of-payment document.

        Args:
            file: Uploaded document
            order_id: Optional order the payment belongs to
            customer_name: Optional name of the paying customer

        Returns:
            Stored file name reported by the API, else the original file name
        """
        files: list[tuple[str, tuple]] = [
            (
                "ProofOfPayment",
                (
                    file.filename or "upload",
                    await file.read(),
                    file.content_type or DEFAULT_CONTENT_TYPE,
                ),
            )
        ]
        if order_id and order_id.strip():
            files.append(("OrderId", (None, order_id)))
        if customer_name and customer_name.strip():
            files.append(("CustomerName", (None, customer_name)))

        response = await self._request("upload_blob", "POST", UPLOADS_ROUTE, files=files)
        self._raise_for_status(response, "upload_blob", UPLOADS_ROUTE)

        data = self._json(response, "upload_blob", UPLOADS_ROUTE)
        try:
            uploaded = UploadResponse.model_validate(data)
        except ValueError as e:
            raise self._unreadable(response, "upload_blob", UPLOADS_ROUTE, e) from e
        return uploaded.file_name or file.filename

    async def delete_blob(self, blob_name: str, container: str) -> None:
        raise CapabilityUnavailableError(Capability.BLOBS, "blob deletion is not offered by the Functions API")

    # Queue operations

    async def send_message(self, queue: str, payload: str) -> None:
        raise CapabilityUnavailableError(Capability.QUEUES, "not offered by the Functions API")

    async def receive_message(self, queue: str) -> str | None:
        raise CapabilityUnavailableError(Capability.QUEUES, "not offered by the Functions API")

    # File share operations

    def is_file_share_available(self) -> bool:
        return False

    async def upload_to_file_share(
        self,
        file: FileSource,
        share: str,
        directory: str = "",
    ) -> str:
        raise CapabilityUnavailableError(Capability.FILE_SHARE, "not offered by the Functions API")

    async def download_from_file_share(
        self,
        share: str,
        file_name: str,
        directory: str = "",
    ) -> bytes:
        raise CapabilityUnavailableError(Capability.FILE_SHARE, "not offered by the Functions API")
