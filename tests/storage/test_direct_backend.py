"""
Tests for DirectStorageBackend.

Entities and queues run on a temporary SQLite database, blobs on an
in-memory Blob service and the file share on a temporary directory.
"""
import asyncio
import re
from decimal import Decimal

import pytest

from retail_storage.models import Customer, EntityKind, Order, OrderStatus
from retail_storage.storage.direct import DirectStorageBackend, is_development_storage
from retail_storage.storage.exceptions import (
    CapabilityUnavailableError,
    ConcurrencyConflictError,
    DuplicateKeyError,
    FileNotFoundError,
)
from retail_storage.storage.provisioning import Capability
from tests.fakes import ACCOUNT_URL, FakeBlobServiceClient, FakeUpload


class TestProvisioning:
    """initialize() behaviour"""

    @pytest.mark.asyncio
    async def test_initialize_provisions_every_capability(self, storage, blob_service, tmp_path):
        """Test tables, containers, queues and file share are all provisioned"""
        report = await storage.initialize()

        assert report.ok
        for capability in (Capability.TABLES, Capability.BLOBS, Capability.QUEUES, Capability.FILE_SHARE):
            assert report.is_available(capability)

        assert blob_service.containers["product-images"].public_access == "blob"
        assert blob_service.containers["payment-proofs"].public_access is None
        assert (tmp_path / "fileshares" / "contracts" / "payments").is_dir()

    @pytest.mark.asyncio
    async def test_initialize_runs_once(self, storage):
        """Test concurrent and repeated calls share one provisioning run"""
        first, second = await asyncio.gather(storage.initialize(), storage.initialize())
        third = await storage.initialize()

        assert first is second
        assert first is third

    @pytest.mark.asyncio
    async def test_operations_provision_on_first_use(self, storage, customer):
        """Test a data operation before initialize() still works"""
        created = await storage.create(customer)

        assert created.etag
        assert (await storage.initialize()).is_available(Capability.TABLES)

    @pytest.mark.asyncio
    async def test_blob_failure_is_recorded_not_raised(self, tmp_path, database_url, customer):
        """Test failed container creation disables blobs only"""
        backend = DirectStorageBackend(
            database_url=database_url,
            connection_string="UseDevelopmentStorage=true",
            blob_service=FakeBlobServiceClient(fail_create=True),
        )
        try:
            report = await backend.initialize()

            assert not report.ok
            assert not report.is_available(Capability.BLOBS)
            assert report.is_available(Capability.TABLES)

            with pytest.raises(CapabilityUnavailableError) as exc:
                await backend.upload_blob(FakeUpload(b"img", "a.png"), "product-images")
            assert exc.value.capability == Capability.BLOBS

            # Tables keep working
            assert (await backend.create(customer)).etag
        finally:
            await backend.close()


class TestDevelopmentStorage:
    """File share behaviour against the storage emulator"""

    @pytest.mark.parametrize(
        "connection_string, expected",
        [
            ("UseDevelopmentStorage=true", True),
            ("usedevelopmentstorage = TRUE;DevelopmentStorageProxyUri=http://x", True),
            ("DefaultEndpointsProtocol=https;AccountName=a;AccountKey=b", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_development_storage(self, connection_string, expected):
        """Test the emulator sentinel is matched case- and space-insensitively"""
        assert is_development_storage(connection_string) is expected

    @pytest.mark.asyncio
    async def test_file_share_unavailable(self, dev_storage):
        """Test file share is skipped and its operations refuse to run"""
        assert dev_storage.is_file_share_available() is False

        report = await dev_storage.initialize()
        assert Capability.FILE_SHARE in report.skipped
        assert report.ok

        with pytest.raises(CapabilityUnavailableError):
            await dev_storage.upload_to_file_share(
                FakeUpload(b"%PDF", "contract.pdf"), "contracts", "payments"
            )
        with pytest.raises(CapabilityUnavailableError):
            await dev_storage.download_from_file_share("contracts", "contract.pdf", "payments")

    @pytest.mark.asyncio
    async def test_other_capabilities_still_work(self, dev_storage, customer):
        """Test emulator mode only disables the file share"""
        created = await dev_storage.create(customer)
        await dev_storage.send_message("order-notifications", "hello")

        assert await dev_storage.get(EntityKind.CUSTOMER, "Customer", created.row_key) is not None
        assert await dev_storage.receive_message("order-notifications") == "hello"


class TestEntities:
    """Entity create/read/update/delete"""

    @pytest.mark.asyncio
    async def test_create_then_get(self, storage, customer):
        """Test a created entity reads back with equal fields and a token"""
        created = await storage.create(customer)
        fetched = await storage.get(EntityKind.CUSTOMER, "Customer", created.row_key)

        assert fetched is not None
        assert fetched.etag
        assert fetched.etag == created.etag
        assert fetched.name == "Thandi"
        assert fetched.surname == "Nkosi"
        assert fetched.email == "thandi@example.com"
        assert fetched.shipping_address == "12 Long Street, Cape Town"

    @pytest.mark.asyncio
    async def test_create_generates_row_key(self, storage, customer):
        """Test a blank row key is replaced by a UUID"""
        created = await storage.create(customer)

        assert re.fullmatch(r"[0-9a-f-]{36}", created.row_key)

    @pytest.mark.asyncio
    async def test_create_keeps_given_row_key(self, storage, customer):
        """Test an explicit row key is used as-is"""
        created = await storage.create(customer.model_copy(update={"row_key": "cust-1"}))

        assert created.row_key == "cust-1"

    @pytest.mark.asyncio
    async def test_create_whitespace_row_key_is_generated(self, storage, customer):
        """Test a whitespace-only row key counts as blank"""
        created = await storage.create(customer.model_copy(update={"row_key": "   "}))

        assert re.fullmatch(r"[0-9a-f-]{36}", created.row_key)
        assert await storage.get(EntityKind.CUSTOMER, "Customer", created.row_key) is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("partition_key", ["", "   ", "Product", "customers"])
    async def test_create_rejects_foreign_partition(self, storage, customer, partition_key):
        """Test entities can only be created in their kind's partition"""
        with pytest.raises(ValueError):
            await storage.create(customer.model_copy(update={"partition_key": partition_key}))

        assert await storage.list_all(EntityKind.CUSTOMER) == []

    @pytest.mark.asyncio
    async def test_create_duplicate_key(self, storage, customer):
        """Test creating the same key twice fails"""
        keyed = customer.model_copy(update={"row_key": "cust-1"})
        await storage.create(keyed)

        with pytest.raises(DuplicateKeyError) as exc:
            await storage.create(keyed)
        assert exc.value.row_key == "cust-1"
        assert exc.value.table == "Customers"

    @pytest.mark.asyncio
    async def test_product_price_is_exact(self, storage, widget):
        """Test prices survive storage without binary rounding"""
        created = await storage.create(widget)
        fetched = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)

        assert fetched.price == Decimal("19.99")
        assert isinstance(fetched.price, Decimal)

    @pytest.mark.asyncio
    async def test_order_round_trip(self, storage, customer, widget):
        """Test order dates and prices come back unchanged"""
        order = Order.place(
            customer.model_copy(update={"row_key": "c1"}),
            widget.model_copy(update={"row_key": "p1"}),
            3,
        )
        created = await storage.create(order)
        fetched = await storage.get(EntityKind.ORDER, "Order", created.row_key)

        assert fetched.order_date == order.order_date
        assert fetched.order_date.tzinfo is None
        assert fetched.total_price == Decimal("59.97")
        assert fetched.customer_display_name == "Thandi Nkosi"
        assert fetched.status == OrderStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, storage):
        """Test an unknown key is absent, not an error"""
        assert await storage.get(EntityKind.ORDER, "Order", "missing-id") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "partition_key, row_key",
        [("", "abc"), ("Customer", ""), ("   ", "abc"), ("Customer", "  ")],
    )
    async def test_get_blank_keys_returns_none(self, storage, partition_key, row_key):
        """Test blank keys return None without touching the store"""
        assert await storage.get(EntityKind.CUSTOMER, partition_key, row_key) is None

    @pytest.mark.asyncio
    async def test_list_all(self, storage, customer, widget):
        """Test listing returns only entities of the requested kind"""
        await storage.create(customer)
        await storage.create(customer.model_copy(update={"name": "Sipho"}))
        await storage.create(widget)

        customers = await storage.list_all(EntityKind.CUSTOMER)

        assert sorted(c.name for c in customers) == ["Sipho", "Thandi"]
        assert all(isinstance(c, Customer) for c in customers)
        assert all(c.etag for c in customers)

    @pytest.mark.asyncio
    async def test_list_all_empty(self, storage):
        """Test listing an empty table"""
        assert await storage.list_all(EntityKind.ORDER) == []

    @pytest.mark.asyncio
    async def test_delete_twice(self, storage, customer):
        """Test deleting an absent entity is not an error"""
        created = await storage.create(customer)

        await storage.delete(EntityKind.CUSTOMER, "Customer", created.row_key)
        await storage.delete(EntityKind.CUSTOMER, "Customer", created.row_key)

        assert await storage.get(EntityKind.CUSTOMER, "Customer", created.row_key) is None


class TestOptimisticConcurrency:
    """ETag-conditional updates"""

    @pytest.mark.asyncio
    async def test_update_with_current_token(self, storage, widget):
        """Test an update with the read token succeeds and changes the token"""
        created = await storage.create(widget)

        updated = await storage.update(created.model_copy(update={"stock_available": 7}))

        assert updated.etag != created.etag
        fetched = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)
        assert fetched.stock_available == 7
        assert fetched.etag == updated.etag

    @pytest.mark.asyncio
    async def test_stale_token_conflicts_then_reread_succeeds(self, storage, widget):
        """Test a concurrent writer makes the first reader's token stale"""
        created = await storage.create(widget)
        first_read = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)
        second_read = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)

        await storage.update(second_read.model_copy(update={"stock_available": 8}))

        with pytest.raises(ConcurrencyConflictError) as exc:
            await storage.update(first_read.model_copy(update={"stock_available": 5}))
        assert "modified by another process" in str(exc.value)

        fresh = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)
        assert fresh.stock_available == 8
        retried = await storage.update(fresh.model_copy(update={"stock_available": 5}))

        assert retried.stock_available == 5

    @pytest.mark.asyncio
    async def test_update_without_token(self, storage, widget):
        """Test updating an entity that was never read is refused"""
        with pytest.raises(ValueError):
            await storage.update(widget.model_copy(update={"row_key": "p1"}))

    @pytest.mark.asyncio
    async def test_update_deleted_entity_conflicts(self, storage, widget):
        """Test updating an entity deleted since it was read"""
        created = await storage.create(widget)
        await storage.delete(EntityKind.PRODUCT, "Product", created.row_key)

        with pytest.raises(ConcurrencyConflictError):
            await storage.update(created)


class TestOrderStatus:
    """update_order_status"""

    @pytest.fixture
    def order(self, customer, widget):
        return Order.place(
            customer.model_copy(update={"row_key": "c1"}),
            widget.model_copy(update={"row_key": "p1"}),
            2,
        )

    @pytest.mark.asyncio
    async def test_update_status(self, storage, order):
        """Test only the status changes"""
        created = await storage.create(order)

        updated = await storage.update_order_status(created.row_key, OrderStatus.SHIPPED)

        assert updated.status == OrderStatus.SHIPPED
        assert updated.total_price == created.total_price
        assert updated.etag != created.etag

    @pytest.mark.asyncio
    async def test_update_status_stale_token(self, storage, order):
        """Test a stale token is rejected"""
        created = await storage.create(order)
        await storage.update_order_status(created.row_key, OrderStatus.PROCESSING)

        with pytest.raises(ConcurrencyConflictError):
            await storage.update_order_status(created.row_key, OrderStatus.SHIPPED, created.etag)

    @pytest.mark.asyncio
    async def test_update_status_missing_order(self, storage):
        """Test a missing order returns None"""
        assert await storage.update_order_status("missing-id", OrderStatus.SHIPPED) is None


class TestBlobs:
    """Blob uploads and deletes"""

    @pytest.mark.asyncio
    async def test_public_upload_returns_url(self, storage, blob_service):
        """Test images get a random name and a URL locator"""
        locator = await storage.upload_blob(
            FakeUpload(b"png-bytes", "Widget Photo.PNG", "image/png"), "product-images"
        )

        assert re.fullmatch(rf"{ACCOUNT_URL}/product-images/[0-9a-f]{{32}}\.png", locator)
        blob_name = locator.rsplit("/", 1)[1]
        assert blob_service.containers["product-images"].blobs[blob_name] == (b"png-bytes", "image/png")

    @pytest.mark.asyncio
    async def test_private_upload_returns_name(self, storage, blob_service):
        """Test documents get a timestamp-prefixed name"""
        name = await storage.upload_blob(FakeUpload(b"%PDF", "proof.pdf"), "payment-proofs")

        assert re.fullmatch(r"\d{8}_\d{6}_proof\.pdf", name)
        data, content_type = blob_service.containers["payment-proofs"].blobs[name]
        assert data == b"%PDF"
        assert content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_upload_to_unknown_container_is_private(self, storage, blob_service):
        """Test unknown containers are created private on first upload"""
        name = await storage.upload_blob(FakeUpload(b"x", "notes.txt"), "misc")

        assert name.endswith("_notes.txt")
        assert blob_service.containers["misc"].public_access is None

    @pytest.mark.asyncio
    async def test_delete_blob(self, storage, blob_service):
        """Test deleting a blob, twice"""
        name = await storage.upload_blob(FakeUpload(b"%PDF", "proof.pdf"), "payment-proofs")

        await storage.delete_blob(name, "payment-proofs")
        await storage.delete_blob(name, "payment-proofs")

        assert name not in blob_service.containers["payment-proofs"].blobs

    @pytest.mark.asyncio
    async def test_create_product_with_image(self, storage, widget, blob_service):
        """Test an attachment is stored and its URL recorded on the product"""
        created = await storage.create(widget, FakeUpload(b"jpg", "widget.jpg", "image/jpeg"))

        assert created.image_url.startswith(f"{ACCOUNT_URL}/product-images/")
        fetched = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)
        assert fetched.image_url == created.image_url

    @pytest.mark.asyncio
    async def test_conflicting_update_removes_new_image(self, storage, widget, blob_service):
        """Test an image uploaded for a stale update does not stay behind"""
        created = await storage.create(widget)
        await storage.update(created.model_copy(update={"stock_available": 8}))

        with pytest.raises(ConcurrencyConflictError):
            await storage.update(
                created.model_copy(update={"stock_available": 5}),
                FakeUpload(b"jpg", "new.jpg", "image/jpeg"),
            )

        assert blob_service.containers["product-images"].blobs == {}
        fetched = await storage.get(EntityKind.PRODUCT, "Product", created.row_key)
        assert fetched.image_url == ""

    @pytest.mark.asyncio
    async def test_attachment_on_customer_rejected(self, storage, customer):
        """Test only products accept attachments"""
        with pytest.raises(ValueError):
            await storage.create(customer, FakeUpload(b"x", "x.png"))


class TestQueues:
    """Queue send/receive"""

    @pytest.mark.asyncio
    async def test_fifo(self, storage):
        """Test messages are received oldest first, exactly once"""
        await storage.send_message("stock-updates", "first")
        await storage.send_message("stock-updates", "second")

        assert await storage.receive_message("stock-updates") == "first"
        assert await storage.receive_message("stock-updates") == "second"
        assert await storage.receive_message("stock-updates") is None

    @pytest.mark.asyncio
    async def test_queues_are_separate(self, storage):
        """Test a message only appears on its own queue"""
        await storage.send_message("order-notifications", "order")

        assert await storage.receive_message("stock-updates") is None
        assert await storage.receive_message("order-notifications") == "order"


class TestFileShare:
    """File share upload/download"""

    @pytest.mark.asyncio
    async def test_upload_then_download(self, storage):
        """Test a stored file can be read back by its returned name"""
        assert storage.is_file_share_available() is True

        name = await storage.upload_to_file_share(
            FakeUpload(b"%PDF-contract", "contract.pdf"), "contracts", "payments"
        )

        assert re.fullmatch(r"\d{8}_\d{6}_contract\.pdf", name)
        assert await storage.download_from_file_share("contracts", name, "payments") == b"%PDF-contract"

    @pytest.mark.asyncio
    async def test_download_missing(self, storage):
        """Test a missing file raises FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            await storage.download_from_file_share("contracts", "nope.pdf", "payments")


class TestClose:
    """close()"""

    @pytest.mark.asyncio
    async def test_close_closes_blob_service(self, tmp_path, database_url):
        """Test the blob client is closed with the backend"""
        blob_service = FakeBlobServiceClient()
        backend = DirectStorageBackend(
            database_url=database_url,
            connection_string="UseDevelopmentStorage=true",
            blob_service=blob_service,
        )

        async with backend:
            await backend.send_message("stock-updates", "x")

        assert blob_service.closed
